"""Smoke tests for the pygame UI.

These tests verify that the application's main loop can initialise and
execute a handful of frames without crashing when the SDL dummy video
driver is used.  The second test drives the menu into the accuracy test
and taps through a few frames, without checking rendering correctness.
"""

from __future__ import annotations

import os

# Use the dummy drivers before importing pygame or the application
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")


def test_app_runs_headless() -> None:
    """Ensure the application can start and run a few frames headlessly."""
    # Import inside the test so that environment variables take effect
    from tap_precision.app import run

    exit_code = run(max_frames=3)
    assert exit_code == 0


def test_ui_smoke_open_accuracy_and_tap() -> None:
    import pygame

    from tap_precision.app import run

    def inject(frame: int) -> None:
        # Main Menu -> Touch Accuracy, then a start tap and a few scored taps.
        if frame == 1:
            pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": pygame.K_RETURN, "unicode": ""}))
        elif 2 <= frame <= 6:
            pos = (100 + 40 * frame, 120 + 30 * frame)
            pygame.event.post(pygame.event.Event(pygame.MOUSEBUTTONDOWN, {"pos": pos, "button": 1}))

    assert run(max_frames=12, event_injector=inject) == 0


def test_window_size_is_clamped_to_minimum() -> None:
    from tap_precision.app import MIN_WINDOW_SIZE, clamp_window_size

    assert clamp_window_size(100, 80) == MIN_WINDOW_SIZE
    assert clamp_window_size(1024, 100) == (1024, MIN_WINDOW_SIZE[1])
    assert clamp_window_size(800, 600) == (800, 600)


def test_ui_smoke_shrink_window_during_target_size() -> None:
    import pygame

    from tap_precision.app import run

    def inject(frame: int) -> None:
        # Main Menu -> Target Size, start, shrink the window, keep tapping.
        if frame in (1, 2):
            pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": pygame.K_DOWN, "unicode": ""}))
        elif frame == 3:
            pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": pygame.K_RETURN, "unicode": ""}))
        elif frame == 4:
            pygame.event.post(pygame.event.Event(pygame.MOUSEBUTTONDOWN, {"pos": (10, 10), "button": 1}))
        elif frame == 5:
            pygame.event.post(pygame.event.Event(pygame.VIDEORESIZE, {"w": 100, "h": 80, "size": (100, 80)}))
        elif 6 <= frame <= 10:
            pygame.event.post(pygame.event.Event(pygame.MOUSEBUTTONDOWN, {"pos": (160, 120), "button": 1}))

    assert run(max_frames=14, event_injector=inject) == 0
