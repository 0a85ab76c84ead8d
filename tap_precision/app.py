"""Pygame UI shell for the Tap Precision Trainer.

Three tests share one engine:
- Touch Accuracy (free-form tap error statistics with an error scatter plot)
- Target Spacing (colour identification with shrinking, tightening targets)
- Target Size (hit/miss sweep over small, medium and large targets)

Deterministic timing/placement/scoring/rendering lives in tap_precision/* (core
modules). This shell only maps pygame events to TapEvents and paints the
primitive lists produced by tap_precision.render.
"""

from __future__ import annotations

import logging
import math
import os
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

import pygame

from .accuracy import build_accuracy_test
from .clock import ClockScheduler, RealClock
from .metrics import SummaryStats
from .precision_core import Phase, TapEvent, TapOutcome, Viewport
from .render import (
    SIZE_CHART_STYLE,
    SPACING_CHART_STYLE,
    Align,
    CirclePrim,
    GradientPrim,
    LinePrim,
    PolygonPrim,
    Primitive,
    RectPrim,
    Rgba,
    TextPrim,
    Toggles,
    render_bar_chart,
    render_error_plot,
)
from .results import AttemptResult, attempt_result_from_sequencer
from .sequencer import TrialSequencer
from .spacing import SPACING_LEGEND, build_spacing_test, spacing_chart_groups
from .target_size import SIZE_ORDER, build_target_size_test, size_chart_groups

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "TAP_PRECISION_LOG_LEVEL"
WINDOW_SIZE_ENV = "TAP_PRECISION_WINDOW"
DEFAULT_WINDOW_SIZE = (960, 720)
# Smallest window in which every test can still place its largest padded target.
MIN_WINDOW_SIZE = (320, 240)
TARGET_FPS = 60

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
BORDER = (226, 236, 255)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
RESULTS_BG = (250, 250, 250)

IDENTITY_COLORS: dict[str, tuple[int, int, int]] = {
    "orange": (249, 115, 22),
    "purple": (168, 85, 247),
    "cyan": (6, 182, 212),
}
TARGET_COLOR = (239, 68, 68)
HIT_FLASH = (34, 197, 94, 60)
MISS_FLASH = (239, 68, 68, 90)


def window_size_from_env() -> tuple[int, int]:
    raw = os.environ.get(WINDOW_SIZE_ENV, "").strip().lower()
    if not raw:
        return DEFAULT_WINDOW_SIZE
    try:
        w_s, h_s = raw.split("x", 1)
        w, h = int(w_s), int(h_s)
    except ValueError:
        logger.warning("ignoring malformed %s=%r (expected WIDTHxHEIGHT)", WINDOW_SIZE_ENV, raw)
        return DEFAULT_WINDOW_SIZE
    if w < MIN_WINDOW_SIZE[0] or h < MIN_WINDOW_SIZE[1]:
        logger.warning("ignoring %s=%r (minimum is %dx%d)", WINDOW_SIZE_ENV, raw, *MIN_WINDOW_SIZE)
        return DEFAULT_WINDOW_SIZE
    return (w, h)


def configure_logging() -> None:
    level_name = os.environ.get(LOG_LEVEL_ENV, "WARNING").strip().upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def clamp_window_size(w: int, h: int) -> tuple[int, int]:
    return (max(MIN_WINDOW_SIZE[0], int(w)), max(MIN_WINDOW_SIZE[1], int(h)))


def _resized_surface(w: int, h: int) -> pygame.Surface:
    size = clamp_window_size(w, h)
    if size != (w, h):
        logger.debug("window %dx%d below minimum, restoring %dx%d", w, h, *size)
        return pygame.display.set_mode(size, pygame.RESIZABLE)
    return pygame.display.get_surface()


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def viewport(self) -> Viewport:
        w, h = self._surface.get_size()
        return Viewport(width=float(w), height=float(h))

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if event.type == pygame.VIDEORESIZE:
            self._surface = _resized_surface(event.w, event.h)
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)
        self._row_hitboxes: list[pygame.Rect] = []

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            if event.key in (pygame.K_UP, pygame.K_w):
                self._move(-1)
            elif event.key in (pygame.K_DOWN, pygame.K_s):
                self._move(1)
            elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
                self._activate()
            elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
                self._back()
            return

        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            for idx, rect in enumerate(self._row_hitboxes):
                if rect.collidepoint(event.pos):
                    self._selected = idx
                    self._activate()
                    return

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        w, h = surface.get_size()
        surface.fill(BG)

        margin = max(10, min(26, w // 34))
        frame = pygame.Rect(margin, margin, max(260, w - margin * 2), max(220, h - margin * 2))
        pygame.draw.rect(surface, PANEL_BG, frame)
        pygame.draw.rect(surface, BORDER, frame, 2)

        title = self._title_font.render(self._title, True, TEXT_MAIN)
        surface.blit(title, title.get_rect(midtop=(frame.centerx, frame.y + 18)))

        row_h = 44
        gap = 10
        total_h = len(self._items) * row_h + max(0, len(self._items) - 1) * gap
        y = frame.centery - total_h // 2
        self._row_hitboxes = []
        for idx, item in enumerate(self._items):
            row = pygame.Rect(frame.x + 40, y, frame.w - 80, row_h)
            self._row_hitboxes.append(row)
            selected = idx == self._selected
            pygame.draw.rect(surface, (244, 248, 255) if selected else (9, 20, 106), row)
            pygame.draw.rect(surface, (120, 142, 196) if selected else (62, 84, 152), row, 2 if selected else 1)
            color = (14, 26, 74) if selected else TEXT_MAIN
            text = self._item_font.render(item.label, True, color)
            surface.blit(text, (row.x + 12, row.y + (row.h - text.get_height()) // 2))
            y += row_h + gap

        footer = "Enter/Click: Select  |  Esc: Back"
        foot = self._hint_font.render(footer, True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(frame.centerx, frame.bottom - 10)))


class PrimitivePainter:
    """Paints render primitives onto a pygame surface."""

    def __init__(self) -> None:
        self._fonts: dict[tuple[int, bool], pygame.font.Font] = {}

    def paint(self, surface: pygame.Surface, prims: Sequence[Primitive], origin: tuple[int, int] = (0, 0)) -> None:
        ox, oy = origin
        layer = pygame.Surface(surface.get_size(), pygame.SRCALPHA)
        for prim in prims:
            if isinstance(prim, CirclePrim):
                self._circle(layer, prim, ox, oy)
            elif isinstance(prim, LinePrim):
                self._line(layer, prim, ox, oy)
            elif isinstance(prim, PolygonPrim):
                pts = [(p.x + ox, p.y + oy) for p in prim.points]
                pygame.draw.polygon(layer, prim.fill, pts)
            elif isinstance(prim, GradientPrim):
                self._gradient(layer, prim, ox, oy)
            elif isinstance(prim, RectPrim):
                pygame.draw.rect(layer, prim.fill, pygame.Rect(prim.x + ox, prim.y + oy, prim.w, prim.h))
            elif isinstance(prim, TextPrim):
                self._text(layer, prim, ox, oy)
        surface.blit(layer, (0, 0))

    def _font(self, size: int, bold: bool) -> pygame.font.Font:
        key = (size, bold)
        font = self._fonts.get(key)
        if font is None:
            # pygame's default font renders small; scale up to roughly match CSS px.
            font = pygame.font.Font(None, int(size * 1.4))
            font.set_bold(bold)
            self._fonts[key] = font
        return font

    def _circle(self, layer: pygame.Surface, prim: CirclePrim, ox: int, oy: int) -> None:
        cx, cy = prim.center.x + ox, prim.center.y + oy
        r = prim.radius
        if prim.fill is not None and r > 0:
            pygame.draw.circle(layer, prim.fill, (cx, cy), r)
        if prim.stroke is None or r < 1:
            return
        width = max(1, int(round(prim.line_width)))
        if prim.dash is None:
            pygame.draw.circle(layer, prim.stroke, (cx, cy), r, width)
            return
        on, off = prim.dash
        step = (on + off) / r
        span = on / r
        rect = pygame.Rect(0, 0, int(r * 2), int(r * 2))
        rect.center = (int(cx), int(cy))
        a = 0.0
        while a < math.tau:
            pygame.draw.arc(layer, prim.stroke, rect, a, min(a + span, math.tau), width)
            a += step

    def _line(self, layer: pygame.Surface, prim: LinePrim, ox: int, oy: int) -> None:
        start = (prim.start.x + ox, prim.start.y + oy)
        end = (prim.end.x + ox, prim.end.y + oy)
        width = max(1, int(round(prim.width)))
        pygame.draw.line(layer, prim.color, start, end, width)
        if prim.round_cap and width > 1:
            pygame.draw.circle(layer, prim.color, start, width / 2)
            pygame.draw.circle(layer, prim.color, end, width / 2)

    def _gradient(self, layer: pygame.Surface, prim: GradientPrim, ox: int, oy: int) -> None:
        r = int(math.ceil(prim.radius))
        if r < 1 or len(prim.stops) < 2:
            return
        blob = pygame.Surface((r * 2, r * 2), pygame.SRCALPHA)
        (t0, c0), (t1, c1) = prim.stops[0], prim.stops[-1]
        for ring in range(r, 0, -1):
            t = min(1.0, max(0.0, (ring / r - t0) / max(1e-9, t1 - t0)))
            color = tuple(int(round(a + (b - a) * t)) for a, b in zip(c0, c1))
            pygame.draw.circle(blob, color, (r, r), ring)
        layer.blit(blob, (prim.center.x + ox - r, prim.center.y + oy - r))

    def _text(self, layer: pygame.Surface, prim: TextPrim, ox: int, oy: int) -> None:
        font = self._font(prim.size, prim.bold)
        img = font.render(prim.text, True, prim.color[:3])
        if prim.color[3] < 255:
            img.set_alpha(prim.color[3])
        x, y = prim.position.x + ox, prim.position.y + oy
        if prim.rotation_deg:
            # pygame rotates counter-clockwise; canvas angles are clockwise.
            img = pygame.transform.rotate(img, -prim.rotation_deg)
            layer.blit(img, img.get_rect(center=(x, y)))
            return
        rect = img.get_rect()
        rect.top = int(y - font.get_ascent())
        if prim.align is Align.CENTER:
            rect.centerx = int(x)
        else:
            rect.left = int(x)
        layer.blit(img, rect)


class PrecisionTestScreen:
    """Runs one TrialSequencer: instructions, trials, then results with toggles."""

    def __init__(
        self,
        app: App,
        *,
        test_code: str,
        engine_factory: Callable[[], TrialSequencer],
        scheduler: ClockScheduler,
    ) -> None:
        self._app = app
        self._test_code = test_code
        self._engine_factory = engine_factory
        self._engine = engine_factory()
        self._scheduler = scheduler
        self._toggles = Toggles()
        self._result: AttemptResult | None = None
        self._flash: tuple[Rgba, int] | None = None
        self._painter = PrimitivePainter()
        self._font = pygame.font.Font(None, 30)
        self._small_font = pygame.font.Font(None, 24)

    @property
    def engine(self) -> TrialSequencer:
        return self._engine

    @property
    def toggles(self) -> Toggles:
        return self._toggles

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            self._handle_key(event.key)
            return
        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            x, y = event.pos
            self._handle_pointer(float(x), float(y))

    def _handle_key(self, key: int) -> None:
        if key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop()
        elif key == pygame.K_r:
            self._restart()
        elif self._engine.phase is Phase.COMPLETE:
            names = {pygame.K_h: "heatmap", pygame.K_b: "bias", pygame.K_q: "quartiles"}
            if key in names:
                # Re-render only; trials are never re-run.
                self._toggles = self._toggles.toggled(names[key])

    def _handle_pointer(self, x: float, y: float) -> None:
        phase = self._engine.phase
        if phase is Phase.IDLE:
            self._engine.start_test()
            return
        if phase is not Phase.RUNNING:
            return

        presentation = self._engine.presentation
        assert presentation is not None
        if presentation.requested is not None:
            slot = presentation.slot_at(x, y)
            if slot is None:
                return
            outcome = self._engine.tap(TapEvent(x=x, y=y, identity=slot.identity))
        else:
            outcome = self._engine.tap(TapEvent(x=x, y=y))

        now_ms = pygame.time.get_ticks()
        if outcome is TapOutcome.MISS:
            self._flash = (MISS_FLASH, now_ms + 400)
        elif outcome in (TapOutcome.HIT, TapOutcome.COMPLETE):
            self._flash = (HIT_FLASH, now_ms + 150)
        if outcome is TapOutcome.COMPLETE:
            self._result = attempt_result_from_sequencer(
                self._engine, test_code=self._test_code, viewport=self._app.viewport()
            )

    def _restart(self) -> None:
        self._engine = self._engine_factory()
        self._toggles = Toggles()
        self._result = None
        self._flash = None

    def render(self, surface: pygame.Surface) -> None:
        self._scheduler.run_due()
        phase = self._engine.phase
        if phase is Phase.IDLE:
            self._render_instructions(surface)
        elif phase is Phase.COMPLETE and self._result is not None:
            self._render_results(surface, self._result)
        else:
            self._render_trial(surface)

    def _render_instructions(self, surface: pygame.Surface) -> None:
        surface.fill(BG)
        y = 60
        for line in self._engine.instructions():
            img = self._font.render(line, True, TEXT_MAIN)
            surface.blit(img, (60, y))
            y += 34
        hint = self._small_font.render("Click anywhere to begin.  Esc: Back", True, TEXT_MUTED)
        surface.blit(hint, (60, y + 20))

    def _render_trial(self, surface: pygame.Surface) -> None:
        surface.fill(BG)
        snap = self._engine.snapshot()
        p = snap.presentation
        if p is not None:
            for target in p.targets:
                pos = (target.position.x, target.position.y)
                if target.identity is not None:
                    color = IDENTITY_COLORS.get(target.identity, TARGET_COLOR)
                    pygame.draw.circle(surface, color, pos, target.radius)
                else:
                    pygame.draw.circle(surface, TARGET_COLOR, pos, target.radius)
                    pygame.draw.circle(surface, (255, 255, 255), pos, max(2.0, target.radius * 0.15))

        header = f"{snap.completed_trials} / {snap.total_trials}"
        if snap.config_label and self._test_code == "spacing":
            header = f"{header}    {snap.config_label}"
        surface.blit(self._small_font.render(header, True, TEXT_MUTED), (16, 12))
        prompt_color = TEXT_MAIN
        if p is not None and p.requested is not None:
            prompt_color = IDENTITY_COLORS.get(p.requested, TEXT_MAIN)
        prompt = self._font.render(snap.prompt, True, prompt_color)
        surface.blit(prompt, prompt.get_rect(midtop=(surface.get_width() // 2, 12)))

        if self._flash is not None:
            color, until_ms = self._flash
            if pygame.time.get_ticks() >= until_ms and snap.phase is not Phase.LOCKED:
                self._flash = None
            else:
                overlay = pygame.Surface(surface.get_size(), pygame.SRCALPHA)
                overlay.fill(color)
                surface.blit(overlay, (0, 0))

    def _render_results(self, surface: pygame.Surface, result: AttemptResult) -> None:
        surface.fill(RESULTS_BG)
        w, h = surface.get_size()
        panel_w = max(220, w // 3)

        y = 24
        for line in self._readout_lines(result):
            img = self._small_font.render(line, True, (40, 40, 40))
            surface.blit(img, (20, y))
            y += 26

        chart_x = panel_w + 10
        chart_w = max(100, w - chart_x - 20)
        chart_h = max(100, h - 80)
        prims = self._chart_primitives(result.summary, chart_w, chart_h)
        self._painter.paint(surface, prims, origin=(chart_x, 40))

        hint = "R: Restart  |  Esc: Back"
        if self._test_code == "accuracy":
            on = [name for name in ("heatmap", "bias", "quartiles") if getattr(self._toggles, name)]
            hint = f"H/B/Q: Heatmap/Bias/Quartiles ({', '.join(on) or 'none'})  |  {hint}"
        surface.blit(self._small_font.render(hint, True, (90, 90, 90)), (20, h - 30))

    def _readout_lines(self, result: AttemptResult) -> list[str]:
        r = result.readouts
        lines = [self._engine.title, ""]
        if self._test_code == "accuracy":
            lines += [
                f"Avg error: {r['avg_error']}",
                f"Max error: {r['max_error']}",
                f"Total time: {r['total_time']}",
                f"Avg time: {r['avg_time']}",
            ]
            if self._toggles.quartiles:
                lines += [f"{q}: {r[k]}" for q, k in (("25%", "q25"), ("50%", "q50"), ("75%", "q75"), ("90%", "q90"))]
        elif self._test_code == "spacing":
            lines += [
                f"Correct: {r['hits']}",
                f"Errors: {r['misses']}",
                f"Accuracy: {r['overall_accuracy']}",
                f"Total time: {r['total_time']}",
                "",
            ]
            lines += [f"{g.group}: {g.misses} errors" for g in result.summary.groups]
        else:
            lines += [
                f"Hits: {r['hits']}",
                f"Misses: {r['misses']}",
                f"Accuracy: {r['overall_accuracy']}",
                f"Total time: {r['total_time']}",
                "",
            ]
            for size in SIZE_ORDER:
                if f"{size}_misses" in r:
                    lines.append(
                        f"{size.capitalize()}: {r[f'{size}_misses']}, {r[f'{size}_accuracy']}, {r[f'{size}_time']}"
                    )
        lines += ["", r.get("screen_resolution", "")]
        return [str(line) for line in lines]

    def _chart_primitives(self, stats: SummaryStats, width: int, height: int) -> tuple[Primitive, ...]:
        if self._test_code == "accuracy":
            return render_error_plot(stats, self._engine.records, self._toggles, float(min(width, height)))
        if self._test_code == "spacing":
            return render_bar_chart(
                spacing_chart_groups(stats), width, height, SPACING_CHART_STYLE, legend=SPACING_LEGEND
            )
        return render_bar_chart(size_chart_groups(stats), width, height, SIZE_CHART_STYLE, axis_title="Misses")


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(*, max_frames: int | None = None, event_injector: Callable[[int], None] | None = None) -> int:
    configure_logging()
    pygame.init()

    pygame.display.set_caption("Tap Precision Trainer")
    surface = pygame.display.set_mode(window_size_from_env(), pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)
    real_clock = RealClock()
    scheduler = ClockScheduler(real_clock)

    def open_test(test_code: str, build: Callable[..., TrialSequencer]) -> None:
        def factory() -> TrialSequencer:
            seed = _new_seed()
            logger.info("opening %s with seed %d", test_code, seed)
            return build(clock=real_clock, scheduler=scheduler, seed=seed, viewport=app.viewport)

        app.push(PrecisionTestScreen(app, test_code=test_code, engine_factory=factory, scheduler=scheduler))

    main_items = [
        MenuItem("Touch Accuracy", lambda: open_test("accuracy", build_accuracy_test)),
        MenuItem("Target Spacing", lambda: open_test("spacing", build_spacing_test)),
        MenuItem("Target Size", lambda: open_test("target_size", build_target_size_test)),
        MenuItem("Quit", app.quit),
    ]

    app.push(MenuScreen(app, "Tap Precision Trainer", main_items, is_root=True))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        pygame.quit()

    return 0
