"""Test package for the tap precision trainer.

Core modules are tested with an injected fake clock; the headless
simulations script whole sessions per variant.  The UI smoke tests run
with pygame's dummy video driver to avoid opening real windows.  To run
these tests, execute ``pytest`` from the project root.
"""
