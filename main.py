"""
StayAwake - Idle Presence Keeper
================================

Main entry point for the StayAwake application.

Keeps a Windows machine from sleeping or starting its screensaver while
you are away: once no genuine input has been seen for the idle threshold,
it moves the pointer a little, in short human-looking gestures, at
randomized intervals. Any real input (local or remote) resets it.

Usage:
    python main.py                       # control window
    python main.py --headless            # no window, Ctrl+C to stop
    python main.py --headless --preset 1 # run for timer preset 1, then exit

Options:
    --idle-threshold SECONDS
    --interval-min SECONDS
    --interval-max SECONDS
    --preset {1,2,3}
    --headless
    --verbose
"""

import argparse
import sys
import logging
import ctypes
from typing import List, Optional

from stayawake.settings import Settings, DEFAULTS, IDLE_THRESHOLD, JIGGLE_INTERVAL_MIN, JIGGLE_INTERVAL_MAX

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def check_platform():
    """
    Verify that we're running on Windows.

    The input probe, injector and power assertion use Windows-specific
    APIs (user32.dll, kernel32.dll, pywin32).

    Raises:
        SystemExit: If not running on Windows
    """
    if sys.platform != 'win32':
        logger.error(f"This application only runs on Windows. Current platform: {sys.platform}")
        print("Error: StayAwake requires Windows to run.")
        sys.exit(1)


def set_dpi_awareness():
    """
    Set DPI awareness so cursor and monitor coordinates are physical pixels.

    Without it Windows reports scaled coordinates on high-DPI displays and
    injected moves land in the wrong place.
    """
    try:
        # Windows 10+ per-monitor DPI awareness
        ctypes.windll.shcore.SetProcessDpiAwareness(2)
        logger.info("Set per-monitor DPI awareness")
    except Exception:
        try:
            # Fallback to Windows 8.1 system DPI awareness
            ctypes.windll.user32.SetProcessDPIAware()
            logger.info("Set system DPI awareness")
        except Exception as e:
            logger.warning(f"Could not set DPI awareness: {e}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Keep the machine awake by simulating presence while idle",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--idle-threshold",
        type=float,
        default=DEFAULTS[IDLE_THRESHOLD],
        help="Seconds without input before activity starts",
    )
    parser.add_argument(
        "--interval-min",
        type=float,
        default=DEFAULTS[JIGGLE_INTERVAL_MIN],
        help="Minimum seconds between activities",
    )
    parser.add_argument(
        "--interval-max",
        type=float,
        default=DEFAULTS[JIGGLE_INTERVAL_MAX],
        help="Maximum seconds between activities",
    )
    parser.add_argument(
        "--preset",
        type=int,
        choices=(1, 2, 3),
        help="Enable immediately for this timer preset",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without the control window (enabled until Ctrl+C)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Debug logging",
    )
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    settings = Settings()
    settings.idle_threshold = args.idle_threshold
    settings.jiggle_interval_min = args.interval_min
    settings.jiggle_interval_max = args.interval_max
    return settings


def make_controller_factory(settings: Settings):
    """Wire the Windows backend into an EngineController for a scheduler."""
    from stayawake.engine import EngineController
    from stayawake.input_simulator import InputProbe, InputSimulator
    from stayawake.power import PowerAssertion

    def factory(scheduler, on_state_change=None):
        simulator = InputSimulator()
        return EngineController(
            settings=settings,
            scheduler=scheduler,
            probe=InputProbe(simulator),
            injector=simulator,
            power=PowerAssertion(),
            on_state_change=on_state_change
        )

    return factory


def run_headless(settings: Settings, preset: Optional[int]) -> None:
    from stayawake.timers import SchedScheduler

    scheduler = SchedScheduler()

    def on_state_change(state):
        # Preset sessions end the process once they expire
        if not state.enabled and preset is not None:
            scheduler.stop()

    controller = make_controller_factory(settings)(scheduler, on_state_change)

    if preset is not None:
        controller.enable_for_preset(preset)
    else:
        controller.toggle_enabled()

    controller.start()
    print("Running headless. Press Ctrl+C to stop.")
    try:
        scheduler.run()
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        controller.shutdown()
        scheduler.stop()


def run_ui(settings: Settings, preset: Optional[int]) -> None:
    from stayawake.ui import StayAwakeApp

    app = StayAwakeApp(make_controller_factory(settings), settings)
    if preset is not None:
        app.controller.enable_for_preset(preset)
    app.run()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    check_platform()
    set_dpi_awareness()

    settings = build_settings(args)
    logger.info(
        f"Idle threshold {settings.idle_threshold:.0f}s, interval "
        f"{settings.jiggle_interval_min:.0f}-{settings.jiggle_interval_max:.0f}s"
    )

    try:
        if args.headless:
            run_headless(settings, args.preset)
        else:
            run_ui(settings, args.preset)
    except ImportError as e:
        logger.error(f"Failed to import application modules: {e}")
        print(f"Error: Failed to load application: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Application error: {e}")
        return 1

    logger.info("StayAwake closed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
