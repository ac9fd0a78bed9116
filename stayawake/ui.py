"""
Main UI Module
==============

Small tkinter control window for the engine.

UI Components:
--------------
- Status display (Off / Waiting for idle / Active)
- Enable/Disable button
- Timer preset buttons (labelled from the settings)
- Next-activity and session countdowns
- Idle threshold, interval and timer preset settings, with restore defaults
- Activity log (mirrors the package's log records)

The engine runs on the tkinter event loop itself (TkScheduler), so every
callback here is already on the UI thread.
"""

import tkinter as tk
from tkinter import scrolledtext
from typing import Dict, List, Optional
import logging
from datetime import datetime

from .engine import EngineController, EnginePhase, EngineState
from .settings import (
    IDLE_THRESHOLD,
    JIGGLE_INTERVAL_MAX,
    JIGGLE_INTERVAL_MIN,
    PRESET_KEYS,
    TIMER_DURATION_1,
    TIMER_DURATION_2,
    TIMER_DURATION_3,
    Settings,
    format_duration,
)
from .timers import TkScheduler

logger = logging.getLogger(__name__)


# ============================================================================
# Color Scheme and Styling
# ============================================================================

class Colors:
    """Application color scheme."""
    BACKGROUND = "#1e1e2e"      # Dark background
    SURFACE = "#2a2a3c"         # Card background
    PRIMARY = "#89b4fa"         # Blue accent
    SUCCESS = "#a6e3a1"         # Green for active
    WARNING = "#fab387"         # Orange for waiting
    ERROR = "#f38ba8"           # Red for off
    TEXT = "#cdd6f4"            # Light text
    TEXT_DIM = "#6c7086"        # Dimmed text


class Fonts:
    """Application fonts."""
    TITLE = ("Segoe UI", 16, "bold")
    HEADING = ("Segoe UI", 12, "bold")
    BODY = ("Segoe UI", 10)
    MONO = ("Consolas", 10)
    STATUS = ("Segoe UI", 14, "bold")


# ============================================================================
# Settings form
# ============================================================================

# (settings key, label, seconds per entered unit)
SETTINGS_FIELDS = (
    (IDLE_THRESHOLD, "Idle threshold (s):", 1),
    (JIGGLE_INTERVAL_MIN, "Interval min (s):", 1),
    (JIGGLE_INTERVAL_MAX, "Interval max (s):", 1),
    (TIMER_DURATION_1, "Timer 1 (min):", 60),
    (TIMER_DURATION_2, "Timer 2 (min):", 60),
    (TIMER_DURATION_3, "Timer 3 (min):", 60),
)


def settings_form_values(settings: Settings) -> Dict[str, str]:
    """Current settings as the text shown in the form entries."""
    return {
        key: f"{settings.get(key) / unit:.0f}"
        for key, _, unit in SETTINGS_FIELDS
    }


def apply_settings_form(settings: Settings, form: Dict[str, str]) -> List[str]:
    """
    Write the form entries back into settings.

    Presets go through set_preset_duration so the 5 minute floor applies.
    Entries that are not numbers are skipped.

    Returns:
        Keys of the entries that were rejected
    """
    rejected = []
    for key, _, unit in SETTINGS_FIELDS:
        try:
            value = float(form[key]) * unit
        except (KeyError, ValueError):
            rejected.append(key)
            continue

        if key in PRESET_KEYS:
            settings.set_preset_duration(PRESET_KEYS.index(key) + 1, value)
        else:
            settings.set(key, value)
    return rejected


class _LogWidgetHandler(logging.Handler):
    """Forwards log records to the activity log."""

    def __init__(self, app: "StayAwakeApp"):
        super().__init__(level=logging.INFO)
        self._app = app

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._app.log_message(record.getMessage())
        except Exception:
            self.handleError(record)


class StayAwakeApp:
    """
    Main application window.

    Args:
        controller_factory: Called with the TkScheduler and a state-change
            callback, returns the EngineController to drive. Keeps the
            window free of any platform backend.
        settings: Shared Settings instance
    """

    REFRESH_MS = 500

    def __init__(self, controller_factory, settings: Settings):
        self.root = tk.Tk()
        self.root.title("StayAwake")
        self.root.geometry("420x660")
        self.root.configure(bg=Colors.BACKGROUND)
        self.root.minsize(380, 580)

        self.settings = settings
        self.scheduler = TkScheduler(self.root)
        self.controller: EngineController = controller_factory(
            self.scheduler, self._on_state_change
        )

        self._log_handler: Optional[_LogWidgetHandler] = None

        self._create_widgets()
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)

        logger.info("StayAwakeApp initialized")

    # ------------------------------------------------------------------
    # Widgets
    # ------------------------------------------------------------------

    def _create_widgets(self) -> None:
        main_frame = tk.Frame(self.root, bg=Colors.BACKGROUND)
        main_frame.pack(fill=tk.BOTH, expand=True, padx=20, pady=20)

        self._create_header(main_frame)
        self._create_status_card(main_frame)
        self._create_controls(main_frame)
        self._create_settings_panel(main_frame)
        self._create_activity_log(main_frame)

    def _create_header(self, parent: tk.Frame) -> None:
        tk.Label(
            parent,
            text="StayAwake",
            font=Fonts.TITLE,
            bg=Colors.BACKGROUND,
            fg=Colors.PRIMARY
        ).pack(anchor=tk.W)

        tk.Label(
            parent,
            text="Keeps the machine awake while you are away",
            font=Fonts.BODY,
            bg=Colors.BACKGROUND,
            fg=Colors.TEXT_DIM
        ).pack(anchor=tk.W, pady=(0, 10))

    def _create_status_card(self, parent: tk.Frame) -> None:
        card = tk.Frame(parent, bg=Colors.SURFACE, padx=20, pady=15)
        card.pack(fill=tk.X, pady=5)

        self.status_label = tk.Label(
            card,
            text="OFF",
            font=Fonts.STATUS,
            bg=Colors.SURFACE,
            fg=Colors.ERROR
        )
        self.status_label.pack()

        self.next_action_label = tk.Label(
            card, text="", font=Fonts.BODY, bg=Colors.SURFACE, fg=Colors.TEXT
        )
        self.next_action_label.pack()

        self.session_label = tk.Label(
            card, text="", font=Fonts.BODY, bg=Colors.SURFACE, fg=Colors.TEXT_DIM
        )
        self.session_label.pack()

        self.count_label = tk.Label(
            card, text="Activities: 0", font=Fonts.BODY, bg=Colors.SURFACE, fg=Colors.TEXT_DIM
        )
        self.count_label.pack()

    def _create_controls(self, parent: tk.Frame) -> None:
        frame = tk.Frame(parent, bg=Colors.BACKGROUND)
        frame.pack(fill=tk.X, pady=10)

        self.toggle_btn = tk.Button(
            frame,
            text="Enable",
            command=self._on_toggle,
            font=Fonts.HEADING,
            bg=Colors.SUCCESS,
            fg=Colors.BACKGROUND,
            relief=tk.FLAT,
            cursor="hand2"
        )
        self.toggle_btn.pack(fill=tk.X)

        presets = tk.Frame(frame, bg=Colors.BACKGROUND)
        presets.pack(fill=tk.X, pady=(8, 0))

        self.preset_buttons = []
        for index in (1, 2, 3):
            btn = tk.Button(
                presets,
                command=lambda i=index: self._on_preset(i),
                font=Fonts.BODY,
                bg=Colors.SURFACE,
                fg=Colors.TEXT,
                relief=tk.FLAT,
                cursor="hand2"
            )
            btn.pack(side=tk.LEFT, expand=True, fill=tk.X, padx=2)
            self.preset_buttons.append(btn)
        self._refresh_preset_labels()

    def _create_settings_panel(self, parent: tk.Frame) -> None:
        frame = tk.Frame(parent, bg=Colors.SURFACE, padx=15, pady=10)
        frame.pack(fill=tk.X, pady=5)

        values = settings_form_values(self.settings)
        self.form_vars: Dict[str, tk.StringVar] = {}

        for row, (key, label, _) in enumerate(SETTINGS_FIELDS):
            var = tk.StringVar(value=values[key])
            self.form_vars[key] = var
            tk.Label(
                frame, text=label, font=Fonts.BODY, bg=Colors.SURFACE, fg=Colors.TEXT
            ).grid(row=row, column=0, sticky=tk.W, pady=2)
            tk.Entry(
                frame, textvariable=var, width=8, font=Fonts.BODY,
                bg=Colors.BACKGROUND, fg=Colors.TEXT, insertbackground=Colors.TEXT,
                relief=tk.FLAT
            ).grid(row=row, column=1, sticky=tk.W, padx=10, pady=2)

        tk.Button(
            frame,
            text="Apply",
            command=self._on_apply_settings,
            font=Fonts.BODY,
            bg=Colors.PRIMARY,
            fg=Colors.BACKGROUND,
            relief=tk.FLAT,
            cursor="hand2"
        ).grid(row=len(SETTINGS_FIELDS), column=0, sticky=tk.EW, pady=(6, 0), padx=(0, 4))

        tk.Button(
            frame,
            text="Restore defaults",
            command=self._on_restore_defaults,
            font=Fonts.BODY,
            bg=Colors.SURFACE,
            fg=Colors.TEXT,
            relief=tk.FLAT,
            cursor="hand2"
        ).grid(row=len(SETTINGS_FIELDS), column=1, sticky=tk.EW, pady=(6, 0))

    def _create_activity_log(self, parent: tk.Frame) -> None:
        log_frame = tk.Frame(parent, bg=Colors.BACKGROUND)
        log_frame.pack(fill=tk.BOTH, expand=True, pady=10)

        header = tk.Frame(log_frame, bg=Colors.BACKGROUND)
        header.pack(fill=tk.X)

        tk.Label(
            header, text="Activity Log", font=Fonts.HEADING,
            bg=Colors.BACKGROUND, fg=Colors.TEXT
        ).pack(side=tk.LEFT)

        tk.Button(
            header, text="Clear", command=self._clear_log, font=Fonts.BODY,
            bg=Colors.SURFACE, fg=Colors.TEXT, relief=tk.FLAT, cursor="hand2"
        ).pack(side=tk.RIGHT)

        self.log_text = scrolledtext.ScrolledText(
            log_frame,
            font=Fonts.MONO,
            bg=Colors.SURFACE,
            fg=Colors.TEXT,
            relief=tk.FLAT,
            height=8,
            state=tk.DISABLED
        )
        self.log_text.pack(fill=tk.BOTH, expand=True, pady=(8, 0))

    # ------------------------------------------------------------------
    # Log
    # ------------------------------------------------------------------

    def log_message(self, message: str) -> None:
        timestamp = datetime.now().strftime("%H:%M:%S")
        self.log_text.configure(state=tk.NORMAL)
        self.log_text.insert(tk.END, f"[{timestamp}] {message}\n")
        self.log_text.see(tk.END)
        self.log_text.configure(state=tk.DISABLED)

    def _clear_log(self) -> None:
        self.log_text.configure(state=tk.NORMAL)
        self.log_text.delete(1.0, tk.END)
        self.log_text.configure(state=tk.DISABLED)

    # ------------------------------------------------------------------
    # State display
    # ------------------------------------------------------------------

    def _format_time(self, seconds: float) -> str:
        """HH:MM:SS for long spans, MM:SS otherwise."""
        seconds = int(seconds)
        hours, rest = divmod(seconds, 3600)
        minutes, secs = divmod(rest, 60)
        if hours:
            return f"{hours:d}:{minutes:02d}:{secs:02d}"
        return f"{minutes:02d}:{secs:02d}"

    def _refresh_preset_labels(self) -> None:
        for btn, duration in zip(self.preset_buttons, self.settings.preset_durations):
            btn.configure(text=format_duration(duration))

    def _on_state_change(self, state: EngineState) -> None:
        self._refresh()

    def _refresh(self) -> None:
        phase = self.controller.phase
        state = self.controller.state

        if phase == EnginePhase.DISABLED:
            self.status_label.configure(text="OFF", fg=Colors.ERROR)
            self.toggle_btn.configure(text="Enable", bg=Colors.SUCCESS)
        elif phase == EnginePhase.ARMED:
            self.status_label.configure(text="WAITING FOR IDLE", fg=Colors.WARNING)
            self.toggle_btn.configure(text="Disable", bg=Colors.ERROR)
        else:
            self.status_label.configure(text="ACTIVE", fg=Colors.SUCCESS)
            self.toggle_btn.configure(text="Disable", bg=Colors.ERROR)

        remaining = self.controller.seconds_until_next_activity
        if remaining is None:
            self.next_action_label.configure(text="")
        else:
            self.next_action_label.configure(text=f"Next activity in {int(remaining)}s")

        session = self.controller.seconds_until_session_end
        if session is None:
            self.session_label.configure(text="")
        else:
            self.session_label.configure(text=f"Turns off in {self._format_time(session)}")

        self.count_label.configure(text=f"Activities: {state.activity_count}")

    def _refresh_loop(self) -> None:
        self._refresh()
        self.root.after(self.REFRESH_MS, self._refresh_loop)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _on_toggle(self) -> None:
        self.controller.toggle_enabled()

    def _on_preset(self, index: int) -> None:
        self.controller.enable_for_preset(index)

    def _sync_form(self) -> None:
        """Show the values as corrected by Settings."""
        for key, value in settings_form_values(self.settings).items():
            self.form_vars[key].set(value)

    def _on_apply_settings(self) -> None:
        form = {key: var.get() for key, var in self.form_vars.items()}
        if apply_settings_form(self.settings, form):
            self.log_message("Settings must be numbers")

        self._sync_form()
        logger.info(
            f"Settings: idle {self.settings.idle_threshold:.0f}s, interval "
            f"{self.settings.jiggle_interval_min:.0f}-{self.settings.jiggle_interval_max:.0f}s"
        )

    def _on_restore_defaults(self) -> None:
        self.settings.reset_to_defaults()
        self._sync_form()
        logger.info("Settings restored to defaults")

    def _on_close(self) -> None:
        self.controller.shutdown()
        self.scheduler.stop()
        if self._log_handler:
            logging.getLogger("stayawake").removeHandler(self._log_handler)
        self.root.destroy()

    def run(self) -> None:
        """Start the engine and the tkinter main loop."""
        self._log_handler = _LogWidgetHandler(self)
        logging.getLogger("stayawake").addHandler(self._log_handler)

        self.settings.subscribe(lambda key: self._refresh_preset_labels())
        self.controller.start()
        self._refresh_loop()

        self.log_message("StayAwake ready")
        self.root.mainloop()
