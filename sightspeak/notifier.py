"""
User-facing notifications.

Transient notifications report recoverable problems (a frame that could
not be captured, a failed description call). Overlay messages are
persistent and reserved for session-ending conditions such as a denied
camera.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional

from rich.console import Console
from rich.panel import Panel

from .diagnostics import console as default_console


_LEVEL_STYLE = {
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "bold red",
}


@dataclass
class Notification:
    title: str
    message: str = ""
    level: str = "info"
    persistent: bool = False
    timestamp: float = field(default_factory=time.time)


class Notifier:
    """Base notifier keeping a short history of what was shown."""

    def __init__(self, history_size: int = 50):
        self.history: Deque[Notification] = deque(maxlen=history_size)
        self.overlay_message: Optional[str] = None

    def notify(self, title: str, message: str = "", level: str = "info") -> Notification:
        note = Notification(title=title, message=message, level=level)
        self.history.append(note)
        self._show(note)
        return note

    def overlay(self, message: str) -> Notification:
        note = Notification(title="", message=message, level="error", persistent=True)
        self.overlay_message = message
        self.history.append(note)
        self._show(note)
        return note

    def clear_overlay(self):
        self.overlay_message = None

    def recent(self, level: Optional[str] = None) -> List[Notification]:
        return [n for n in self.history if level is None or n.level == level]

    def _show(self, note: Notification):
        pass


class ConsoleNotifier(Notifier):
    """Renders notifications on a rich console."""

    def __init__(self, console: Optional[Console] = None, history_size: int = 50):
        super().__init__(history_size=history_size)
        self.console = console or default_console

    def _show(self, note: Notification):
        style = _LEVEL_STYLE.get(note.level, "white")
        if note.persistent:
            self.console.print(Panel(note.message, style=style, title="SightSpeak"))
            return
        text = f"[{style}]{note.title}[/{style}]"
        if note.message:
            text += f" {note.message}"
        self.console.print(text)
