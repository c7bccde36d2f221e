"""
Notifier that prints confirmations to the terminal.
"""

from rich.console import Console
from rich.panel import Panel

from ..services.booking_service import PermissionState


class ConsoleNotifier:
    """Shows notifications as rich panels; used by the CLI without OneSignal."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    async def request_permission(self) -> PermissionState:
        return PermissionState.GRANTED

    async def notify(self, title: str, body: str) -> None:
        self.console.print(Panel.fit(body, title=f"🔔 {title}"))
