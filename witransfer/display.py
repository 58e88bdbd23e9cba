"""
Terminal peer list.

Renders the registry snapshot as a rich table that redraws in place
whenever a peer appears or expires. Rows are sorted by address so the
list does not jump around as announcements arrive.
"""

import threading
from typing import List, Optional

from rich.console import Console
from rich.live import Live
from rich.style import Style
from rich.table import Table

from .discovery.models import PeerEntry


class PeerTableDisplay:
    """
    Display sink for a discovery session.

    Pass `display.on_change` as a session sink and use the display as a
    context manager around the session's lifetime.
    """

    def __init__(self, console: Optional[Console] = None, title: str = "Nearby devices",
                 prompt: Optional[str] = None, text_color: Optional[str] = None,
                 background_color: Optional[str] = None):
        """
        Initialize the display.

        Args:
            console: Console to draw on
            title: Table title
            prompt: Line shown under the table
            text_color: Row text color (any rich color name or hex)
            background_color: Row background color

        Raises:
            rich.color.ColorParseError: If a color is not recognised
        """
        self.console = console or Console()
        self.title = title
        self.prompt = prompt
        self.style = Style(color=text_color, bgcolor=background_color)

        self._peers: List[PeerEntry] = []
        self._lock = threading.Lock()
        self._live: Optional[Live] = None

    def on_change(self, snapshot: List[PeerEntry]):
        """Replace the shown peers. Safe to call from any thread."""
        with self._lock:
            self._peers = sorted(snapshot, key=lambda p: p.address)
            live = self._live
        if live is not None:
            live.update(self.render())

    def render(self) -> Table:
        """Build the table for the current peers."""
        with self._lock:
            peers = list(self._peers)

        table = Table(title=self.title, caption=self.prompt, style=self.style)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Device", style="cyan")
        table.add_column("Address", style="yellow")

        for index, peer in enumerate(peers, start=1):
            table.add_row(str(index), peer.label, peer.address)

        if not peers:
            table.caption = "[dim]Searching for devices...[/dim]"

        return table

    def __enter__(self) -> 'PeerTableDisplay':
        live = Live(self.render(), console=self.console, refresh_per_second=4)
        live.__enter__()
        with self._lock:
            self._live = live
        return self

    def __exit__(self, *exc_info):
        with self._lock:
            live, self._live = self._live, None
        if live is not None:
            live.update(self.render())
            live.__exit__(*exc_info)
