"""
MODULE OVERVIEW:
The Rich Terminal Dashboard for a database listener.

WHAT IS HAPPENING HERE:
The listener runs in the background and pushes every notice and state change
through its callbacks; we keep the latest few and redraw the Layout four times a
second. Keep-alives are counted but not listed, otherwise they would crowd the
feed every thirty seconds.
"""

from rich.live import Live
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from collections import deque
from datetime import datetime
import asyncio
import json

from client.listener import DatabaseListener
from shared.models import DecodeFailure, KeepAlive, Put, SessionState, StreamNotice, Unknown

STATE_COLORS = {
    SessionState.STREAMING.value: "green",
    SessionState.CONNECTING.value: "yellow",
    SessionState.REDIRECTING.value: "yellow",
}

class Visualizer:
    def __init__(self, listener: DatabaseListener):
        self.listener = listener
        self.recent_events = deque(maxlen=10)
        self.status = SessionState.IDLE.value
        self.timeline = deque(maxlen=5)
        self.last_keep_alive: str | None = None

    def on_status_change(self, status: str):
        self.status = status
        ts = datetime.now().strftime("%H:%M:%S")
        self.timeline.appendleft(f"[{ts}] State: {status}")

    def on_event(self, notice: StreamNotice):
        ts = datetime.now().strftime("%H:%M:%S")
        if isinstance(notice, KeepAlive):
            self.last_keep_alive = ts
            return
        if isinstance(notice, Put):
            row = ("put", notice.path or "?", json.dumps(notice.data))
        elif isinstance(notice, Unknown):
            row = ("unknown", "-", notice.raw_event_name)
        elif isinstance(notice, DecodeFailure):
            row = ("dropped", "-", notice.reason)
        else:
            return
        detail = row[2][:40] + "..." if len(row[2]) > 40 else row[2]
        self.recent_events.appendleft((ts, row[0], row[1], detail))

    def generate_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="main")
        )
        layout["main"].split_row(
            Layout(name="left", ratio=2),
            Layout(name="right", ratio=1)
        )
        layout["right"].split_column(
            Layout(name="stats"),
            Layout(name="timeline")
        )

        color = STATE_COLORS.get(self.status, "red")
        layout["header"].update(Panel(f"[{color} bold]Stream: {self.listener.label} | Status: {self.status}[/]", style=color))

        table = Table(title="Live Event Feed", expand=True)
        table.add_column("Time", justify="left", style="cyan", no_wrap=True)
        table.add_column("Kind", style="magenta")
        table.add_column("Path", style="blue")
        table.add_column("Data", style="green")

        for e in self.recent_events:
            table.add_row(*e)

        layout["left"].update(Panel(table, title="Feed"))

        stats = self.listener.stats
        stats_text = (
            f"Puts: {stats['puts']}\n"
            f"Keep-alives: {stats['keep_alives']} (last {self.last_keep_alive or '-'})\n"
            f"Unknown: {stats['unknown_events']}  Dropped: {stats['decode_errors']}\n"
            f"Reconnects: {stats['reconnect_count']}  Redirects: {stats['redirect_count']}\n"
            f"Bytes: {stats['bytes_received']}"
        )
        layout["stats"].update(Panel(stats_text, title="Connection Stats"))

        timeline_text = "\n".join(self.timeline)
        layout["timeline"].update(Panel(timeline_text, title="Timeline"))

        return layout

    async def run(self, duration_s: float | None):
        async def event_hook(e): self.on_event(e)
        async def status_hook(s): self.on_status_change(s)

        self.listener.set_callbacks(event_hook, status_hook)

        listener_task = asyncio.create_task(self.listener.run(duration_s))

        with Live(self.generate_layout(), refresh_per_second=4) as live:
            while not listener_task.done():
                live.update(self.generate_layout())
                await asyncio.sleep(0.25)
