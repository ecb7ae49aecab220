"""Statistics tracking and reporting for the lrcd relay."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .service import RelayService


class StatsManager:
    """
    Lifetime counters for the relay.

    Tracks:
    - Connections and inbound lines
    - Channel broadcasts, mentions and reactions
    - Private messages
    - Joins/leaves
    - Errors sent back to clients
    """

    def __init__(self, hub: RelayService) -> None:
        self.hub = hub

        self.started_wall_time: float | None = None
        self.started_monotonic: float | None = None

        self._counters: dict[str, int] = {
            "connections": 0,
            "lines_in": 0,
            "broadcasts": 0,
            "mentions": 0,
            "private_msgs": 0,
            "reactions": 0,
            "joins": 0,
            "leaves": 0,
            "errors_sent": 0,
        }

    def set_start_time(self) -> None:
        self.started_wall_time = time.time()
        self.started_monotonic = time.monotonic()

    def inc(self, key: str, delta: int = 1) -> None:
        with self.hub._state_lock:
            self._counters[key] = int(self._counters.get(key, 0)) + int(delta)

    def get(self, key: str) -> int:
        with self.hub._state_lock:
            return int(self._counters.get(key, 0))

    def format_stats(self) -> str:
        """Format current statistics as a human-readable, multi-line string."""
        from . import __version__

        started = self.started_monotonic
        uptime_s = (time.monotonic() - started) if started is not None else 0.0

        with self.hub._state_lock:
            sessions = self.hub.session_manager.get_stats()
            channels = self.hub.channel_manager.get_stats()
            messages_stored = len(self.hub.ledger)
            c = dict(self._counters)

        lines: list[str] = []
        lines.append(f"lrcd {__version__} stats")
        lines.append(f"uptime_s={uptime_s:.1f}")
        lines.append(
            f"clients_total={sessions['total']} "
            f"clients_named={sessions['named']} "
            f"clients_in_channel={sessions['in_channel']}"
        )
        lines.append(
            f"channels={channels['channels_total']} memberships={channels['memberships']}"
        )
        if channels["top_channels"]:
            lines.append(
                "top_channels="
                + ", ".join(f"{name}:{n}" for name, n in channels["top_channels"])
            )
        lines.append(
            "io: connections={} lines_in={} errors_sent={}".format(
                c.get("connections", 0),
                c.get("lines_in", 0),
                c.get("errors_sent", 0),
            )
        )
        lines.append(
            "events: joins={} leaves={} broadcasts={} mentions={} private={} reactions={}".format(
                c.get("joins", 0),
                c.get("leaves", 0),
                c.get("broadcasts", 0),
                c.get("mentions", 0),
                c.get("private_msgs", 0),
                c.get("reactions", 0),
            )
        )
        lines.append(f"ledger: messages={messages_stored}")

        return "\n".join(lines)
