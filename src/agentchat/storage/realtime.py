"""In-process realtime feed — push insert events to filtered channels."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)

InsertEvent = dict[str, Any]
"""Shape: ``{"new": row}`` where ``row`` is the inserted row as a dict."""

InsertCallback = Callable[[InsertEvent], None]
Unsubscribe = Callable[[], None]


@dataclass
class _Channel:
    table: str
    eq: dict[str, Any]
    callback: InsertCallback
    active: bool = field(default=True)

    def matches(self, table: str, row: dict[str, Any]) -> bool:
        return table == self.table and all(row.get(k) == v for k, v in self.eq.items())


class RealtimeHub:
    """Fan out row inserts to subscribers whose equality filter matches.

    Delivery is asynchronous: callbacks are scheduled on the running event
    loop after the insert returns, so a subscriber can observe the event
    before or after the writer sees its own result. Consumers must tolerate
    duplicates.
    """

    def __init__(self) -> None:
        self._channels: list[_Channel] = []

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    def subscribe(
        self, table: str, eq: dict[str, Any], callback: InsertCallback
    ) -> Unsubscribe:
        """Open a channel; the returned callable closes it (idempotent)."""
        channel = _Channel(table=table, eq=dict(eq), callback=callback)
        self._channels.append(channel)
        logger.debug("Realtime channel opened on %s %s", table, eq)

        def unsubscribe() -> None:
            if not channel.active:
                return
            channel.active = False
            self._channels.remove(channel)
            logger.debug("Realtime channel closed on %s %s", table, eq)

        return unsubscribe

    def publish(self, table: str, row: dict[str, Any]) -> None:
        """Schedule delivery of an insert event to every matching channel."""
        targets = [c for c in self._channels if c.matches(table, row)]
        if not targets:
            return
        loop = asyncio.get_running_loop()
        for channel in targets:
            loop.call_soon(self._dispatch, channel, {"new": dict(row)})

    @staticmethod
    def _dispatch(channel: _Channel, event: InsertEvent) -> None:
        # The channel may have been closed between publish and delivery.
        if not channel.active:
            return
        try:
            channel.callback(event)
        except Exception:
            logger.exception("Realtime subscriber on %s raised", channel.table)
