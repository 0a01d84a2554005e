"""
Live CallAdded listener on the Resgrid eventing hub (SignalR).

Notifications are handled one at a time on the hub's callback thread;
each one fetches the call and runs it through the same BridgeSession the
polling driver uses.
"""

import logging
import threading
from typing import Any, Callable, List, Optional

from signalrcore.hub_connection_builder import HubConnectionBuilder

from .records import as_text

logger = logging.getLogger("resgrid_eso.listener")

# exponential backoff, capped at 30s
RECONNECT_INTERVALS = [1, 2, 4, 8, 16, 30, 30, 30, 30, 30]


def extract_call_id(args: Any) -> str:
    """CallAdded carries the id either bare or inside a call object."""
    payload = args
    if isinstance(payload, (list, tuple)):
        payload = payload[0] if payload else None
    if isinstance(payload, dict):
        return as_text(payload.get("CallId") or payload.get("callId") or payload.get("Id"))
    return as_text(payload)


class CallListener:
    def __init__(self, events_url: str, handler: Callable[[str], Any],
                 token_factory: Optional[Callable[[], str]] = None):
        self.events_url = events_url
        self.handler = handler
        self.token_factory = token_factory
        self.connection = None
        self._lock = threading.Lock()

    def _build(self):
        options = {}
        if self.token_factory is not None:
            options["access_token_factory"] = self.token_factory
        return (
            HubConnectionBuilder()
            .with_url(self.events_url, options=options)
            .with_automatic_reconnect({
                "type": "interval",
                "keep_alive_interval": 10,
                "intervals": RECONNECT_INTERVALS,
            })
            .build()
        )

    def on_call_added(self, args: List[Any]) -> None:
        call_id = extract_call_id(args)
        if not call_id:
            logger.warning(f"CallAdded event without a call id: {args!r}")
            return
        # one notification at a time
        with self._lock:
            outcome = self.handler(call_id)
        if outcome is not None and not getattr(outcome, "success", True):
            logger.error(f"Call {call_id} from live event failed: {getattr(outcome, 'error', '')}")

    def start(self) -> None:
        logger.info(f"Connecting to Resgrid SignalR hub at {self.events_url}...")
        self.connection = self._build()
        self.connection.on_open(lambda: logger.info("Connected to Resgrid SignalR hub"))
        self.connection.on_reconnect(lambda: logger.warning("SignalR connection lost. Reconnecting..."))
        self.connection.on_close(lambda: logger.error("SignalR connection closed"))
        self.connection.on("CallAdded", self.on_call_added)
        self.connection.start()
        logger.info("Registered callback for CallAdded events")

    def stop(self) -> None:
        if self.connection is not None:
            self.connection.stop()
            logger.info("Disconnected from Resgrid SignalR hub")
            self.connection = None
