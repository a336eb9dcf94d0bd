import json
import logging
from audiolink.platform.ports.event_bus import EventBusPort

log = logging.getLogger("bus.noop")

class NoopEventBus(EventBusPort):
    """Default bus for a single node: audio lifecycle events only reach the log."""

    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None:
        log.info(
            "[NOOP BUS] topic=%s key=%s event=%s value=%s",
            topic, key, value.get("event_type", "-"), json.dumps(value, sort_keys=True, default=str),
        )

    async def close(self) -> None:
        return None
