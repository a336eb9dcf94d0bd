import json
import logging
from redis.asyncio import from_url as redis_from_url
from audiolink.core.config import Settings
from audiolink.platform.ports.event_bus import EventBusPort

log = logging.getLogger("bus.redis")

class RedisEventBus(EventBusPort):
    """Appends audio lifecycle events to a capped Redis stream."""

    def __init__(self, settings: Settings):
        if not settings.REDIS_URL:
            raise RuntimeError("REDIS_URL not configured")
        self.redis = redis_from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
        self.stream = settings.REDIS_STREAM or "audiolink.events"
        self.maxlen = settings.REDIS_STREAM_MAXLEN

    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None:
        entry = {
            "topic": topic,
            "key": key,
            "event_type": value.get("event_type", ""),
            "value": json.dumps(value, default=str),
            "headers": json.dumps(headers or {}),
        }
        entry_id = await self.redis.xadd(self.stream, entry, maxlen=self.maxlen, approximate=True)
        log.debug("[REDIS BUS] XADD stream=%s id=%s event=%s key=%s", self.stream, entry_id, entry["event_type"], key)

    async def close(self) -> None:
        await self.redis.aclose()
