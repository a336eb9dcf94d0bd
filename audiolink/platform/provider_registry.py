from audiolink.core.config import Settings
from audiolink.platform.ports.object_storage import ObjectStoragePort
from audiolink.platform.adapters.storage_local import LocalFilesystemStorage
from audiolink.platform.ports.event_bus import EventBusPort
from audiolink.platform.adapters.bus_noop import NoopEventBus

class ProviderRegistry:
    """Lazily builds the providers for one application instance."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._object_storage: ObjectStoragePort | None = None
        self._event_bus: EventBusPort | None = None

    def object_storage(self) -> ObjectStoragePort:
        if self._object_storage is None:
            if self.settings.OBJECT_STORAGE_PROVIDER == "s3":
                from audiolink.platform.adapters.storage_s3 import S3Storage
                self._object_storage = S3Storage(self.settings)
            else:
                self._object_storage = LocalFilesystemStorage(self.settings.LOCAL_STORAGE_ROOT)
        return self._object_storage

    def event_bus(self) -> EventBusPort:
        if self._event_bus is None:
            prov = (self.settings.EVENT_BUS_PROVIDER or "noop").lower()
            if prov == "redis":
                from audiolink.platform.adapters.bus_redis import RedisEventBus
                self._event_bus = RedisEventBus(self.settings)
            else:
                self._event_bus = NoopEventBus()
        return self._event_bus

    async def close(self):
        if self._event_bus is not None:
            await self._event_bus.close()
            self._event_bus = None
