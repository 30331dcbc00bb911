from dishka import AsyncContainer, Provider, Scope, from_context, make_async_container

from indexsync.config import Config
from indexsync.infrastructure.event.di import EventProvider
from indexsync.infrastructure.persistence.di import PersistenceProvider
from indexsync.infrastructure.search.di import SearchProvider


class ConfigProvider(Provider):
    config = from_context(provides=Config, scope=Scope.APP)


def create_container(config: Config | None = None) -> AsyncContainer:
    """Build the application container; close it with ``await container.close()``."""
    config = config or Config()

    return make_async_container(
        ConfigProvider(),
        PersistenceProvider(),
        SearchProvider(),
        EventProvider(),
        context={Config: config},
    )
