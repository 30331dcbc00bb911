from typing import AsyncIterable, NewType

from dishka import Provider, Scope, provide

from indexsync.config import Config
from indexsync.domain.indexing.port.search_engine import SearchEngine
from indexsync.infrastructure.search.client import OpenSearchClient
from indexsync.infrastructure.search.indices import IndexDefinition, build_index_definitions

IndexDefinitions = NewType("IndexDefinitions", list[IndexDefinition])


class SearchProvider(Provider):
    @provide(scope=Scope.APP)
    async def get_search_engine(self, config: Config) -> AsyncIterable[SearchEngine]:
        client = OpenSearchClient.from_config(config.search)
        yield client
        await client.aclose()

    @provide(scope=Scope.APP)
    def get_index_definitions(self, config: Config) -> IndexDefinitions:
        return IndexDefinitions(build_index_definitions(replicas=config.search.replicas))
