import asyncio
import logging
from typing import Dict, Optional, Tuple

from anilist.application.entity_handle import EntityHandle
from anilist.config import ClientConfig
from anilist.domain.exceptions import MalformedResponseException
from anilist.domain.models import DetailLevel, EntityKind, EntityRecord, Page
from anilist.infrastructure import query_builder
from anilist.infrastructure.acl import AniListTranslator
from anilist.infrastructure.graphql_client import AniListGraphQLClient
from anilist.infrastructure.query_builder import FilterSelector, IdSelector, SearchSelector, Selector
from anilist.infrastructure.rate_limiter import RateLimiter
from anilist.infrastructure.transport import FetchFunction, Transport, build_transport

logger = logging.getLogger(__name__)


class AniListClient:
    """
    Entry point for reading the AniList catalog.

    Builds queries, sends them through the rate-limited pipeline and returns
    entity handles or pages of handles. Several clients may share one
    RateLimiter when they use the same credential.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        transport: Optional[Transport] = None,
        rate_limiter: Optional[RateLimiter] = None,
        fetch: Optional[FetchFunction] = None,
    ):
        self.config = config or ClientConfig()
        self._owns_transport = transport is None
        self.transport = transport or build_transport(self.config, fetch)
        self.rate_limiter = rate_limiter or RateLimiter(
            limit=self.config.rate_limit,
            window=self.config.rate_window,
            max_wait=self.config.max_rate_limit_wait,
        )
        self.graphql_client = AniListGraphQLClient(self.config, self.transport, self.rate_limiter)
        # Full loads in flight, shared by every handle of the same entity.
        self._inflight: Dict[Tuple[EntityKind, int], asyncio.Task] = {}

    async def __aenter__(self) -> "AniListClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.close()
        return False

    async def close(self) -> None:
        if self._owns_transport:
            await self.transport.close()

    async def _query(self, kind: EntityKind, selector: Selector, detail_level: DetailLevel):
        document = query_builder.build(kind, selector, detail_level)
        response = await self.graphql_client.execute(document)
        return AniListTranslator.parse(document, response)

    async def _fetch_record(self, kind: EntityKind, entity_id: int, detail_level: DetailLevel) -> EntityRecord:
        record = await self._query(kind, IdSelector(id=entity_id), detail_level)
        if not isinstance(record, EntityRecord):
            raise MalformedResponseException(f"Expected a single {kind.value} record.")
        return record

    async def _load_full(self, kind: EntityKind, entity_id: int) -> EntityRecord:
        key = (kind, entity_id)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_record(kind, entity_id, DetailLevel.FULL))
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        return await asyncio.shield(task)

    def _forget(self, key: Tuple[EntityKind, int], task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            task.exception()

    def _handle(self, record: EntityRecord) -> EntityHandle:
        return EntityHandle(record, self._load_full)

    def _handles(self, page: Page[EntityRecord]) -> Page[EntityHandle]:
        return Page[EntityHandle](
            items=[self._handle(record) for record in page.items],
            page=page.page,
            per_page=page.per_page,
            has_next=page.has_next,
            total=page.total,
            last_page=page.last_page,
        )

    async def get_by_id(
        self, kind: EntityKind, entity_id: int, detail: DetailLevel = DetailLevel.STUB
    ) -> EntityHandle:
        """
        Fetches one entity by id.

        Args:
            kind (EntityKind): Kind of entity to fetch.
            entity_id (int): Service-assigned id.
            detail (DetailLevel): STUB for a lightweight handle, FULL to load every field in one query.

        Returns:
            EntityHandle: Handle holding the fetched fields.
        """
        if detail is DetailLevel.FULL:
            record = await self._load_full(kind, entity_id)
        else:
            record = await self._fetch_record(kind, entity_id, detail)
        return self._handle(record)

    async def search(
        self,
        kind: EntityKind,
        term: str,
        page: int = 1,
        per_page: Optional[int] = None,
        detail: Optional[DetailLevel] = None,
    ) -> Page[EntityHandle]:
        """
        Searches entities of one kind by free text.

        Only the requested page is fetched; ask for `page + 1` to continue.
        """
        if per_page is None:
            per_page = self.config.per_page
        selector = SearchSelector(term=term, page=page, per_page=per_page)
        result = await self._query(kind, selector, detail or self.config.list_detail_level)
        logger.info(
            f"Search {kind.value} '{term}' page {result.page}: {len(result.items)} results, "
            f"has next: {result.has_next}."
        )
        return self._handles(result)

    async def browse(
        self,
        kind: EntityKind,
        criteria: Optional[FilterSelector] = None,
        detail: Optional[DetailLevel] = None,
    ) -> Page[EntityHandle]:
        """Lists entities of one kind by structured criteria (sort, genre, season, ...)."""
        selector = criteria or FilterSelector(per_page=self.config.per_page)
        result = await self._query(kind, selector, detail or self.config.list_detail_level)
        return self._handles(result)

    async def hydrate(self, handle: EntityHandle) -> EntityRecord:
        return await handle.hydrate()

    async def get_anime(self, anime_id: int, full: bool = True) -> EntityHandle:
        return await self.get_by_id(EntityKind.ANIME, anime_id, _detail(full))

    async def get_manga(self, manga_id: int, full: bool = True) -> EntityHandle:
        return await self.get_by_id(EntityKind.MANGA, manga_id, _detail(full))

    async def get_character(self, character_id: int, full: bool = True) -> EntityHandle:
        return await self.get_by_id(EntityKind.CHARACTER, character_id, _detail(full))

    async def get_person(self, person_id: int, full: bool = True) -> EntityHandle:
        return await self.get_by_id(EntityKind.PERSON, person_id, _detail(full))

    async def get_user(self, user_id: int, full: bool = True) -> EntityHandle:
        return await self.get_by_id(EntityKind.USER, user_id, _detail(full))

    async def get_studio(self, studio_id: int, full: bool = True) -> EntityHandle:
        return await self.get_by_id(EntityKind.STUDIO, studio_id, _detail(full))

    async def search_anime(self, term: str, page: int = 1, per_page: Optional[int] = None) -> Page[EntityHandle]:
        return await self.search(EntityKind.ANIME, term, page, per_page)

    async def search_manga(self, term: str, page: int = 1, per_page: Optional[int] = None) -> Page[EntityHandle]:
        return await self.search(EntityKind.MANGA, term, page, per_page)


def _detail(full: bool) -> DetailLevel:
    return DetailLevel.FULL if full else DetailLevel.STUB
