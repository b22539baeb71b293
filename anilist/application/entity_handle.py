import asyncio
import logging
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Optional

from anilist.domain.entities import to_model
from anilist.domain.exceptions import MalformedResponseException
from anilist.domain.models import DetailLevel, EntityKind, EntityRecord

logger = logging.getLogger(__name__)

FullLoader = Callable[[EntityKind, int], Awaitable[EntityRecord]]


class EntityHandle:
    """
    Client-facing reference to one catalog entity.

    Known fields are readable without I/O. `hydrate()` upgrades a stub to the
    full record; concurrent callers share one in-flight load, and a caller that
    is cancelled only stops waiting for it.
    """

    def __init__(self, record: EntityRecord, loader: FullLoader):
        self._record = record
        self._loader = loader
        self._pending: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"EntityHandle(kind={self.kind.value}, id={self.id}, detail_level={self.detail_level.value})"

    @property
    def record(self) -> EntityRecord:
        return self._record

    @property
    def kind(self) -> EntityKind:
        return self._record.kind

    @property
    def id(self) -> int:
        return self._record.id

    @property
    def detail_level(self) -> DetailLevel:
        return self._record.detail_level

    @property
    def is_full(self) -> bool:
        return self._record.is_full

    @property
    def fields(self) -> Mapping[str, Any]:
        return MappingProxyType(self._record.fields)

    def get(self, name: str, default: Any = None) -> Any:
        return self._record.fields.get(name, default)

    def __getitem__(self, name: str) -> Any:
        return self._record.fields[name]

    def __contains__(self, name: str) -> bool:
        return name in self._record.fields

    def as_model(self):
        """Typed view of the known fields (Anime, Manga, Character, ...)."""
        return to_model(self._record)

    async def hydrate(self) -> EntityRecord:
        """
        Loads the full record for this entity.

        Returns immediately when the record is already full. Otherwise joins the
        load in flight, or starts one. On failure the stub stays as it was.

        Returns:
            EntityRecord: The full record.
        """
        if self._record.is_full:
            return self._record

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._load())
            self._pending.add_done_callback(self._clear_pending)

        return await asyncio.shield(self._pending)

    async def _load(self) -> EntityRecord:
        full = await self._loader(self.kind, self.id)
        if full.kind is not self.kind or full.id != self.id:
            raise MalformedResponseException(
                f"Hydrating {self.kind.value} {self.id} returned {full.kind.value} {full.id}."
            )
        if not full.is_full:
            raise MalformedResponseException(f"Hydrating {self.kind.value} {self.id} returned a stub record.")

        self._record = full
        logger.info(f"Hydrated {self.kind.value} {self.id}.")
        return full

    def _clear_pending(self, task: asyncio.Task) -> None:
        if self._pending is task:
            self._pending = None
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Hydration of {self.kind.value} {self.id} failed: {task.exception()}")
