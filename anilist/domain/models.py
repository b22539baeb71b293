from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar
from pydantic import BaseModel, Field, ConfigDict

T = TypeVar("T")


class EntityKind(str, Enum):
    """Catalog entity kinds served by the AniList GraphQL API."""

    ANIME = "anime"
    MANGA = "manga"
    CHARACTER = "character"
    PERSON = "person"
    USER = "user"
    STUDIO = "studio"

    @property
    def root_field(self) -> str:
        """GraphQL root field used to query a single entity of this kind."""
        return _ROOT_FIELDS[self]

    @property
    def list_field(self) -> str:
        """Field under `Page` that holds a list of entities of this kind."""
        return _LIST_FIELDS[self]

    @property
    def media_type(self) -> Optional[str]:
        if self in (EntityKind.ANIME, EntityKind.MANGA):
            return self.name
        return None


_ROOT_FIELDS = {
    EntityKind.ANIME: "Media",
    EntityKind.MANGA: "Media",
    EntityKind.CHARACTER: "Character",
    EntityKind.PERSON: "Staff",
    EntityKind.USER: "User",
    EntityKind.STUDIO: "Studio",
}

_LIST_FIELDS = {
    EntityKind.ANIME: "media",
    EntityKind.MANGA: "media",
    EntityKind.CHARACTER: "characters",
    EntityKind.PERSON: "staff",
    EntityKind.USER: "users",
    EntityKind.STUDIO: "studios",
}


class DetailLevel(str, Enum):
    STUB = "stub"
    FULL = "full"


class EntityRecord(BaseModel):
    """
    Immutable snapshot of one catalog entity.
    The detail level is the one that was requested, not inferred from the fields present.
    """
    model_config = ConfigDict(frozen=True)

    kind: EntityKind = Field(..., description="Kind of catalog entity")
    id: int = Field(..., ge=1, description="Service-assigned id, unique per kind")
    detail_level: DetailLevel = Field(..., description="Detail level of the query that produced the record")
    fields: Dict[str, Any] = Field(
        default_factory=dict,
        description="Raw field values keyed by their GraphQL (camelCase) names",
    )

    @property
    def is_full(self) -> bool:
        return self.detail_level is DetailLevel.FULL


class Page(BaseModel, Generic[T]):
    """One page of a list or search result."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    items: List[T] = Field(default_factory=list)
    page: int = Field(..., ge=1, description="Current page index, starting at 1")
    per_page: int = Field(..., ge=1)
    has_next: bool = Field(False, description="Whether the service reports a following page")
    total: Optional[int] = Field(None, ge=0, description="Total item count, when the service reports it")
    last_page: Optional[int] = Field(None, ge=0)


class RateBudget(BaseModel):
    """Locally tracked request allowance for the current service window."""

    limit: int = Field(..., ge=1, description="Requests allowed per window")
    remaining: int = Field(..., ge=0)
    window_reset_at: float = Field(..., description="Epoch seconds at which the window resets")
