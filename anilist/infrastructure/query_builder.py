"""
GraphQL document construction for the AniList catalog.

Each entity kind has one ordered catalogue of top-level fields with their
selections. A full query selects every entry; a stub query selects a named
subset of the same entries, so a field shared by both levels always carries
the same nested selection.
"""
from typing import Any, Dict, List, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field

from anilist.domain.exceptions import ValidationException
from anilist.domain.models import DetailLevel, EntityKind

MAX_PER_PAGE = 50

_FUZZY_DATE = "{ year month day }"
_MEDIA_TITLE = "{ romaji english native userPreferred }"
_NAME = "{ first middle last full native alternative alternativeSpoiler userPreferred }"
_IMAGE = "{ large medium }"

_MEDIA_COMMON: Tuple[Tuple[str, str], ...] = (
    ("id", ""),
    ("idMal", ""),
    ("title", _MEDIA_TITLE),
    ("type", ""),
    ("format", ""),
    ("status", ""),
    ("description", ""),
    ("startDate", _FUZZY_DATE),
    ("endDate", _FUZZY_DATE),
    ("countryOfOrigin", ""),
    ("isLicensed", ""),
    ("source", ""),
    ("hashtag", ""),
    ("updatedAt", ""),
    ("coverImage", "{ extraLarge large medium color }"),
    ("bannerImage", ""),
    ("genres", ""),
    ("synonyms", ""),
    ("averageScore", ""),
    ("meanScore", ""),
    ("popularity", ""),
    ("isLocked", ""),
    ("trending", ""),
    ("favourites", ""),
    ("tags", "{ id name description category rank isMediaSpoiler }"),
    ("relations", "{ edges { relationType node { id type format title " + _MEDIA_TITLE + " } } }"),
    ("characters", "{ edges { role node { id name " + _NAME + " image " + _IMAGE + " siteUrl } } }"),
    ("staff", "{ nodes { id name " + _NAME + " image " + _IMAGE + " siteUrl } }"),
    ("isAdult", ""),
    ("externalLinks", "{ id url site }"),
    ("siteUrl", ""),
)

_ANIME_ONLY: Tuple[Tuple[str, str], ...] = (
    ("season", ""),
    ("seasonYear", ""),
    ("seasonInt", ""),
    ("episodes", ""),
    ("duration", ""),
    ("studios", "{ nodes { id name isAnimationStudio siteUrl favourites } }"),
    ("nextAiringEpisode", "{ id airingAt timeUntilAiring episode }"),
    ("streamingEpisodes", "{ title thumbnail url site }"),
)

_MANGA_ONLY: Tuple[Tuple[str, str], ...] = (
    ("chapters", ""),
    ("volumes", ""),
)

_CHARACTER: Tuple[Tuple[str, str], ...] = (
    ("id", ""),
    ("name", _NAME),
    ("image", _IMAGE),
    ("description", ""),
    ("gender", ""),
    ("dateOfBirth", _FUZZY_DATE),
    ("age", ""),
    ("bloodType", ""),
    ("siteUrl", ""),
    ("favourites", ""),
    ("modNotes", ""),
)

_PERSON: Tuple[Tuple[str, str], ...] = (
    ("id", ""),
    ("name", _NAME),
    ("languageV2", ""),
    ("image", _IMAGE),
    ("description", ""),
    ("primaryOccupations", ""),
    ("gender", ""),
    ("dateOfBirth", _FUZZY_DATE),
    ("dateOfDeath", _FUZZY_DATE),
    ("age", ""),
    ("yearsActive", ""),
    ("homeTown", ""),
    ("bloodType", ""),
    ("siteUrl", ""),
    ("favourites", ""),
    ("modNotes", ""),
)

_USER: Tuple[Tuple[str, str], ...] = (
    ("id", ""),
    ("name", ""),
    ("about", ""),
    ("avatar", _IMAGE),
    ("bannerImage", ""),
    ("siteUrl", ""),
    ("donatorTier", ""),
    ("createdAt", ""),
    ("updatedAt", ""),
    (
        "statistics",
        "{ anime { count meanScore minutesWatched episodesWatched } "
        "manga { count meanScore chaptersRead volumesRead } }",
    ),
)

_STUDIO: Tuple[Tuple[str, str], ...] = (
    ("id", ""),
    ("name", ""),
    ("isAnimationStudio", ""),
    ("siteUrl", ""),
    ("favourites", ""),
)

FULL_FIELDS: Dict[EntityKind, Tuple[Tuple[str, str], ...]] = {
    EntityKind.ANIME: _MEDIA_COMMON + _ANIME_ONLY,
    EntityKind.MANGA: _MEDIA_COMMON + _MANGA_ONLY,
    EntityKind.CHARACTER: _CHARACTER,
    EntityKind.PERSON: _PERSON,
    EntityKind.USER: _USER,
    EntityKind.STUDIO: _STUDIO,
}

STUB_FIELDS: Dict[EntityKind, Tuple[str, ...]] = {
    EntityKind.ANIME: ("id", "title", "coverImage", "siteUrl"),
    EntityKind.MANGA: ("id", "title", "coverImage", "siteUrl"),
    EntityKind.CHARACTER: ("id", "name", "image", "siteUrl"),
    EntityKind.PERSON: ("id", "name", "image", "siteUrl"),
    EntityKind.USER: ("id", "name", "avatar", "siteUrl"),
    EntityKind.STUDIO: ("id", "name", "siteUrl"),
}

PAGE_INFO = "pageInfo { total currentPage lastPage hasNextPage perPage }"

# GraphQL type of every variable the builder may declare.
_VARIABLE_TYPES = {
    "id": "Int",
    "type": "MediaType",
    "page": "Int",
    "perPage": "Int",
    "search": "String",
    "sort": "[MediaSort]",
    "genre": "String",
    "season": "MediaSeason",
    "seasonYear": "Int",
    "format": "MediaFormat",
    "status": "MediaStatus",
}


class IdSelector(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int


class SearchSelector(BaseModel):
    model_config = ConfigDict(frozen=True)

    term: str
    page: int = 1
    per_page: int = 25


class FilterSelector(BaseModel):
    """Structured list criteria. Media-only criteria are ignored for other kinds."""
    model_config = ConfigDict(frozen=True)

    page: int = 1
    per_page: int = 25
    sort: Tuple[str, ...] = ("POPULARITY_DESC",)
    genre: Optional[str] = None
    season: Optional[str] = None
    season_year: Optional[int] = None
    format: Optional[str] = None
    status: Optional[str] = None


Selector = Union[IdSelector, SearchSelector, FilterSelector]


class QueryDocument(BaseModel):
    """A ready-to-send GraphQL query plus what is needed to read its response."""
    model_config = ConfigDict(frozen=True)

    kind: EntityKind
    detail_level: DetailLevel
    query: str
    variables: Dict[str, Any] = Field(default_factory=dict)
    root_field: str = Field(..., description="Top-level field holding the result")
    list_field: Optional[str] = Field(None, description="Field under `Page` holding the items, for list queries")
    requested_fields: Tuple[str, ...] = Field(..., description="Top-level fields selected on each entity")

    @property
    def is_page(self) -> bool:
        return self.list_field is not None

    def payload(self) -> Dict[str, Any]:
        return {"query": self.query, "variables": self.variables}


def selected_fields(kind: EntityKind, detail_level: DetailLevel) -> List[Tuple[str, str]]:
    """Returns the (field, selection) pairs requested for a kind at a detail level."""
    catalogue = FULL_FIELDS[kind]
    if detail_level is DetailLevel.FULL:
        return list(catalogue)
    wanted = STUB_FIELDS[kind]
    return [(name, selection) for name, selection in catalogue if name in wanted]


def _selection_set(kind: EntityKind, detail_level: DetailLevel) -> str:
    parts = []
    for name, selection in selected_fields(kind, detail_level):
        parts.append(f"{name} {selection}" if selection else name)
    return "{ " + " ".join(parts) + " }"


def _declarations(variables: Dict[str, Any]) -> str:
    if not variables:
        return ""
    declared = ", ".join(f"${name}: {_VARIABLE_TYPES[name]}" for name in sorted(variables))
    return f"({declared})"


def _arguments(names: List[str]) -> str:
    if not names:
        return ""
    return "(" + ", ".join(f"{name}: ${name}" for name in names) + ")"


def _check_paging(page: int, per_page: int) -> None:
    if page < 1:
        raise ValidationException(f"Page index must be at least 1, got {page}.")
    if not 1 <= per_page <= MAX_PER_PAGE:
        raise ValidationException(f"Page size must be between 1 and {MAX_PER_PAGE}, got {per_page}.")


def _list_variables(kind: EntityKind, selector: Selector) -> Dict[str, Any]:
    variables: Dict[str, Any] = {"page": selector.page, "perPage": selector.per_page}
    if kind.media_type:
        variables["type"] = kind.media_type

    if isinstance(selector, SearchSelector):
        variables["search"] = selector.term
    elif kind.media_type:
        filters = {
            "sort": list(selector.sort) if selector.sort else None,
            "genre": selector.genre,
            "season": selector.season,
            "seasonYear": selector.season_year,
            "format": selector.format,
            "status": selector.status,
        }
        variables.update({name: value for name, value in filters.items() if value is not None})
    return variables


def build(kind: EntityKind, selector: Selector, detail_level: DetailLevel) -> QueryDocument:
    """
    Builds the GraphQL document for a selector at the requested detail level.

    The output depends only on the arguments: identical inputs produce identical
    documents, with variables declared and passed in sorted order.

    Raises:
        ValidationException: The selector cannot describe a valid request.
    """
    fields = tuple(name for name, _ in selected_fields(kind, detail_level))
    selection = _selection_set(kind, detail_level)

    if isinstance(selector, IdSelector):
        if selector.id < 1:
            raise ValidationException(f"Entity id must be a positive integer, got {selector.id}.")
        variables: Dict[str, Any] = {"id": selector.id}
        if kind.media_type:
            variables["type"] = kind.media_type
        query = (
            f"query {_declarations(variables)} {{ "
            f"{kind.root_field}{_arguments(sorted(variables))} {selection} }}"
        )
        return QueryDocument(
            kind=kind,
            detail_level=detail_level,
            query=query,
            variables=dict(sorted(variables.items())),
            root_field=kind.root_field,
            requested_fields=fields,
        )

    if isinstance(selector, SearchSelector) and not selector.term.strip():
        raise ValidationException("Search term must not be empty.")
    _check_paging(selector.page, selector.per_page)

    variables = _list_variables(kind, selector)
    item_arguments = sorted(name for name in variables if name not in ("page", "perPage"))

    query = (
        f"query {_declarations(variables)} {{ "
        f"Page(page: $page, perPage: $perPage) {{ {PAGE_INFO} "
        f"{kind.list_field}{_arguments(item_arguments)} {selection} }} }}"
    )
    return QueryDocument(
        kind=kind,
        detail_level=detail_level,
        query=query,
        variables=dict(sorted(variables.items())),
        root_field="Page",
        list_field=kind.list_field,
        requested_fields=fields,
    )
