"""
Typed views over entity records.

Records keep the raw GraphQL field mapping; these models give callers typed
access to it. Every field other than `id` is optional so that stub records
validate as well as full ones.
"""
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from anilist.domain.models import EntityKind, EntityRecord


class _CatalogModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class FuzzyDate(_CatalogModel):
    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None

    def to_date(self) -> Optional[date]:
        if self.year is None or self.month is None or self.day is None:
            return None
        return date(self.year, self.month, self.day)


class MediaTitle(_CatalogModel):
    romaji: Optional[str] = None
    english: Optional[str] = None
    native: Optional[str] = None
    user_preferred: Optional[str] = None

    def preferred(self) -> Optional[str]:
        """English title, falling back to romaji and then native."""
        return self.english or self.romaji or self.native


class Name(_CatalogModel):
    first: Optional[str] = None
    middle: Optional[str] = None
    last: Optional[str] = None
    full: Optional[str] = None
    native: Optional[str] = None
    alternative: List[str] = Field(default_factory=list)
    alternative_spoiler: Optional[List[str]] = None
    user_preferred: Optional[str] = None

    @field_validator("alternative", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return value if value is not None else []


class Image(_CatalogModel):
    large: Optional[str] = None
    medium: Optional[str] = None


class CoverImage(_CatalogModel):
    extra_large: Optional[str] = None
    large: Optional[str] = None
    medium: Optional[str] = None
    color: Optional[str] = None


class CharacterRole(str, Enum):
    MAIN = "MAIN"
    SUPPORTING = "SUPPORTING"
    BACKGROUND = "BACKGROUND"

    @classmethod
    def _missing_(cls, value: object) -> "CharacterRole":
        return cls.BACKGROUND


class Gender(str, Enum):
    """
    Gender as reported for characters and staff.

    Values outside the named members are kept as-is on an unnamed member.
    """

    MALE = "Male"
    FEMALE = "Female"
    NON_BINARY = "Non-binary"

    @classmethod
    def _missing_(cls, value: object) -> Optional["Gender"]:
        if not isinstance(value, str):
            return None
        member = str.__new__(cls, value)
        member._name_ = "OTHER"
        member._value_ = value
        return member

    @property
    def is_custom(self) -> bool:
        return self._name_ == "OTHER"


class Language(str, Enum):
    """Staff languages as reported in `languageV2`."""

    JAPANESE = "Japanese"
    ENGLISH = "English"
    KOREAN = "Korean"
    ITALIAN = "Italian"
    SPANISH = "Spanish"
    PORTUGUESE = "Portuguese"
    FRENCH = "French"
    GERMAN = "German"
    HEBREW = "Hebrew"
    HUNGARIAN = "Hungarian"
    CHINESE = "Chinese"
    ARABIC = "Arabic"
    FILIPINO = "Filipino"
    CATALAN = "Catalan"
    FINNISH = "Finnish"
    TURKISH = "Turkish"
    DUTCH = "Dutch"
    SWEDISH = "Swedish"
    THAI = "Thai"
    TAGALOG = "Tagalog"
    MALAYSIAN = "Malaysian"
    INDONESIAN = "Indonesian"
    VIETNAMESE = "Vietnamese"
    NEPALI = "Nepali"
    HINDI = "Hindi"
    URDU = "Urdu"
    POLISH = "Polish"

    def code(self) -> str:
        """ISO 639 code of the language."""
        return _LANGUAGE_CODES[self]

    def native(self) -> str:
        """Name of the language written in that language."""
        return _NATIVE_NAMES[self]


_LANGUAGE_CODES = {
    Language.JAPANESE: "ja",
    Language.ENGLISH: "en",
    Language.KOREAN: "ko",
    Language.ITALIAN: "it",
    Language.SPANISH: "es",
    Language.PORTUGUESE: "pt",
    Language.FRENCH: "fr",
    Language.GERMAN: "de",
    Language.HEBREW: "he",
    Language.HUNGARIAN: "hu",
    Language.CHINESE: "zh",
    Language.ARABIC: "ar",
    Language.FILIPINO: "fil",
    Language.CATALAN: "ca",
    Language.FINNISH: "fi",
    Language.TURKISH: "tr",
    Language.DUTCH: "nl",
    Language.SWEDISH: "sv",
    Language.THAI: "th",
    Language.TAGALOG: "tl",
    Language.MALAYSIAN: "ms",
    Language.INDONESIAN: "id",
    Language.VIETNAMESE: "vi",
    Language.NEPALI: "ne",
    Language.HINDI: "hi",
    Language.URDU: "ur",
    Language.POLISH: "pl",
}


_NATIVE_NAMES = {
    Language.JAPANESE: "日本語",
    Language.ENGLISH: "English",
    Language.KOREAN: "한국어",
    Language.ITALIAN: "Italiano",
    Language.SPANISH: "Español",
    Language.PORTUGUESE: "Português",
    Language.FRENCH: "Français",
    Language.GERMAN: "Deutsch",
    Language.HEBREW: "עברית",
    Language.HUNGARIAN: "Magyar",
    Language.CHINESE: "中文",
    Language.ARABIC: "العربية",
    Language.FILIPINO: "Filipino",
    Language.CATALAN: "Català",
    Language.FINNISH: "Suomi",
    Language.TURKISH: "Türkçe",
    Language.DUTCH: "Nederlands",
    Language.SWEDISH: "Svenska",
    Language.THAI: "ไทย",
    Language.TAGALOG: "Tagalog",
    Language.MALAYSIAN: "Bahasa Melayu",
    Language.INDONESIAN: "Bahasa Indonesia",
    Language.VIETNAMESE: "Tiếng Việt",
    Language.NEPALI: "नेपाली",
    Language.HINDI: "हिंदी",
    Language.URDU: "اردو",
    Language.POLISH: "Polski",
}


class Tag(_CatalogModel):
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    rank: Optional[int] = None
    is_media_spoiler: Optional[bool] = None


class Studio(_CatalogModel):
    id: int
    name: Optional[str] = None
    is_animation_studio: Optional[bool] = None
    site_url: Optional[str] = None
    favourites: Optional[int] = None


class AiringSchedule(_CatalogModel):
    id: int
    airing_at: int
    time_until_airing: int
    episode: int


class ExternalLink(_CatalogModel):
    id: Optional[int] = None
    url: Optional[str] = None
    site: Optional[str] = None


class StreamingEpisode(_CatalogModel):
    title: Optional[str] = None
    thumbnail: Optional[str] = None
    url: Optional[str] = None
    site: Optional[str] = None


class RelatedMedia(_CatalogModel):
    id: int
    type: Optional[str] = None
    format: Optional[str] = None
    title: Optional[MediaTitle] = None


class Relation(_CatalogModel):
    relation_type: Optional[str] = None
    media: RelatedMedia


def _as_gender(value: Any) -> Any:
    return Gender(value) if isinstance(value, str) else value


class Character(_CatalogModel):
    id: int
    name: Optional[Name] = None
    role: Optional[CharacterRole] = None
    image: Optional[Image] = None
    description: Optional[str] = None
    gender: Optional[Gender] = None
    date_of_birth: Optional[FuzzyDate] = None
    age: Optional[str] = None
    blood_type: Optional[str] = None
    site_url: Optional[str] = None
    favourites: Optional[int] = None
    mod_notes: Optional[str] = None

    _gender = field_validator("gender", mode="before")(_as_gender)


class Person(_CatalogModel):
    id: int
    name: Optional[Name] = None
    language: Optional[Language] = Field(None, alias="languageV2")
    image: Optional[Image] = None
    description: Optional[str] = None
    primary_occupations: Optional[List[str]] = None
    gender: Optional[Gender] = None
    date_of_birth: Optional[FuzzyDate] = None
    date_of_death: Optional[FuzzyDate] = None
    age: Optional[int] = None
    years_active: Optional[List[int]] = None
    home_town: Optional[str] = None
    blood_type: Optional[str] = None
    site_url: Optional[str] = None
    favourites: Optional[int] = None
    mod_notes: Optional[str] = None

    _gender = field_validator("gender", mode="before")(_as_gender)

    @field_validator("language", mode="before")
    @classmethod
    def _unknown_language(cls, value: Any) -> Any:
        # The service occasionally reports languages outside the known set.
        if value is None or value in Language._value2member_map_:
            return value
        return None


def _nodes(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("nodes") or []
    return value


class _Media(_CatalogModel):
    id: int
    id_mal: Optional[int] = None
    title: Optional[MediaTitle] = None
    type: Optional[str] = None
    format: Optional[str] = None
    status: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[FuzzyDate] = None
    end_date: Optional[FuzzyDate] = None
    country_of_origin: Optional[str] = None
    is_licensed: Optional[bool] = None
    source: Optional[str] = None
    hashtag: Optional[str] = None
    updated_at: Optional[int] = None
    cover_image: Optional[CoverImage] = None
    banner_image: Optional[str] = None
    genres: Optional[List[str]] = None
    synonyms: Optional[List[str]] = None
    average_score: Optional[int] = None
    mean_score: Optional[int] = None
    popularity: Optional[int] = None
    is_locked: Optional[bool] = None
    trending: Optional[int] = None
    favourites: Optional[int] = None
    tags: Optional[List[Tag]] = None
    relations: Optional[List[Relation]] = None
    characters: Optional[List[Character]] = None
    staff: Optional[List[Person]] = None
    is_adult: Optional[bool] = None
    external_links: Optional[List[ExternalLink]] = None
    site_url: Optional[str] = None

    @field_validator("relations", mode="before")
    @classmethod
    def _flatten_relations(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return [
            {"relationType": edge.get("relationType"), "media": edge.get("node")}
            for edge in value.get("edges") or []
            if edge and edge.get("node")
        ]

    @field_validator("characters", mode="before")
    @classmethod
    def _flatten_characters(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        characters = []
        for edge in value.get("edges") or []:
            if not edge or not edge.get("node"):
                continue
            character = dict(edge["node"])
            if edge.get("role"):
                character["role"] = edge["role"]
            characters.append(character)
        return characters

    @field_validator("staff", mode="before")
    @classmethod
    def _flatten_staff(cls, value: Any) -> Any:
        return _nodes(value)


class Anime(_Media):
    season: Optional[str] = None
    season_year: Optional[int] = None
    season_int: Optional[int] = None
    episodes: Optional[int] = None
    duration: Optional[int] = None
    studios: Optional[List[Studio]] = None
    next_airing_episode: Optional[AiringSchedule] = None
    streaming_episodes: Optional[List[StreamingEpisode]] = None

    @field_validator("studios", mode="before")
    @classmethod
    def _flatten_studios(cls, value: Any) -> Any:
        return _nodes(value)


class Manga(_Media):
    chapters: Optional[int] = None
    volumes: Optional[int] = None


class User(_CatalogModel):
    id: int
    name: Optional[str] = None
    about: Optional[str] = None
    avatar: Optional[Image] = None
    banner_image: Optional[str] = None
    site_url: Optional[str] = None
    donator_tier: Optional[int] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    statistics: Optional[Dict[str, Any]] = None


MODELS_BY_KIND = {
    EntityKind.ANIME: Anime,
    EntityKind.MANGA: Manga,
    EntityKind.CHARACTER: Character,
    EntityKind.PERSON: Person,
    EntityKind.USER: User,
    EntityKind.STUDIO: Studio,
}


def to_model(record: EntityRecord) -> _CatalogModel:
    """Builds the typed model matching the record's kind."""
    return MODELS_BY_KIND[record.kind].model_validate(record.fields)
