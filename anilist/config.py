import os
from enum import Enum
from typing import Optional
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from anilist.domain.exceptions import ConfigurationException
from anilist.domain.models import DetailLevel

DEFAULT_ENDPOINT = "https://graphql.anilist.co"
DEFAULT_USER_AGENT = "anilist-catalog-client"


class TransportKind(str, Enum):
    AIOHTTP = "aiohttp"
    FETCH = "fetch"


class ClientConfig(BaseModel):
    """
    Immutable client settings, fixed once the client is constructed.
    """
    model_config = ConfigDict(frozen=True)

    endpoint: str = Field(DEFAULT_ENDPOINT, description="GraphQL endpoint URL")
    token: Optional[str] = Field(None, repr=False, description="Opaque bearer credential")
    transport: TransportKind = Field(TransportKind.AIOHTTP, description="HTTP backend to use")
    timeout: float = Field(30.0, gt=0, description="Per-request timeout in seconds")
    rate_limit: int = Field(90, ge=1, description="Requests allowed per rate window")
    rate_window: float = Field(60.0, gt=0, description="Length of the rate window in seconds")
    max_rate_limit_wait: float = Field(120.0, ge=0, description="Longest admission wait before failing")
    per_page: int = Field(25, ge=1, le=50, description="Default page size for list queries")
    list_detail_level: DetailLevel = Field(DetailLevel.STUB, description="Detail level of list results")
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ClientConfig":
        """
        Builds a configuration from ANILIST_* environment variables.

        Args:
            env_file (Optional[str]): Path of a .env file to load first. Defaults to the nearest `.env`.

        Returns:
            ClientConfig: Configuration with unset variables left at their defaults.

        Raises:
            ConfigurationException: A variable holds a value the setting does not accept.
        """
        load_dotenv(env_file)

        env = {
            "endpoint": os.getenv("ANILIST_ENDPOINT"),
            "token": os.getenv("ANILIST_TOKEN"),
            "transport": os.getenv("ANILIST_TRANSPORT"),
            "timeout": os.getenv("ANILIST_TIMEOUT"),
            "rate_limit": os.getenv("ANILIST_RATE_LIMIT"),
            "rate_window": os.getenv("ANILIST_RATE_WINDOW"),
            "max_rate_limit_wait": os.getenv("ANILIST_MAX_RATE_LIMIT_WAIT"),
            "per_page": os.getenv("ANILIST_PER_PAGE"),
            "list_detail_level": os.getenv("ANILIST_LIST_DETAIL_LEVEL"),
            "user_agent": os.getenv("ANILIST_USER_AGENT"),
        }
        try:
            return cls(**{key: value for key, value in env.items() if value})
        except ValidationError as e:
            raise ConfigurationException(f"Invalid ANILIST_* setting: {e}") from e
