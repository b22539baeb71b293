import json
import logging
from typing import Dict, Optional

from anilist.config import ClientConfig
from anilist.domain.exceptions import RateLimitExceededException
from anilist.infrastructure.acl import AniListTranslator, retry_after
from anilist.infrastructure.query_builder import QueryDocument
from anilist.infrastructure.rate_limiter import RateLimiter
from anilist.infrastructure.transport import RawResponse, Transport

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 60.0
# One automatic retry after the service rejects a request for its rate limit.
MAX_ATTEMPTS = 2


class AniListGraphQLClient:
    """
    Client for sending GraphQL documents to the AniList API.
    Handles authentication headers, rate-limit admission and the single rate-limit retry.
    """

    def __init__(self, config: ClientConfig, transport: Transport, rate_limiter: RateLimiter):
        self.config = config
        self.transport = transport
        self.rate_limiter = rate_limiter
        self.headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": config.user_agent,
        }
        if config.token:
            self.headers["Authorization"] = f"Bearer {config.token}"
        self.api_url = config.endpoint

    @staticmethod
    def encode(document: QueryDocument) -> bytes:
        return json.dumps(document.payload(), sort_keys=True, separators=(",", ":")).encode("utf-8")

    async def execute(self, document: QueryDocument) -> RawResponse:
        """
        Sends a document and returns the raw response once the service accepts it.

        Returns:
            RawResponse: The first response that is not a rate-limit rejection.

        Raises:
            RateLimitExceededException: The service rejected the request twice in a row,
                or admission would wait longer than configured.
            TransportException: The request could not be completed.
        """
        body = self.encode(document)
        wait: Optional[float] = None

        for attempt in range(MAX_ATTEMPTS):
            await self.rate_limiter.admit()
            response = await self.transport.send(
                "POST", self.api_url, self.headers, body, self.config.timeout
            )
            await self.rate_limiter.observe(response)

            if not AniListTranslator.is_rate_limited(response):
                return response

            wait = retry_after(response)
            if wait is None:
                wait = DEFAULT_RETRY_AFTER
            await self.rate_limiter.defer(wait)
            logger.warning(
                f"Rate limited by AniList (attempt {attempt + 1}/{MAX_ATTEMPTS}). "
                f"Retry after {wait:.0f}s."
            )

        raise RateLimitExceededException(
            retry_after=wait,
            message="AniList rejected the request for its rate limit twice.",
        )
