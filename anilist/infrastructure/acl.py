import json
import logging
from typing import Any, Dict, List, Optional, Union
from pydantic import ValidationError

from anilist.domain.exceptions import (
    ApiException,
    MalformedResponseException,
    NotFoundException,
    RateLimitExceededException,
    ServiceFaultException,
    ValidationException,
)
from anilist.domain.models import EntityRecord, Page
from anilist.infrastructure.query_builder import QueryDocument
from anilist.infrastructure.transport import RawResponse

logger = logging.getLogger(__name__)

RETRY_AFTER_HEADER = "Retry-After"


def retry_after(response: RawResponse) -> Optional[float]:
    """Seconds the service asked the client to wait, if it said so."""
    value = response.header(RETRY_AFTER_HEADER)
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


class AniListTranslator:
    """
    Anti-corruption layer that translates raw AniList GraphQL responses into EntityRecord and Page instances.
    """

    @staticmethod
    def decode(response: RawResponse) -> Dict[str, Any]:
        """
        Decodes the JSON object carried by a response body.

        Raises:
            ServiceFaultException: The body is not JSON and the status is a 5xx.
            MalformedResponseException: The body is not a JSON object.
        """
        try:
            payload = json.loads(response.body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            if response.status >= 500:
                raise ServiceFaultException(
                    f"AniList returned HTTP {response.status}.", status=response.status
                ) from e
            raise MalformedResponseException(
                f"Response body is not valid JSON (HTTP {response.status}).", status=response.status
            ) from e

        if not isinstance(payload, dict):
            raise MalformedResponseException("Response body is not a JSON object.", status=response.status)
        return payload

    @staticmethod
    def errors(response: RawResponse, payload: Dict[str, Any]) -> List[Any]:
        """
        The `errors` list of a payload, empty when absent.

        Raises:
            MalformedResponseException: `errors` is present but not a list.
        """
        errors = payload.get("errors")
        if errors is None:
            return []
        if not isinstance(errors, list):
            raise MalformedResponseException("`errors` is not a JSON array.", status=response.status)
        return errors

    @classmethod
    def error_statuses(cls, response: RawResponse, payload: Dict[str, Any]) -> List[int]:
        statuses = []
        for error in cls.errors(response, payload):
            status = error.get("status") if isinstance(error, dict) else None
            statuses.append(status if isinstance(status, int) else response.status)
        return statuses

    @classmethod
    def is_rate_limited(cls, response: RawResponse) -> bool:
        """Whether the service rejected the request because of its rate limit."""
        if response.status == 429:
            return True
        try:
            payload = json.loads(response.body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            return False
        if not isinstance(payload, dict) or not isinstance(payload.get("errors", []), list):
            return False
        return 429 in cls.error_statuses(response, payload)

    @classmethod
    def to_error(cls, response: RawResponse, payload: Dict[str, Any]) -> ApiException:
        """
        Maps the service-reported failure of a response onto one ApiException.

        A rate-limit rejection anywhere in the response wins, then the
        categories caused by caller input, then service faults.
        """
        errors = [error for error in cls.errors(response, payload) if isinstance(error, dict)]
        statuses = cls.error_statuses(response, payload) or [response.status]
        message = "; ".join(str(error.get("message", "Unknown GraphQL error")) for error in errors)
        message = message or f"AniList returned HTTP {response.status}."

        if 429 in statuses:
            return RateLimitExceededException(retry_after=retry_after(response), errors=errors)
        if 404 in statuses:
            return NotFoundException(message, status=404, errors=errors)
        if 400 in statuses or 422 in statuses:
            return ValidationException(message, status=400, errors=errors)
        status = max(statuses)
        return ServiceFaultException(message, status=status, errors=errors)

    @staticmethod
    def to_domain(document: QueryDocument, raw_node: Any) -> EntityRecord:
        """
        Transforms one raw GraphQL node into an EntityRecord tagged with the requested detail level.

        Args:
            document (QueryDocument): The query that produced the node.
            raw_node (Any): The JSON node from the response.

        Returns:
            EntityRecord: The record holding every requested field.
        """
        if not isinstance(raw_node, dict):
            raise MalformedResponseException(f"Expected a {document.kind.value} object, got {type(raw_node).__name__}.")

        missing = [name for name in document.requested_fields if name not in raw_node]
        if missing:
            raise MalformedResponseException(
                f"{document.kind.value} node is missing requested fields: {', '.join(missing)}."
            )

        entity_id = raw_node.get("id")
        if not isinstance(entity_id, int) or isinstance(entity_id, bool) or entity_id < 1:
            raise MalformedResponseException(f"{document.kind.value} node has an invalid id: {entity_id!r}.")

        try:
            return EntityRecord(
                kind=document.kind,
                id=entity_id,
                detail_level=document.detail_level,
                fields={name: raw_node[name] for name in document.requested_fields},
            )
        except ValidationError as e:
            raise MalformedResponseException(f"{document.kind.value} node does not form a record: {e}") from e

    @classmethod
    def to_page(cls, document: QueryDocument, raw_page: Any) -> Page[EntityRecord]:
        if not isinstance(raw_page, dict):
            raise MalformedResponseException("Page is not a JSON object.")

        page_info = raw_page.get("pageInfo")
        items = raw_page.get(document.list_field)
        if not isinstance(page_info, dict) or not isinstance(items, list):
            raise MalformedResponseException(f"Page is missing pageInfo or {document.list_field}.")

        records = [cls.to_domain(document, node) for node in items]
        try:
            return Page[EntityRecord](
                items=records,
                page=page_info.get("currentPage") or document.variables.get("page", 1),
                per_page=page_info.get("perPage") or document.variables.get("perPage", max(len(records), 1)),
                has_next=bool(page_info.get("hasNextPage")),
                total=page_info.get("total"),
                last_page=page_info.get("lastPage"),
            )
        except ValidationError as e:
            raise MalformedResponseException(f"pageInfo does not describe a page: {e}") from e

    @classmethod
    def parse(cls, document: QueryDocument, response: RawResponse) -> Union[EntityRecord, Page[EntityRecord]]:
        """
        Maps a response onto the record or page the document asked for.

        Raises:
            ApiException: One subclass per failure category reported by the service,
                or MalformedResponseException when the body does not match the query.
        """
        payload = cls.decode(response)

        data = payload.get("data")
        if data is not None and not isinstance(data, dict):
            raise MalformedResponseException("`data` is not a JSON object.", status=response.status)
        root = (data or {}).get(document.root_field)

        if cls.errors(response, payload):
            if root is None:
                raise cls.to_error(response, payload)
            logger.warning(f"GraphQL partial error: {cls.to_error(response, payload)}")
        elif response.status >= 300:
            raise cls.to_error(response, payload)

        if data is None or document.root_field not in data:
            raise MalformedResponseException(
                f"Response data has no {document.root_field} field.", status=response.status
            )
        if root is None and document.is_page:
            raise MalformedResponseException("Page is null.", status=response.status)
        if root is None:
            raise NotFoundException(
                f"No {document.kind.value} matched {document.variables}.", status=404
            )

        if document.is_page:
            return cls.to_page(document, root)
        return cls.to_domain(document, root)
