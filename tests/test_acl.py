import json
import unittest

from anilist.domain.exceptions import (
    MalformedResponseException,
    NotFoundException,
    RateLimitExceededException,
    ServiceFaultException,
    ValidationException,
)
from anilist.domain.models import DetailLevel, EntityKind, EntityRecord, Page
from anilist.infrastructure import query_builder
from anilist.infrastructure.acl import AniListTranslator
from anilist.infrastructure.query_builder import IdSelector, SearchSelector
from anilist.infrastructure.transport import RawResponse

TITLE = {"romaji": "Cowboy Bebop", "english": "Cowboy Bebop", "native": "カウボーイビバップ", "userPreferred": "Cowboy Bebop"}
COVER = {"extraLarge": "xl.jpg", "large": "l.jpg", "medium": "m.jpg", "color": "#f1785d"}


def _response(payload, status: int = 200, headers=None) -> RawResponse:
    return RawResponse(status=status, headers=headers or {}, body=json.dumps(payload).encode("utf-8"))


def _stub_node(anime_id: int = 1) -> dict:
    return {"id": anime_id, "title": TITLE, "coverImage": COVER, "siteUrl": f"https://anilist.co/anime/{anime_id}"}


def _full_node(anime_id: int = 1) -> dict:
    node = {name: None for name, _ in query_builder.FULL_FIELDS[EntityKind.ANIME]}
    node.update(_stub_node(anime_id))
    node.update({"episodes": 26, "description": "In the year 2071...", "genres": ["Action", "Sci-Fi"]})
    return node


class TestParseRecord(unittest.TestCase):
    def setUp(self) -> None:
        self.stub_document = query_builder.build(EntityKind.ANIME, IdSelector(id=1), DetailLevel.STUB)
        self.full_document = query_builder.build(EntityKind.ANIME, IdSelector(id=1), DetailLevel.FULL)

    def test_stub_record_keeps_requested_fields(self) -> None:
        record = AniListTranslator.parse(self.stub_document, _response({"data": {"Media": _stub_node()}}))

        self.assertIsInstance(record, EntityRecord)
        self.assertEqual(record.id, 1)
        self.assertEqual(record.detail_level, DetailLevel.STUB)
        self.assertEqual(record.fields["title"], TITLE)
        self.assertEqual(set(record.fields), {"id", "title", "coverImage", "siteUrl"})

    def test_full_record_is_tagged_full_even_with_null_optionals(self) -> None:
        record = AniListTranslator.parse(self.full_document, _response({"data": {"Media": _full_node()}}))

        self.assertTrue(record.is_full)
        self.assertIsNone(record.fields["bannerImage"])
        self.assertEqual(record.fields["episodes"], 26)

    def test_full_record_missing_requested_field_is_malformed(self) -> None:
        node = _full_node()
        del node["episodes"]

        with self.assertRaises(MalformedResponseException):
            AniListTranslator.parse(self.full_document, _response({"data": {"Media": node}}))

    def test_null_id_is_malformed(self) -> None:
        node = _stub_node()
        node["id"] = None

        with self.assertRaises(MalformedResponseException):
            AniListTranslator.parse(self.stub_document, _response({"data": {"Media": node}}))

    def test_unrelated_extra_fields_are_dropped(self) -> None:
        node = _stub_node()
        node["episodes"] = 26

        record = AniListTranslator.parse(self.stub_document, _response({"data": {"Media": node}}))

        self.assertNotIn("episodes", record.fields)


class TestParseErrors(unittest.TestCase):
    def setUp(self) -> None:
        self.document = query_builder.build(EntityKind.ANIME, IdSelector(id=999999999), DetailLevel.STUB)

    def test_not_found_error(self) -> None:
        payload = {"errors": [{"message": "Not Found.", "status": 404}], "data": {"Media": None}}

        with self.assertRaises(NotFoundException) as ctx:
            AniListTranslator.parse(self.document, _response(payload, status=404))

        self.assertEqual(ctx.exception.status, 404)
        self.assertIn("Not Found.", str(ctx.exception))

    def test_null_root_without_errors_is_not_found(self) -> None:
        with self.assertRaises(NotFoundException):
            AniListTranslator.parse(self.document, _response({"data": {"Media": None}}))

    def test_validation_error(self) -> None:
        payload = {"errors": [{"message": "Validation error", "status": 400}], "data": None}

        with self.assertRaises(ValidationException):
            AniListTranslator.parse(self.document, _response(payload, status=400))

    def test_rate_limit_error_carries_retry_after(self) -> None:
        payload = {"errors": [{"message": "Too Many Requests.", "status": 429}], "data": None}

        with self.assertRaises(RateLimitExceededException) as ctx:
            AniListTranslator.parse(self.document, _response(payload, status=429, headers={"Retry-After": "30"}))

        self.assertEqual(ctx.exception.retry_after, 30.0)

    def test_server_error_is_service_fault(self) -> None:
        payload = {"errors": [{"message": "Internal Server Error", "status": 500}], "data": None}

        with self.assertRaises(ServiceFaultException):
            AniListTranslator.parse(self.document, _response(payload, status=500))

    def test_html_error_page_is_service_fault(self) -> None:
        response = RawResponse(status=502, body=b"<html>Bad Gateway</html>")

        with self.assertRaises(ServiceFaultException):
            AniListTranslator.parse(self.document, response)

    def test_invalid_json_is_malformed(self) -> None:
        response = RawResponse(status=200, body=b"{not json")

        with self.assertRaises(MalformedResponseException):
            AniListTranslator.parse(self.document, response)

    def test_missing_root_is_malformed(self) -> None:
        with self.assertRaises(MalformedResponseException):
            AniListTranslator.parse(self.document, _response({"data": {}}))

    def test_non_list_errors_is_malformed(self) -> None:
        with self.assertRaises(MalformedResponseException):
            AniListTranslator.parse(self.document, _response({"errors": 1, "data": None}))

    def test_non_list_errors_is_not_a_rate_limit(self) -> None:
        self.assertFalse(AniListTranslator.is_rate_limited(_response({"errors": "Too Many Requests."})))

    def test_partial_errors_with_data_return_the_data(self) -> None:
        document = query_builder.build(EntityKind.ANIME, IdSelector(id=1), DetailLevel.STUB)
        payload = {
            "errors": [{"message": "Field deprecated", "status": 200}],
            "data": {"Media": _stub_node()},
        }

        with self.assertLogs("anilist.infrastructure.acl", level="WARNING"):
            record = AniListTranslator.parse(document, _response(payload))

        self.assertEqual(record.id, 1)


class TestParsePage(unittest.TestCase):
    def test_search_page_metadata(self) -> None:
        document = query_builder.build(
            EntityKind.MANGA, SearchSelector(term="naruto", page=1, per_page=2), DetailLevel.STUB
        )
        payload = {
            "data": {
                "Page": {
                    "pageInfo": {"total": 40, "currentPage": 1, "lastPage": 20, "hasNextPage": True, "perPage": 2},
                    "media": [_stub_node(30011), _stub_node(87254)],
                }
            }
        }

        page = AniListTranslator.parse(document, _response(payload))

        self.assertIsInstance(page, Page)
        self.assertEqual(page.page, 1)
        self.assertTrue(page.has_next)
        self.assertEqual(page.total, 40)
        self.assertEqual([record.id for record in page.items], [30011, 87254])
        for record in page.items:
            self.assertEqual(record.kind, EntityKind.MANGA)
            self.assertEqual(record.detail_level, DetailLevel.STUB)

    def test_page_without_items_is_malformed(self) -> None:
        document = query_builder.build(EntityKind.MANGA, SearchSelector(term="naruto"), DetailLevel.STUB)
        payload = {"data": {"Page": {"pageInfo": {"currentPage": 1, "hasNextPage": False}}}}

        with self.assertRaises(MalformedResponseException):
            AniListTranslator.parse(document, _response(payload))


    def test_unusable_page_info_is_malformed(self) -> None:
        document = query_builder.build(EntityKind.MANGA, SearchSelector(term="naruto"), DetailLevel.STUB)
        page_infos = [
            {"total": "many", "currentPage": 1, "hasNextPage": False, "perPage": 25},
            {"total": 40, "currentPage": 1, "hasNextPage": False, "perPage": -1},
        ]

        for page_info in page_infos:
            payload = {"data": {"Page": {"pageInfo": page_info, "media": []}}}
            with self.assertRaises(MalformedResponseException):
                AniListTranslator.parse(document, _response(payload))

class TestRateLimitDetection(unittest.TestCase):
    def test_http_429(self) -> None:
        self.assertTrue(AniListTranslator.is_rate_limited(RawResponse(status=429)))

    def test_graphql_error_status_429(self) -> None:
        payload = {"errors": [{"message": "Too Many Requests.", "status": 429}]}
        self.assertTrue(AniListTranslator.is_rate_limited(_response(payload)))

    def test_regular_response(self) -> None:
        self.assertFalse(AniListTranslator.is_rate_limited(_response({"data": {"Media": None}})))
