import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from anilist import main as entry
from anilist.domain.exceptions import ConfigurationException, NotFoundException
from anilist.domain.models import DetailLevel, EntityKind, EntityRecord


class _FakeClient:
    def __init__(self, handle=None, error=None) -> None:
        self.handle = handle
        self.error = error
        self.requested = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False

    async def get_by_id(self, kind, entity_id):
        self.requested.append((kind, entity_id))
        if self.error is not None:
            raise self.error
        return self.handle


class TestMain(unittest.IsolatedAsyncioTestCase):
    async def test_fetches_and_hydrates(self) -> None:
        full = EntityRecord(kind=EntityKind.ANIME, id=1, detail_level=DetailLevel.FULL, fields={"id": 1, "episodes": 26})
        handle = MagicMock()
        handle.id = 1
        handle.record.fields = {"id": 1, "title": {"english": "Cowboy Bebop"}}
        handle.hydrate = AsyncMock(return_value=full)
        client = _FakeClient(handle=handle)

        with patch("anilist.main.AniListClient", return_value=client), \
                patch("anilist.main.ClientConfig"):
            code = await entry.main(["anime", "1"])

        self.assertEqual(code, 0)
        self.assertEqual(client.requested, [(EntityKind.ANIME, 1)])
        handle.hydrate.assert_awaited_once()

    async def test_api_error_exits_with_failure(self) -> None:
        client = _FakeClient(error=NotFoundException("Not Found.", status=404))

        with patch("anilist.main.AniListClient", return_value=client), \
                patch("anilist.main.ClientConfig"):
            code = await entry.main(["anime", "424242"])

        self.assertEqual(code, 1)

    async def test_invalid_settings_exit_with_failure(self) -> None:
        with patch("anilist.main.ClientConfig") as config:
            config.from_env.side_effect = ConfigurationException("Invalid ANILIST_* setting")
            code = await entry.main(["anime", "1"])

        self.assertEqual(code, 1)

    async def test_unavailable_transport_exits_with_failure(self) -> None:
        error = ConfigurationException("The fetch transport needs a fetch function outside of a Pyodide runtime.")

        with patch("anilist.main.AniListClient", side_effect=error), \
                patch("anilist.main.ClientConfig"):
            code = await entry.main(["anime", "1"])

        self.assertEqual(code, 1)

    async def test_bad_arguments(self) -> None:
        self.assertEqual(await entry.main(["anime"]), 1)
        self.assertEqual(await entry.main(["novel", "1"]), 1)
        self.assertEqual(await entry.main(["anime", "abc"]), 1)
