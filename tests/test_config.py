import os
import tempfile
import unittest
from unittest.mock import patch

from pydantic import ValidationError

from anilist.config import ClientConfig, TransportKind
from anilist.domain.exceptions import ConfigurationException
from anilist.domain.models import DetailLevel


class TestClientConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        config = ClientConfig()

        self.assertEqual(config.endpoint, "https://graphql.anilist.co")
        self.assertIsNone(config.token)
        self.assertEqual(config.transport, TransportKind.AIOHTTP)
        self.assertEqual(config.rate_limit, 90)
        self.assertEqual(config.list_detail_level, DetailLevel.STUB)

    def test_is_immutable(self) -> None:
        config = ClientConfig()

        with self.assertRaises(ValidationError):
            config.timeout = 1

    def test_rejects_invalid_values(self) -> None:
        with self.assertRaises(ValidationError):
            ClientConfig(timeout=0)
        with self.assertRaises(ValidationError):
            ClientConfig(per_page=100)

    def test_from_env(self) -> None:
        env = {
            "ANILIST_TOKEN": "secret",
            "ANILIST_TRANSPORT": "fetch",
            "ANILIST_TIMEOUT": "5",
            "ANILIST_LIST_DETAIL_LEVEL": "full",
        }
        with patch.dict(os.environ, env, clear=True), patch("anilist.config.load_dotenv") as load:
            config = ClientConfig.from_env()

        load.assert_called_once()
        self.assertEqual(config.token, "secret")
        self.assertEqual(config.transport, TransportKind.FETCH)
        self.assertEqual(config.timeout, 5.0)
        self.assertEqual(config.list_detail_level, DetailLevel.FULL)
        self.assertEqual(config.rate_limit, 90)

    def test_from_env_reads_dotenv_file(self) -> None:
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, ".env")
            with open(path, "w", encoding="utf-8") as env_file:
                env_file.write("ANILIST_RATE_LIMIT=30\n")

            with patch.dict(os.environ, {}, clear=True):
                config = ClientConfig.from_env(path)

        self.assertEqual(config.rate_limit, 30)

    def test_from_env_rejects_bad_values(self) -> None:
        with patch.dict(os.environ, {"ANILIST_TIMEOUT": "soon"}, clear=True), patch("anilist.config.load_dotenv"):
            with self.assertRaises(ConfigurationException):
                ClientConfig.from_env()
