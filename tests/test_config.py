"""Tests for configuration loading."""

import os
import tempfile
import textwrap
import unittest
from unittest import mock

import yaml

from newscrawler.config import load_config
from newscrawler.errors import ConfigError

VALID_CONFIG = """
crawler:
  user_agent: "TestAgent/1.0"
  robot_agent: "testbot"
  crawl_delay: 5
database:
  driver: sqlite3
  connection_data: test.db
feeds:
  type: rss
websites:
  - identifier: example
    start_point: https://www.example.com/
    date_format: "{DAY_NUM} {MONTH_LONG} {YEAR_LONG}"
    max_visits: 100
    ignore_query: true
    crawl_delay: 1
    filters:
      restrict: "^https://www\\\\.example\\\\.com/news/"
      exclude: "/tag/"
    selectors:
      title: "h1"
      content: "article .body"
      date: "time"
      author: ".byline"
  - identifier: minimal
    start_point: http://minimal.org
    date_format: "%Y-%m-%d"
    selectors:
      title: "h1"
      content: ".content"
      date: ".date"
"""


class TestLoadConfig(unittest.TestCase):
    """Test loading and validating the YAML configuration."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        env = mock.patch.dict(os.environ, {}, clear=False)
        env.start()
        self.addCleanup(env.stop)
        for name in ("CONFIG_PATH", "DATABASE_DRIVER", "DATABASE_CONNECTION_DATA"):
            os.environ.pop(name, None)

    def _write(self, content: str) -> str:
        path = os.path.join(self.tmpdir.name, "config.yaml")
        with open(path, "w") as f:
            f.write(textwrap.dedent(content))
        return path

    def _with_site(self, **overrides) -> str:
        site = {
            "identifier": "s",
            "start_point": "https://s.example.com/",
            "date_format": "%Y",
            "selectors": {"title": "h1", "content": ".c", "date": ".d"},
        }
        site.update(overrides)
        return self._write(yaml.safe_dump({"websites": [site]}))

    def test_valid_config(self):
        config = load_config(self._write(VALID_CONFIG))

        self.assertEqual(config.crawler.user_agent, "TestAgent/1.0")
        self.assertEqual(config.crawler.robot_agent, "testbot")
        self.assertEqual(config.crawler.crawl_delay, 5.0)
        self.assertEqual(config.database.driver, "sqlite3")
        self.assertEqual(config.database.connection_data, "test.db")
        self.assertEqual(len(config.websites), 2)

        site = config.websites[0]
        self.assertEqual(site.identifier, "example")
        self.assertEqual(site.domain, "example.com")
        self.assertEqual(site.max_visits, 100)
        self.assertTrue(site.ignore_query)
        self.assertEqual(site.crawl_delay, 1.0)
        self.assertEqual(site.selectors.author, ".byline")
        self.assertIsNone(site.selectors.description)
        self.assertTrue(site.filters.restrict.search("https://www.example.com/news/a"))
        self.assertTrue(site.filters.exclude.search("https://www.example.com/tag/a"))

        minimal = config.websites[1]
        self.assertEqual(minimal.max_visits, 0)
        self.assertFalse(minimal.ignore_query)
        self.assertIsNone(minimal.crawl_delay)
        self.assertIsNone(minimal.filters.restrict)
        self.assertIsNone(minimal.filters.exclude)

    def test_defaults(self):
        config = load_config(self._write("websites: []\n"))
        self.assertEqual(config.database.driver, "sqlite3")
        self.assertEqual(config.crawler.crawl_delay, 0.0)
        self.assertEqual(config.websites, [])

    def test_config_path_from_env(self):
        path = self._write(VALID_CONFIG)
        os.environ["CONFIG_PATH"] = path
        self.assertEqual(len(load_config().websites), 2)

    def test_database_env_overrides(self):
        os.environ["DATABASE_DRIVER"] = "postgres"
        os.environ["DATABASE_CONNECTION_DATA"] = "u:p@db/news"
        config = load_config(self._write(VALID_CONFIG))
        self.assertEqual(config.database.driver, "postgres")
        self.assertEqual(config.database.connection_data, "u:p@db/news")

    def test_missing_file(self):
        with self.assertRaises(ConfigError):
            load_config(os.path.join(self.tmpdir.name, "nope.yaml"))

    def test_invalid_yaml(self):
        with self.assertRaises(ConfigError):
            load_config(self._write("websites: [\n"))

    def test_unsupported_driver(self):
        with self.assertRaises(ConfigError) as ctx:
            load_config(self._write("database:\n  driver: mysql\n"))
        self.assertIn("mysql", str(ctx.exception))

    def test_invalid_start_point(self):
        for start_point in ("not a url", "/relative/path", "ftp://example.com/", ""):
            with self.subTest(start_point=start_point):
                with self.assertRaises(ConfigError):
                    load_config(self._with_site(start_point=start_point))

    def test_missing_required_selector(self):
        with self.assertRaises(ConfigError) as ctx:
            load_config(self._with_site(selectors={"title": "h1", "content": ".c"}))
        self.assertIn("date", str(ctx.exception))

    def test_invalid_selector(self):
        with self.assertRaises(ConfigError) as ctx:
            load_config(self._with_site(selectors={"title": "h1[", "content": ".c", "date": ".d"}))
        self.assertIn("title", str(ctx.exception))

    def test_invalid_filter(self):
        with self.assertRaises(ConfigError):
            load_config(self._with_site(filters={"exclude": "(unclosed"}))

    def test_missing_date_format(self):
        with self.assertRaises(ConfigError):
            load_config(self._with_site(date_format=""))

    def test_invalid_max_visits(self):
        with self.assertRaises(ConfigError):
            load_config(self._with_site(max_visits=-1))

    def test_duplicate_identifiers(self):
        site = {
            "identifier": "s",
            "start_point": "https://s.example.com/",
            "date_format": "%Y",
            "selectors": {"title": "h1", "content": ".c", "date": ".d"},
        }
        with self.assertRaises(ConfigError):
            load_config(self._write(yaml.safe_dump({"websites": [site, site]})))


if __name__ == "__main__":
    unittest.main()
