"""
Unit tests for services.crawler.utils module.

Tests:
- parse_seed_file() comments, blank lines and missing files
"""

from crawlr.services.crawler.utils import parse_seed_file


class TestParseSeedFile:
    """parse_seed_file()."""

    def test_reads_urls_in_order(self, tmp_path):
        path = tmp_path / "seeds.txt"
        path.write_text("wss://nos.lol\nwss://relay.damus.io\n")

        assert parse_seed_file(path) == ["wss://nos.lol", "wss://relay.damus.io"]

    def test_skips_comments_and_blank_lines(self, tmp_path):
        path = tmp_path / "seeds.txt"
        path.write_text("# public relays\n\n  wss://nos.lol  \n   \n# wss://old.example.com\n")

        assert parse_seed_file(str(path)) == ["wss://nos.lol"]

    def test_keeps_invalid_urls(self, tmp_path):
        path = tmp_path / "seeds.txt"
        path.write_text("not-a-url\n")

        assert parse_seed_file(path) == ["not-a-url"]

    def test_missing_file(self, tmp_path):
        assert parse_seed_file(tmp_path / "missing.txt") == []
