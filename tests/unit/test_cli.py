"""
Unit tests for the crawlr.__main__ CLI module.

Tests:
- parse_args() defaults and overrides
- apply_overrides() merging into the config mapping
- main() config errors, one-shot and continuous runs
- run_crawler() failure and signal exit codes
"""

import asyncio
import os
import signal
from unittest.mock import patch

import pytest

from crawlr.__main__ import (
    DEFAULT_CONFIG,
    EXIT_FAILURE,
    EXIT_INTERRUPTED,
    EXIT_OK,
    _load_yaml_dict,
    apply_overrides,
    main,
    parse_args,
    run_crawler,
)
from crawlr.services.crawler import Crawler
from crawlr.services.crawler.checkpoint import load_checkpoint


R1 = "wss://r1.example.com"
R2 = "wss://r2.example.com"


async def fake_fetch(url, timeout, **kwargs):
    return {R1: [R2]}.get(url, [])


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "crawler.yaml"
    path.write_text(
        f"seeds: [{R1}]\n"
        "retry:\n  max_retries: 1\n  backoff: 0\n"
        f"checkpoint:\n  directory: {tmp_path / 'logs'}\n"
    )
    return path


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("crawlr.__main__.setup_logging"):
        yield


# ============================================================================
# parse_args() Tests
# ============================================================================


class TestParseArgs:
    """Argument parsing."""

    def test_defaults(self):
        args = parse_args([])
        assert args.config == DEFAULT_CONFIG
        assert args.log_level == "INFO"
        assert args.once is False
        assert args.seeds is None
        assert args.concurrency is None
        assert args.max_depth is None
        assert args.software_survey is None

    def test_overrides(self):
        args = parse_args(
            [
                "--once",
                "--concurrency", "50",
                "--max-retries", "3",
                "--timeout", "2.5",
                "--backoff", "0",
                "--max-depth", "2",
                "--seed", R1,
                "--seed", R2,
                "--checkpoint-dir", "/tmp/crawl",
            ]
        )
        assert args.once is True
        assert args.concurrency == 50
        assert args.max_retries == 3
        assert args.timeout == 2.5
        assert args.backoff == 0.0
        assert args.max_depth == 2
        assert args.seeds == [R1, R2]
        assert args.checkpoint_dir == "/tmp/crawl"

    def test_invalid_log_level(self):
        with pytest.raises(SystemExit):
            parse_args(["--log-level", "TRACE"])


# ============================================================================
# apply_overrides() Tests
# ============================================================================


class TestApplyOverrides:
    """CLI values take precedence over the file."""

    def test_nested_values(self):
        config = {"retry": {"max_retries": 5, "backoff": 2.0}}
        args = parse_args(["--max-retries", "3", "--concurrency", "8", "--timeout", "4"])

        result = apply_overrides(config, args)

        assert result["retry"] == {"max_retries": 3, "backoff": 2.0}
        assert result["concurrency"] == {"max_parallel": 8}
        assert result["fetch"] == {"timeout": 4.0}

    def test_seeds_appended(self):
        config = {"seeds": [R1]}
        result = apply_overrides(config, parse_args(["--seed", R2]))
        assert result["seeds"] == [R1, R2]

    def test_no_overrides(self):
        config = {"seeds": [R1], "max_depth": 4}
        assert apply_overrides(dict(config), parse_args([])) == config

    def test_zero_max_depth(self):
        assert apply_overrides({}, parse_args(["--max-depth", "0"]))["max_depth"] == 0

    def test_software_survey(self):
        result = apply_overrides({"software": {"threshold": 5}}, parse_args(["--software-survey"]))
        assert result["software"] == {"threshold": 5, "enabled": True}


class TestLoadYamlDict:
    """Missing config files are tolerated."""

    def test_missing(self, tmp_path):
        assert _load_yaml_dict(tmp_path / "missing.yaml") == {}

    def test_present(self, config_file):
        assert _load_yaml_dict(config_file)["seeds"] == [R1]


# ============================================================================
# main() Tests
# ============================================================================


class TestMain:
    """End-to-end CLI runs with the network replaced."""

    async def test_once(self, config_file, tmp_path):
        with patch("crawlr.services.crawler.service.fetch_relay_list", fake_fetch):
            code = await main(["--config", str(config_file), "--once"])

        assert code == EXIT_OK
        rows = {r.url: r for r in load_checkpoint(tmp_path / "logs")}
        assert set(rows) == {R1, R2}

    async def test_continuous_until_complete(self, config_file):
        with patch("crawlr.services.crawler.service.fetch_relay_list", fake_fetch):
            code = await asyncio.wait_for(main(["--config", str(config_file)]), timeout=10)

        assert code == EXIT_OK

    async def test_checkpoint_dir_override(self, config_file, tmp_path):
        target = tmp_path / "elsewhere"
        with patch("crawlr.services.crawler.service.fetch_relay_list", fake_fetch):
            code = await main(
                ["--config", str(config_file), "--once", "--checkpoint-dir", str(target)]
            )

        assert code == EXIT_OK
        assert (target / "clear_online_relays.csv").is_file()

    async def test_invalid_override(self, config_file):
        assert await main(["--config", str(config_file), "--concurrency", "0"]) == EXIT_FAILURE

    async def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("seeds: [wss://nos.lol\n")
        assert await main(["--config", str(path), "--once"]) == EXIT_FAILURE

    async def test_unknown_type(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("max_depth: deep\n")
        assert await main(["--config", str(path), "--once"]) == EXIT_FAILURE


# ============================================================================
# run_crawler() Tests
# ============================================================================


class TestRunCrawler:
    """Exit codes of run_crawler()."""

    async def test_failure(self, crawler_config):
        crawler = Crawler(config=crawler_config, fetch=fake_fetch)
        with patch.object(crawler, "run", side_effect=RuntimeError("boom")):
            assert await run_crawler(crawler, once=True) == EXIT_FAILURE

    async def test_signal_interrupts(self, crawler_config):
        async def interrupted_fetch(url, timeout, **kwargs):
            os.kill(os.getpid(), signal.SIGINT)
            await asyncio.sleep(0.1)
            return []

        crawler = Crawler(
            config=crawler_config.model_copy(update={"seeds": [R1]}), fetch=interrupted_fetch
        )

        assert await run_crawler(crawler, once=True) == EXIT_INTERRUPTED
        assert crawler.is_running is False
