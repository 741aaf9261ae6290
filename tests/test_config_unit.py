"""Unit tests for configuration management."""

import json
import os
from unittest.mock import patch

import pytest

from feed_poster.config import DEFAULT_FEEDS, Config


class TestConfigUnit:
    """Unit tests for Config class."""

    def test_default_agency_feeds_presence(self):
        urls = [feed.url for feed in DEFAULT_FEEDS]

        assert "https://mss.go.kr/rss/smba/board/310.do" in urls
        assert "https://www.pps.go.kr/kor/rssFeed.do?boardId=00060" in urls
        assert "https://dream.kotra.or.kr/kotra/rssList.do?pSetIdx=243" in urls
        for feed in DEFAULT_FEEDS:
            assert feed.url.startswith("https://")
            assert feed.id
            assert feed.last_fetched == 0

    def test_environment_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = Config()

        assert config.store_backend == "file"
        assert config.aws_region == "us-east-1"
        assert config.get_bedrock_config().model_id == "amazon.nova-micro-v1:0"
        assert config.get_fetch_config().timeout == 30.0
        assert config.get_fetch_config().retry_delay_seconds == 1.0

    def test_environment_overrides(self):
        env = {
            "STORE_BACKEND": "DynamoDB",
            "DYNAMODB_TABLE": "custom-table",
            "CURRENT_AWS_REGION": "ap-northeast-2",
            "FETCH_RETRY_DELAY": "0",
            "BEDROCK_MODEL_ID": "meta.llama3-2-3b-instruct-v1:0",
        }
        with patch.dict(os.environ, env, clear=True):
            config = Config()

        store_config = config.get_store_config()
        assert store_config.backend == "dynamodb"
        assert store_config.table_name == "custom-table"
        assert store_config.region == "ap-northeast-2"
        assert config.get_fetch_config().retry_delay_seconds == 0.0
        assert config.get_bedrock_config().region == "ap-northeast-2"

    def test_builtin_defaults_without_feeds_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        feeds = Config().get_default_feeds()

        assert [f.id for f in feeds] == [f.id for f in DEFAULT_FEEDS]
        assert feeds[0] is not DEFAULT_FEEDS[0]

    def test_invalid_feeds_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "feeds.json").write_text("{broken")

        with pytest.raises(ValueError):
            Config().get_default_feeds()

    def test_feeds_file_without_enabled_feeds(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "feeds.json").write_text(
            json.dumps({"feeds": [{"url": "https://x.example.kr/rss", "enabled": False}]})
        )

        with pytest.raises(ValueError):
            Config().get_default_feeds()

    def test_log_level_from_environment(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "DEBUG"}, clear=True):
            assert Config().log_level == "DEBUG"
        with patch.dict(os.environ, {}, clear=True):
            assert Config().log_level == "INFO"
