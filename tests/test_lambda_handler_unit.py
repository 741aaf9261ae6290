"""Unit tests for the Lambda entry point."""

import json
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError

from feed_poster import lambda_handler as handler_module
from feed_poster.lambda_handler import lambda_handler
from feed_poster.models import Feed, GeneratedPost, SyncResult


@pytest.fixture
def mock_service():
    service = Mock()
    with patch.object(handler_module, "get_service", return_value=service):
        yield service


def body_of(response):
    return json.loads(response["body"])


class TestLambdaHandlerUnit:
    """Unit tests for lambda_handler action dispatch."""

    def test_sync_is_default_action(self, mock_service):
        mock_service.sync_all.return_value = SyncResult(
            posts=[Mock()], feed_errors=["Down: Failed to fetch feed"]
        )

        response = lambda_handler({}, None)

        assert response["statusCode"] == 200
        body = body_of(response)
        assert body["status"] == "1 posts generated"
        assert body["metrics"]["items_added"] == 1
        assert body["metrics"]["feed_errors"] == ["Down: Failed to fetch feed"]
        assert body["execution_id"].startswith("lambda_")

    def test_import_action_passes_document(self, mock_service):
        mock_service.import_document.return_value = SyncResult()

        response = lambda_handler({"action": "import", "document": "<rss/>"}, None)

        assert response["statusCode"] == 200
        mock_service.import_document.assert_called_once_with("<rss/>")
        assert body_of(response)["status"] == "No updates"

    def test_add_feed_action(self, mock_service):
        mock_service.add_feed.return_value = Feed(
            id="abc", url="https://x.example.kr/rss", name="X", last_fetched=1
        )

        response = lambda_handler(
            {"action": "add_feed", "url": "https://x.example.kr/rss", "name": "X"}, None
        )

        assert response["statusCode"] == 200
        assert body_of(response)["feed"]["id"] == "abc"

    def test_invalid_feed_url_is_bad_request(self, mock_service):
        mock_service.add_feed.side_effect = ValueError("Feed URL cannot be empty")

        response = lambda_handler({"action": "add_feed"}, None)

        assert response["statusCode"] == 400

    def test_remove_feed_action(self, mock_service):
        mock_service.remove_feed.return_value = False

        response = lambda_handler({"action": "remove_feed", "feed_id": "nope"}, None)

        assert body_of(response)["status"] == "Feed not found"

    def test_list_posts_action(self, mock_service):
        mock_service.posts.return_value = [
            GeneratedPost(
                id="p",
                blog_title="T",
                source_name="S",
                original_link="https://x/1",
                generated_content="C",
                original_pub_date="2024-01-01",
                timestamp=1,
            )
        ]

        response = lambda_handler({"action": "list_posts"}, None)

        assert body_of(response)["posts"][0]["originalLink"] == "https://x/1"

    def test_unknown_action(self, mock_service):
        response = lambda_handler({"action": "explode"}, None)

        assert response["statusCode"] == 400

    def test_storage_failure_is_server_error(self, mock_service):
        mock_service.sync_all.side_effect = ClientError(
            {"Error": {"Code": "ResourceNotFoundException", "Message": "no table"}},
            "GetItem",
        )

        response = lambda_handler({"action": "sync"}, None)

        assert response["statusCode"] == 500
        assert "Storage error" in body_of(response)["status"]

    def test_unexpected_failure_is_server_error(self, mock_service):
        mock_service.sync_all.side_effect = AttributeError("boom")

        response = lambda_handler({"action": "sync"}, None)

        assert response["statusCode"] == 500
        body = body_of(response)
        assert "Unexpected error during sync" in body["status"]
        assert body["execution_id"].startswith("lambda_")


class TestGetServiceUnit:
    """Unit tests for the warm-container service cache."""

    def test_warm_invocation_rebinds_execution_id(self, monkeypatch):
        service = Mock()
        build = Mock(return_value=service)
        monkeypatch.setattr(handler_module, "_service", None)
        monkeypatch.setattr(handler_module, "build_service", build)

        assert handler_module.get_service("lambda_first") is service
        assert handler_module.get_service("lambda_second") is service

        build.assert_called_once()
        assert build.call_args[1]["execution_id"] == "lambda_first"
        service.bind_execution.assert_called_once_with("lambda_second")
