"""Unit tests for PostGenerator."""

import json
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError, NoCredentialsError

from feed_poster.config import BedrockConfig
from feed_poster.exceptions import GenerationError
from feed_poster.generate import PostGenerator
from feed_poster.models import Item

ITEM = Item(
    title="Export voucher program opens",
    link="https://agency.example.kr/notice/1",
    content="Applications for the 2024 export voucher program open today.",
    pub_date="2024-01-01T10:00:00+00:00",
    guid="notice-1",
)


def bedrock_response(payload: dict) -> dict:
    body = Mock()
    body.read.return_value = json.dumps(payload).encode("utf-8")
    return {"body": body}


class TestPostGeneratorUnit:
    """Unit tests for PostGenerator against a mocked Bedrock client."""

    def test_nova_response_is_returned(self):
        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            mock_client.invoke_model.return_value = bedrock_response(
                {
                    "output": {"message": {"content": [{"text": "  Big news for exporters!  "}]}},
                    "usage": {"inputTokens": 100, "outputTokens": 40},
                }
            )
            generator = PostGenerator(BedrockConfig())

            text = generator.generate(ITEM)

        assert text == "Big news for exporters!"
        request = json.loads(mock_client.invoke_model.call_args[1]["body"])
        prompt = request["messages"][0]["content"][0]["text"]
        assert ITEM.title in prompt
        assert ITEM.link in prompt
        assert ITEM.content in prompt

    def test_llama_request_and_response_format(self):
        config = BedrockConfig(model_id="meta.llama3-2-3b-instruct-v1:0")
        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            mock_client.invoke_model.return_value = bedrock_response(
                {"generation": "Llama post", "generation_token_count": 12}
            )
            generator = PostGenerator(config)

            text = generator.generate(ITEM)

        assert text == "Llama post"
        request = json.loads(mock_client.invoke_model.call_args[1]["body"])
        assert request["prompt"].startswith("<|begin_of_text|>")
        assert request["max_gen_len"] == config.max_tokens

    def test_client_error_raises_generation_error(self):
        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            mock_client.invoke_model.side_effect = ClientError(
                {"Error": {"Code": "AccessDeniedException", "Message": "denied"}},
                "InvokeModel",
            )
            generator = PostGenerator(BedrockConfig())

            with pytest.raises(GenerationError) as exc_info:
                generator.generate(ITEM)

        assert exc_info.value.context["error_code"] == "AccessDeniedException"

    def test_missing_credentials_raise_generation_error(self):
        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            mock_client.invoke_model.side_effect = NoCredentialsError()
            generator = PostGenerator(BedrockConfig())

            with pytest.raises(GenerationError):
                generator.generate(ITEM)

    def test_empty_response_raises_generation_error(self):
        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            mock_client.invoke_model.return_value = bedrock_response(
                {"output": {"message": {"content": []}}}
            )
            generator = PostGenerator(BedrockConfig())

            with pytest.raises(GenerationError):
                generator.generate(ITEM)

    def test_non_object_response_raises_generation_error(self):
        with patch("boto3.client") as mock_boto_client:
            mock_client = Mock()
            mock_boto_client.return_value = mock_client
            body = Mock()
            body.read.return_value = b'["not", "an", "object"]'
            mock_client.invoke_model.return_value = {"body": body}
            generator = PostGenerator(BedrockConfig())

            with pytest.raises(GenerationError):
                generator.generate(ITEM)

    def test_unavailable_client_raises_generation_error(self):
        with patch("boto3.client", side_effect=NoCredentialsError()):
            generator = PostGenerator(BedrockConfig())

        assert not generator.available
        with pytest.raises(GenerationError):
            generator.generate(ITEM)

    def test_prompt_template_file_is_used(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "prompts").mkdir()
        (tmp_path / "prompts" / "threads_post_template.txt").write_text(
            "Write about {title} ({link}): {content}", encoding="utf-8"
        )
        with patch("boto3.client"):
            generator = PostGenerator(BedrockConfig())

        assert generator.build_prompt(ITEM) == (
            f"Write about {ITEM.title} ({ITEM.link}): {ITEM.content}"
        )
