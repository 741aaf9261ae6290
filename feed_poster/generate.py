"""Social post generation using Amazon Bedrock."""

import json
import time
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from .config import BedrockConfig
from .exceptions import GenerationError
from .logging_config import create_execution_logger
from .models import Item

DEFAULT_PROMPT_TEMPLATE = """You are a social media marketer who turns agency announcements into posts optimized for Threads.

INPUT:
[Title]: {title}
[Body]: {content}
[Link]: {link}

OUTPUT GUIDELINES:
1. Tone: friendly and conversational.
2. Structure:
   - First line: a strong hook (a question or a surprising fact) that stops the scroll
   - Body: the key points of the announcement as 3 to 5 bullet points
   - Closing: a question or call to action for the reader
3. Emoji: mix in emoji that fit the context.
4. Length: at most 400 characters including spaces.
5. Link: end with "Read the full announcement at the link below!" followed by the URL.

Do not copy the announcement verbatim; reframe it around the insight readers care about."""


class PostGenerator:
    """Turns one feed item into one social post through Bedrock."""

    TEMPLATE_FILE = "prompts/threads_post_template.txt"

    def __init__(self, config: BedrockConfig, execution_id: str | None = None):
        """Initialize the generator with Bedrock configuration."""
        self.config = config
        self.logger = create_execution_logger("generator", execution_id)
        self.bedrock_client = None
        self.prompt_template = self._load_prompt_template()
        self._initialize_bedrock_client()

    @property
    def available(self) -> bool:
        return self.bedrock_client is not None

    def _initialize_bedrock_client(self) -> None:
        try:
            self.bedrock_client = boto3.client(
                "bedrock-runtime", region_name=self.config.region
            )
            self.logger.info("Initialized Bedrock client", region=self.config.region)
        except (NoCredentialsError, ClientError, BotoCoreError) as e:
            self.logger.warning(
                f"Failed to initialize Bedrock client: {e}", error=str(e)
            )
            self.bedrock_client = None

    def _load_prompt_template(self) -> str:
        template_file = Path(self.TEMPLATE_FILE)
        if not template_file.exists():
            # Lambda root directory
            template_file = Path("/var/task") / self.TEMPLATE_FILE

        if template_file.exists():
            try:
                with open(template_file, "r", encoding="utf-8") as f:
                    return f.read()
            except OSError as e:
                self.logger.warning(f"Failed to load template file: {e}")

        return DEFAULT_PROMPT_TEMPLATE

    def build_prompt(self, item: Item) -> str:
        return self.prompt_template.format(
            title=item.title, content=item.content, link=item.link
        )

    def _format_llama_prompt(self, prompt: str) -> str:
        """Format prompt with Llama 3 chat template tags."""
        return f"""<|begin_of_text|><|start_header_id|>system<|end_header_id|>

You write short, engaging social media posts. Follow the requested format exactly.<|eot_id|><|start_header_id|>user<|end_header_id|>

{prompt}<|eot_id|><|start_header_id|>assistant<|end_header_id|>

"""

    def _is_llama(self) -> bool:
        return "llama" in self.config.model_id.lower()

    def build_request_body(self, prompt: str) -> dict:
        # Llama: legacy prompt/max_gen_len format with chat template tags
        if self._is_llama():
            return {
                "prompt": self._format_llama_prompt(prompt),
                "max_gen_len": self.config.max_tokens,
                "temperature": 0.7,
                "top_p": 0.9,
            }
        # Nova / Mistral: messages/inferenceConfig format
        return {
            "messages": [{"role": "user", "content": [{"text": prompt}]}],
            "inferenceConfig": {
                "maxTokens": self.config.max_tokens,
                "temperature": 0.7,
            },
        }

    def extract_text(self, response_body: dict) -> str:
        if self._is_llama():
            return response_body.get("generation") or ""
        message = response_body.get("output", {}).get("message", {})
        content = message.get("content") or []
        if not content:
            return ""
        return content[0].get("text", "") or ""

    def generate(self, item: Item) -> str:
        """Generate a social post for a feed item.

        Args:
            item: The normalized feed item

        Returns:
            The generated post text

        Raises:
            GenerationError: If Bedrock is unavailable, the call fails or the
                model returns no text
        """
        if not self.bedrock_client:
            raise GenerationError(
                "Bedrock client not available, check AWS credentials",
                {"item_title": item.title},
            )

        request_body = self.build_request_body(self.build_prompt(item))
        self.logger.info(
            "Calling Bedrock API",
            item_title=item.title,
            model_id=self.config.model_id,
            content_length=len(item.content),
        )

        start_time = time.time()
        try:
            response = self.bedrock_client.invoke_model(
                modelId=self.config.model_id,
                body=json.dumps(request_body),
                contentType="application/json",
                accept="application/json",
            )
            response_body = json.loads(response["body"].read())
            if not isinstance(response_body, dict):
                raise ValueError(f"Unexpected response body type: {type(response_body).__name__}")
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            self.logger.error(
                f"Bedrock client error: {error_code}",
                item_title=item.title,
                error_code=error_code,
            )
            raise GenerationError(
                "Bedrock request failed",
                {"model_id": self.config.model_id, "error_code": error_code},
            ) from e
        except (BotoCoreError, ValueError) as e:
            self.logger.error(
                f"Unexpected error calling Bedrock: {e}", item_title=item.title, error=str(e)
            )
            raise GenerationError(
                "Bedrock request failed", {"model_id": self.config.model_id}
            ) from e

        response_time_ms = int((time.time() - start_time) * 1000)
        text = self.extract_text(response_body).strip()
        if not text:
            self.logger.warning(
                f"Empty response from model {self.config.model_id}",
                item_title=item.title,
                response_keys=list(response_body.keys()),
            )
            raise GenerationError(
                "Model returned an empty post", {"model_id": self.config.model_id}
            )

        self.logger.info(
            "Generated post",
            item_title=item.title,
            response_length=len(text),
            response_time_ms=response_time_ms,
        )
        return text
