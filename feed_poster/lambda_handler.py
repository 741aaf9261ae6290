"""Main Lambda handler for Agency Feed Poster."""

import json
from datetime import UTC, datetime
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from .config import Config
from .exceptions import StoreError
from .logging_config import create_execution_logger, setup_structured_logging
from .models import SyncResult
from .service import FeedService, build_service

setup_structured_logging(Config().log_level)

# Shared across warm invocations so a running pass blocks concurrent triggers
_service: FeedService | None = None


def get_service(execution_id: str) -> FeedService:
    global _service
    if _service is None:
        _service = build_service(Config(), execution_id=execution_id)
    else:
        _service.bind_execution(execution_id)
    return _service


def _response(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    return {"statusCode": status_code, "body": json.dumps(body, ensure_ascii=False)}


def _result_metrics(result: SyncResult) -> dict[str, Any]:
    return {
        "items_added": result.added_count,
        "feed_errors": result.feed_errors,
        "item_errors": result.item_errors,
        "skipped": result.skipped,
    }


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Dispatch a triggered action against the feed pipeline.

    Supported ``event["action"]`` values: ``sync`` (default), ``import``
    (with ``document``), ``add_feed`` (with ``url`` and optional ``name``),
    ``remove_feed`` (with ``feed_id``) and ``list_posts``.

    Args:
        event: Lambda event data
        context: Lambda context object

    Returns:
        Response dictionary with status code and JSON body
    """
    execution_id = f"lambda_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    main_logger = create_execution_logger("main", execution_id)
    event = event or {}
    action = event.get("action", "sync")

    main_logger.log_execution_start(
        action=action,
        lambda_request_id=getattr(context, "aws_request_id", "unknown"),
    )

    try:
        service = get_service(execution_id)

        if action == "sync":
            result = service.sync_all()
            body = {"status": result.status_message, "metrics": _result_metrics(result)}
        elif action == "import":
            result = service.import_document(event.get("document", ""))
            body = {"status": result.status_message, "metrics": _result_metrics(result)}
        elif action == "add_feed":
            feed = service.add_feed(event.get("url", ""), event.get("name"))
            body = {"status": "Feed added", "feed": feed.to_dict()}
        elif action == "remove_feed":
            removed = service.remove_feed(event.get("feed_id", ""))
            body = {"status": "Feed removed" if removed else "Feed not found"}
        elif action == "list_posts":
            posts = service.posts()
            body = {"status": f"{len(posts)} posts", "posts": [p.to_dict() for p in posts]}
        else:
            main_logger.warning(f"Unknown action: {action}")
            main_logger.log_execution_end(success=False, action=action)
            return _response(
                400, {"status": f"Unknown action: {action}", "execution_id": execution_id}
            )

    except ValueError as e:
        main_logger.error(f"Invalid request: {e}", error=str(e))
        main_logger.log_execution_end(success=False, action=action)
        return _response(400, {"status": str(e), "execution_id": execution_id})
    except (OSError, ClientError, BotoCoreError, StoreError) as e:
        error_msg = f"Storage error during {action}: {e}"
        main_logger.error(error_msg, error=str(e))
        main_logger.log_execution_end(success=False, action=action)
        return _response(500, {"status": error_msg, "execution_id": execution_id})
    except Exception as e:
        error_msg = f"Unexpected error during {action}: {e}"
        main_logger.error(error_msg, error=str(e), error_type=type(e).__name__)
        main_logger.log_execution_end(success=False, action=action)
        return _response(500, {"status": error_msg, "execution_id": execution_id})

    body["execution_id"] = execution_id
    main_logger.log_execution_end(success=True, action=action)
    return _response(200, body)
