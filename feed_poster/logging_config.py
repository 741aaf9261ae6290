"""Structured logging configuration for Agency Feed Poster."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

LOGGER_NAMESPACE = "feed_poster"

COMPONENTS = (
    "main",
    "normalizer",
    "fetch_resolver",
    "sync",
    "generator",
    "store",
    "config",
)

# Attributes every LogRecord has; anything else on a record came in via ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}

# Keyword arguments the logging call itself understands
_LOGGING_KWARGS = ("exc_info", "stack_info", "stacklevel")


class StructuredFormatter(logging.Formatter):
    """Render each record as one JSON line, context and extras included."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class ExecutionLogger(logging.LoggerAdapter):
    """Component logger that stamps every record with the current execution.

    Keyword arguments passed to ``info``/``warning``/... become fields of the
    JSON record. ``execution_id`` may be reassigned when a long-lived
    component serves a new invocation.
    """

    def __init__(self, execution_id: str, component: str = "main"):
        super().__init__(logging.getLogger(f"{LOGGER_NAMESPACE}.{component}"), {})
        self.execution_id = execution_id
        self.component = component
        self.started_at: datetime | None = None

    def process(self, msg: Any, kwargs: dict[str, Any]) -> tuple[Any, dict[str, Any]]:
        call_kwargs = {key: kwargs.pop(key) for key in _LOGGING_KWARGS if key in kwargs}
        call_kwargs["extra"] = {
            "execution_id": self.execution_id,
            "component": self.component,
            **kwargs,
        }
        return msg, call_kwargs

    def log_execution_start(self, **fields) -> None:
        self.started_at = datetime.now(UTC)
        self.info(
            f"Starting {self.component} execution",
            execution_start=self.started_at.isoformat(),
            **fields,
        )

    def log_execution_end(self, success: bool = True, **fields) -> None:
        finished_at = datetime.now(UTC)
        duration = None
        if self.started_at is not None:
            duration = (finished_at - self.started_at).total_seconds()
        self.info(
            f"Completed {self.component} execution",
            execution_end=finished_at.isoformat(),
            execution_duration_seconds=duration,
            execution_success=success,
            **fields,
        )

    def log_feed_processing(self, feed_url: str, items_count: int) -> None:
        self.info(
            f"Processed feed: {items_count} items found",
            feed_url=feed_url,
            items_count=items_count,
        )

    def log_item_processing(self, item_title: str, action: str, success: bool = True) -> None:
        self.log(
            logging.INFO if success else logging.ERROR,
            f"Item {action}: {item_title}",
            item_title=item_title,
            action=action,
            success=success,
        )

    def log_metrics(self, metrics: dict[str, Any]) -> None:
        self.info("Execution metrics", metrics=metrics)


def setup_structured_logging(log_level: str = "INFO") -> None:
    """Send all records to stdout as JSON lines, as CloudWatch expects.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR);
            unknown names fall back to INFO
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    logging.getLogger(LOGGER_NAMESPACE).setLevel(level)
    for component in COMPONENTS:
        logging.getLogger(f"{LOGGER_NAMESPACE}.{component}").setLevel(level)


def create_execution_logger(
    component: str, execution_id: str | None = None
) -> ExecutionLogger:
    """Create a logger for a component, generating an execution ID if none is given."""
    if not execution_id:
        execution_id = f"exec_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    return ExecutionLogger(execution_id, component)
