"""
Structured Logging & Observability
Logging that's both human-readable and machine-parseable.
"""
import sys
from loguru import logger
from typing import Any, Dict
from closer.config import get_settings


def configure_logging():
    """
    Configure loguru for the decision core.

    In development: Human-readable colorized output
    In production: Structured JSON logs for ingestion
    """
    settings = get_settings()

    # Remove default handler
    logger.remove()

    if not settings.enable_structured_logging:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "{message}"
            ),
            level=settings.log_level,
            colorize=True,
        )
    else:
        logger.add(
            sys.stderr,
            format="{message}",
            level=settings.log_level,
            serialize=True,  # Output as JSON
        )

    logger.info(f"Logging configured: level={settings.log_level}, structured={settings.enable_structured_logging}")


def log_engine_execution(
    engine: str,
    conversation_id: str,
    action: str,
    duration_ms: float | None = None,
    **context
):
    """
    Structured logging for engine executions.

    Args:
        engine: Name of the engine (e.g., "ResponseComposer")
        conversation_id: The conversation being evaluated
        action: What action was performed (e.g., "compose", "evaluate")
        duration_ms: Execution time in milliseconds
        **context: Additional context (stage, intent, strategy, etc.)

    Example:
        >>> log_engine_execution(
        ...     engine="ConversationEvaluator",
        ...     conversation_id="conv-42",
        ...     action="evaluate",
        ...     duration_ms=1.8,
        ...     stage="evaluation",
        ...     strategy="value_framing"
        ... )
    """
    log_data = {
        "engine": engine,
        "conversation_id": conversation_id,
        "action": action,
    }

    if duration_ms is not None:
        log_data["duration_ms"] = round(duration_ms, 2)

    log_data.update(context)

    logger.bind(**log_data).info(f"{engine} | {action}")


def log_business_event(
    event_type: str,
    conversation_id: str,
    **details: Dict[str, Any]
):
    """
    Log business-critical events for analytics.

    Examples:
        - Funnel stage transitions
        - Escalations to the closing flow

    Args:
        event_type: Type of event (e.g., "stage_transition", "escalation")
        conversation_id: The conversation involved
        **details: Event-specific data
    """
    log_data = {
        "event_type": event_type,
        "conversation_id": conversation_id,
        **details
    }

    logger.bind(**log_data).success(f"Business Event: {event_type}")
