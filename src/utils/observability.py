"""
Structured Logging & Observability
Production-grade logging that's both human-readable and machine-parseable.
"""
import sys
from loguru import logger
from typing import Any, Dict
from src.config import get_settings


def configure_logging():
    """
    Configure loguru for production observability.

    In development: Human-readable colorized output
    In production: Structured JSON logs for ingestion (ELK, Datadog, etc.)
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


def log_validator_execution(
    validator: str,
    prospect_id: str,
    status: str,
    duration_ms: float | None = None,
    **context
):
    """
    Structured logging for a single validator run inside a vetting fan-out.

    Args:
        validator: Validator name ("website", "identity", "budget")
        prospect_id: The prospect being vetted
        status: "ok" or the failure reason ("timeout", "upstream_error", ...)
        duration_ms: Wall time of the validator in milliseconds
        **context: Additional context (score, domain, from_cache, ...)

    Example:
        >>> log_validator_execution(
        ...     validator="website",
        ...     prospect_id="p-123",
        ...     status="ok",
        ...     duration_ms=812.4,
        ...     score=75,
        ...     from_cache=True
        ... )
    """
    log_data = {
        "validator": validator,
        "prospect_id": prospect_id,
        "status": status,
    }

    if duration_ms is not None:
        log_data["duration_ms"] = round(duration_ms, 2)

    log_data.update(context)

    bound = logger.bind(**log_data)
    if status == "ok":
        bound.info(f"Validator {validator} | {status}")
    else:
        bound.warning(f"Validator {validator} | {status}")


def log_llm_call(
    caller: str,
    model: str,
    duration_ms: float,
    success: bool = True,
    error: str | None = None
):
    """
    Structured logging for text-completion calls.

    Args:
        caller: Which component made the call (e.g., "FieldExtractor")
        model: Model used (e.g., "openai:gpt-4o-mini")
        duration_ms: API latency in milliseconds
        success: Whether the call succeeded
        error: Error message if failed
    """
    log_data = {
        "event_type": "llm_call",
        "caller": caller,
        "model": model,
        "duration_ms": round(duration_ms, 2),
        "success": success
    }

    if error:
        log_data["error"] = error

    level = "info" if success else "error"
    logger.bind(**log_data).log(
        level.upper(),
        f"LLM Call: {model} | {caller} | {duration_ms:.0f}ms"
    )


def log_business_event(
    event_type: str,
    prospect_id: str,
    **details: Dict[str, Any]
):
    """
    Log business-critical events for analytics.

    Examples:
        - Snapshot created
        - Extraction session completed
        - Vetting aborted

    Args:
        event_type: Type of event (e.g., "snapshot_created", "session_completed")
        prospect_id: The prospect (or session) involved
        **details: Event-specific data
    """
    log_data = {
        "event_type": event_type,
        "prospect_id": prospect_id,
        **details
    }

    logger.bind(**log_data).success(f"Business Event: {event_type}")
