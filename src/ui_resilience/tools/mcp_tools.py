"""
MCP tools exposing the resilience layer.

Failures can be submitted and breaker and analytics state queried over
MCP. The handler and the FastMCP instance are injected by the server at
startup.
"""

import json
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ui_resilience.exceptions import ResilienceError
from ui_resilience.models import FailureContext, RawError

logger = logging.getLogger(__name__)

# MCP instance will be injected at runtime
mcp = None

# Will be set by the server during initialization
error_handler = None


def set_error_handler(handler):
    """Set the ErrorHandler the MCP tools operate on."""
    global error_handler
    error_handler = handler


def set_mcp_instance(mcp_instance):
    """Set the FastMCP instance for tool registration."""
    global mcp
    mcp = mcp_instance
    _register_mcp_tools()


def _register_mcp_tools():
    """Register all MCP tools with the FastMCP instance."""
    if mcp is None:
        raise RuntimeError("MCP instance not set. Call set_mcp_instance() first.")

    mcp.tool()(handle_failure)
    mcp.tool()(report_failure)
    mcp.tool()(get_breaker_metrics)
    mcp.tool()(get_error_analytics)
    mcp.tool()(get_error_trends)
    mcp.tool()(get_top_error_categories)
    mcp.tool()(get_error_rate_by_component)
    mcp.tool()(get_user_impact_analysis)


def _require_handler():
    if error_handler is None:
        raise RuntimeError("Error handler not set. Call set_error_handler() first.")
    return error_handler


def _build_context(
    component: str,
    session_id: str,
    action: str,
    url: str,
    client_id: str,
    metadata: Optional[Dict[str, Any]],
) -> FailureContext:
    return FailureContext(
        session_id=session_id,
        component=component,
        action=action,
        url=url,
        client_id=client_id,
        metadata=metadata or {},
    )


def _error(message: str) -> str:
    return json.dumps({"error": message})


# =============================================================================
# MCP TOOLS
# =============================================================================


async def handle_failure(
    message: str,
    component: str,
    session_id: str,
    name: str = "Error",
    action: str = "unknown",
    url: str = "",
    client_id: str = "",
    metadata: Optional[Dict[str, Any]] = None,
    retry_count: int = 0,
) -> str:
    """
    Classify a UI failure and get the recovery response the UI should show.

    Returns the RecoveryResponse as JSON: user message, severity, actions
    (retry/dismiss/report), retry delay and an optional fallback strategy.
    """
    handler = _require_handler()
    logger.info(f"Handling failure from {component}: {name}")

    try:
        context = _build_context(component, session_id, action, url, client_id, metadata)
        response = handler.handle(
            RawError(message=message, name=name), context, retry_count=retry_count
        )
        return response.model_dump_json(indent=2)
    except (ValidationError, ResilienceError) as e:
        logger.error(f"Invalid failure submitted: {e}")
        return _error(f"Invalid failure: {e}")


async def report_failure(
    message: str,
    component: str,
    session_id: str,
    consent: bool,
    name: str = "Error",
    action: str = "unknown",
    url: str = "",
    client_id: str = "",
    metadata: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Classify a failure and submit an error report.

    Without consent the report is kept locally and never transmitted.
    """
    handler = _require_handler()

    try:
        context = _build_context(component, session_id, action, url, client_id, metadata)
        failure = handler.classifier.classify(RawError(message=message, name=name), context)
        await handler.report(failure, consent)
    except (ValidationError, ResilienceError) as e:
        logger.error(f"Invalid failure report: {e}")
        return _error(f"Invalid failure: {e}")

    return json.dumps(
        {
            "report_id": failure.id,
            "category": failure.category.value,
            "severity": failure.severity.value,
            "consent": consent,
            "pending_reports": len(handler.reporter.pending_reports()),
        },
        indent=2,
    )


async def get_breaker_metrics(component: Optional[str] = None) -> str:
    """Circuit breaker metrics for one failure domain, or for all of them."""
    handler = _require_handler()
    if component is None:
        return json.dumps(handler.get_all_metrics(), indent=2)

    metrics = handler.get_metrics(component)
    if metrics is None:
        return _error(f"No circuit breaker for component '{component}'")
    return json.dumps(metrics, indent=2)


async def get_error_analytics() -> str:
    """Per-error summaries with counts, affected users and resolution estimates."""
    handler = _require_handler()
    summaries = handler.analytics.get_analytics()
    return json.dumps([s.model_dump(mode="json") for s in summaries], indent=2)


async def get_error_trends(window: str = "day") -> str:
    """Failure counts in 24 buckets over an hour, day, week or month."""
    handler = _require_handler()
    try:
        buckets = handler.analytics.get_error_trends(window)
    except ValueError as e:
        return _error(str(e))
    return json.dumps([b.model_dump(mode="json") for b in buckets], indent=2)


async def get_top_error_categories(limit: int = 10) -> str:
    """Failure categories ranked by count with their share of the history."""
    handler = _require_handler()
    breakdown = handler.analytics.get_top_error_categories(limit)
    return json.dumps([b.model_dump(mode="json") for b in breakdown], indent=2)


async def get_error_rate_by_component() -> str:
    """Errors per hour over the last 24 hours for each component."""
    handler = _require_handler()
    rates = handler.analytics.get_error_rate_by_component()
    return json.dumps([r.model_dump(mode="json") for r in rates], indent=2)


async def get_user_impact_analysis() -> str:
    """Distinct affected clients and their failure counts."""
    handler = _require_handler()
    return handler.analytics.get_user_impact_analysis().model_dump_json(indent=2)
