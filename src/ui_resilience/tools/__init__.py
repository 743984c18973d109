"""
Tools package for the UI resilience MCP server.
"""

from .mcp_tools import (
    # Tools
    handle_failure,
    report_failure,
    get_breaker_metrics,
    get_error_analytics,
    get_error_trends,
    get_top_error_categories,
    get_error_rate_by_component,
    get_user_impact_analysis,
    # Utilities
    set_error_handler,
    set_mcp_instance,
)

__all__ = [
    "handle_failure",
    "report_failure",
    "get_breaker_metrics",
    "get_error_analytics",
    "get_error_trends",
    "get_top_error_categories",
    "get_error_rate_by_component",
    "get_user_impact_analysis",
    "set_error_handler",
    "set_mcp_instance",
]
