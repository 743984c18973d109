"""
UI resilience layer: circuit breaking, failure classification, recovery
planning, analytics and privacy-aware reporting for UI failures.

Import the building blocks from their subpackages, e.g.
``from ui_resilience.error_handling import ErrorHandler``.
"""

__version__ = "0.1.0"
