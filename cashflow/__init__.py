"""Cash-flow scenario planner: CSV imports, what-if scenarios and weekly analytics."""

from .core import get_logger, get_settings

__all__ = ["get_logger", "get_settings"]
