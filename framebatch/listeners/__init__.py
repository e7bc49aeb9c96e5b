"""Bundled context listeners."""
from framebatch.listeners.logger import ContextLogger
from framebatch.listeners.stats import StatsListener

__all__ = ["ContextLogger", "StatsListener"]
