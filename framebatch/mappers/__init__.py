"""Bundled frame mappers."""
from framebatch.core.mapper import DefaultFrameMapper
from framebatch.mappers.field import FieldMapper

__all__ = ["DefaultFrameMapper", "FieldMapper"]
