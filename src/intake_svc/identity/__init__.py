"""Caller identity extraction."""

from .extractor import IdentityExtractor, extract_identity

__all__ = ["IdentityExtractor", "extract_identity"]
