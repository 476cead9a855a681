"""Convenience exports for ORM models."""
from .document import DocumentRecord

__all__ = ["DocumentRecord"]
