"""Shared fixtures for the MYCircle test-suite."""
from __future__ import annotations

import os
from typing import Callable

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_mycircle.db")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("SESSION_TOKEN_SECRET", "test-secret-key")
os.environ.setdefault("DISABLE_RECONCILE", "true")

from mycircle.schemas import Identity  # noqa: E402
from mycircle.services import register_identity  # noqa: E402
from mycircle.store import MemoryDocumentStore  # noqa: E402


@pytest.fixture
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def identity_factory(store: MemoryDocumentStore) -> Callable[..., Identity]:
    def _factory(username: str, *, user_id: str | None = None) -> Identity:
        return register_identity(store, user_id=user_id or f"uid-{username.lower()}", username=username)

    return _factory
