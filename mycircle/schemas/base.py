"""Shared base for schemas that mirror stored documents."""
from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..store import Snapshot

DocumentModelT = TypeVar("DocumentModelT", bound="DocumentModel")


class DocumentModel(BaseModel):
    """Pydantic model whose stored form uses camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str

    @classmethod
    def from_snapshot(cls: type[DocumentModelT], snapshot: Snapshot) -> DocumentModelT:
        return cls.model_validate(snapshot.to_dict())

    def to_document(self) -> dict[str, Any]:
        """Return the stored representation without the id."""

        return self.model_dump(by_alias=True, exclude={"id"})


__all__ = ["DocumentModel"]
