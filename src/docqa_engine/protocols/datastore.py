"""Protocols for the document datastore collaborators."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from docqa_engine.models.domain import Chunk, Document, DocumentLink, MetadataFilters


class MetadataStore(Protocol):
    async def search(
        self, org_id: str, filters: MetadataFilters, limit: int | None = None
    ) -> list[Document]: ...

    async def folder_document_ids(self, org_id: str, folder_id: str) -> list[str]: ...

    async def version_ids(self, org_id: str, doc_id: str) -> list[str]: ...


class ChunkIndex(Protocol):
    async def match_chunks(
        self,
        org_id: str,
        query_embedding: list[float],
        match_count: int,
        similarity_threshold: float,
    ) -> list[Chunk]: ...

    async def keyword_chunks(
        self,
        org_id: str,
        doc_ids: Iterable[str],
        keywords: Iterable[str],
        limit: int,
    ) -> list[Chunk]:
        """Lexical OR-filter sweep: chunks containing any of ``keywords``."""
        ...


class LinkStore(Protocol):
    async def links_involving(
        self, org_id: str, doc_ids: Iterable[str]
    ) -> list[DocumentLink]: ...
