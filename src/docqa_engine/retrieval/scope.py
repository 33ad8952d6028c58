"""Resolves a scope context to the set of documents a question may touch."""

from __future__ import annotations

from docqa_engine.exceptions import RetrievalError
from docqa_engine.models.domain import DocumentLink, ScopeContext
from docqa_engine.observability.logger import get_logger
from docqa_engine.protocols.datastore import LinkStore, MetadataStore

logger = get_logger("scope")


class ScopeResolver:
    def __init__(self, metadata_store: MetadataStore, link_store: LinkStore) -> None:
        self._metadata = metadata_store
        self._links = link_store

    async def allowed_doc_ids(self, scope: ScopeContext) -> list[str] | None:
        """Document ids in scope, or None for the whole organization.

        Document scope adds versions and linked documents when requested.
        """
        try:
            if scope.scope == "doc" and scope.doc_id:
                ids = [scope.doc_id]
                if scope.include_versions:
                    ids += await self._metadata.version_ids(scope.org_id, scope.doc_id)
                if scope.include_linked:
                    for link in await self._links.links_involving(scope.org_id, [scope.doc_id]):
                        ids += [link.doc_id, link.linked_doc_id]
                allowed = list(dict.fromkeys(ids))
            elif scope.scope == "folder" and scope.folder_id:
                allowed = await self._metadata.folder_document_ids(scope.org_id, scope.folder_id)
            else:
                return None
        except Exception as e:
            raise RetrievalError(f"Failed to resolve {scope.scope} scope: {e}") from e

        logger.info("scope_resolved", scope=scope.scope, documents=len(allowed))
        return allowed

    async def links_for(self, org_id: str, doc_ids: list[str]) -> list[DocumentLink]:
        try:
            return await self._links.links_involving(org_id, doc_ids)
        except Exception as e:
            raise RetrievalError(f"Link lookup failed: {e}") from e
