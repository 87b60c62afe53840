"""
Document Store

The persistence contract the core consumes, plus two implementations:
an in-memory store (tests, embedding in another process) and a JSON-file
store persisted under ~/.insightops/store.json.

All methods are synchronous; async callers wrap them in run_with_timeout.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from .errors import NotFound, PersistenceError
from .schemas import DecayAnalysis, Document, DocumentVersion, sort_versions

logger = logging.getLogger("insightops.common.document_store")

# Fields a ranking pass needs; content is deliberately absent
LIGHTWEIGHT_FIELDS = ("id", "title", "type", "embedding", "updated_at")

ChangeListener = Callable[[Document], None]


class DocumentStore(Protocol):
    """Collaborator contract for document and analysis persistence."""

    def get_document(self, document_id: str) -> Optional[Document]:
        ...

    def get_versions(self, document_id: str) -> List[DocumentVersion]:
        ...

    def list_workspace_documents(
        self, workspace_id: str, fields: Optional[Sequence[str]] = None
    ) -> List[Document]:
        ...

    def get_contents(self, document_ids: Iterable[str]) -> Dict[str, str]:
        ...

    def count_documents(self, workspace_id: Optional[str] = None) -> int:
        ...

    def persist_decay_analysis(self, analysis: DecayAnalysis) -> DecayAnalysis:
        ...

    def get_decay_analysis(self, analysis_id: str) -> Optional[DecayAnalysis]:
        ...

    def list_decay_analyses(
        self, document_id: Optional[str] = None, workspace_id: Optional[str] = None
    ) -> List[DecayAnalysis]:
        ...

    def update_decay_analysis(self, analysis: DecayAnalysis) -> DecayAnalysis:
        ...


class InMemoryDocumentStore:
    """
    Dict-backed store.

    Listing order is insertion order, which the retriever relies on for
    stable tie-breaking.
    """

    def __init__(self):
        self._documents: Dict[str, Document] = {}
        self._versions: Dict[str, List[DocumentVersion]] = {}
        self._analyses: Dict[str, DecayAnalysis] = {}
        self._listeners: List[ChangeListener] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def add_change_listener(self, listener: ChangeListener) -> None:
        """Register a callback fired when a document's content or embedding changes."""
        self._listeners.append(listener)

    def _notify(self, document: Document) -> None:
        for listener in list(self._listeners):
            listener(document)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def save_document(
        self,
        document: Document,
        versions: Optional[List[DocumentVersion]] = None,
    ) -> Document:
        """Insert or replace a document (and optionally its version history)."""
        with self._lock:
            previous = self._documents.get(document.id)
            documents = dict(self._documents)
            documents[document.id] = document.model_copy(deep=True)
            all_versions = None
            if versions is not None:
                all_versions = dict(self._versions)
                all_versions[document.id] = [v.model_copy() for v in versions]
            self._commit(documents=documents, versions=all_versions)

        changed = (
            previous is None
            or previous.content != document.content
            or previous.embedding != document.embedding
        )
        if changed:
            logger.info("Document %s changed in workspace %s", document.id, document.workspace_id)
            self._notify(document)
        return document

    def add_version(self, version: DocumentVersion) -> DocumentVersion:
        with self._lock:
            if version.document_id not in self._documents:
                raise NotFound(f"Document not found: {version.document_id}")
            all_versions = dict(self._versions)
            all_versions[version.document_id] = (
                list(all_versions.get(version.document_id, [])) + [version.model_copy()]
            )
            self._commit(versions=all_versions)
        return version

    def get_document(self, document_id: str) -> Optional[Document]:
        with self._lock:
            document = self._documents.get(document_id)
            return document.model_copy(deep=True) if document else None

    def get_versions(self, document_id: str) -> List[DocumentVersion]:
        """Versions of a document, newest first."""
        with self._lock:
            return sort_versions([v.model_copy() for v in self._versions.get(document_id, [])])

    def list_workspace_documents(
        self, workspace_id: str, fields: Optional[Sequence[str]] = None
    ) -> List[Document]:
        """
        Documents in a workspace.

        When ``fields`` is given and omits "content", content is blanked so
        the listing stays lightweight.
        """
        with self._lock:
            docs = [d for d in self._documents.values() if d.workspace_id == workspace_id]
            if fields is not None and "content" not in fields:
                return [d.model_copy(update={"content": ""}, deep=True) for d in docs]
            return [d.model_copy(deep=True) for d in docs]

    def get_contents(self, document_ids: Iterable[str]) -> Dict[str, str]:
        with self._lock:
            return {
                doc_id: self._documents[doc_id].content
                for doc_id in document_ids
                if doc_id in self._documents
            }

    def count_documents(self, workspace_id: Optional[str] = None) -> int:
        with self._lock:
            if workspace_id is None:
                return len(self._documents)
            return sum(1 for d in self._documents.values() if d.workspace_id == workspace_id)

    # ------------------------------------------------------------------
    # Decay analyses
    # ------------------------------------------------------------------

    def persist_decay_analysis(self, analysis: DecayAnalysis) -> DecayAnalysis:
        with self._lock:
            analyses = dict(self._analyses)
            analyses[analysis.id] = analysis.model_copy(deep=True)
            self._commit(analyses=analyses)
        return analysis

    def get_decay_analysis(self, analysis_id: str) -> Optional[DecayAnalysis]:
        with self._lock:
            analysis = self._analyses.get(analysis_id)
            return analysis.model_copy(deep=True) if analysis else None

    def list_decay_analyses(
        self, document_id: Optional[str] = None, workspace_id: Optional[str] = None
    ) -> List[DecayAnalysis]:
        """Analyses, newest first, optionally scoped to a document or workspace."""
        with self._lock:
            analyses = list(self._analyses.values())
            if document_id is not None:
                analyses = [a for a in analyses if a.document_id == document_id]
            if workspace_id is not None:
                in_workspace = {
                    d.id for d in self._documents.values() if d.workspace_id == workspace_id
                }
                analyses = [a for a in analyses if a.document_id in in_workspace]
            analyses.sort(key=lambda a: a.analyzed_at, reverse=True)
            return [a.model_copy(deep=True) for a in analyses]

    def update_decay_analysis(self, analysis: DecayAnalysis) -> DecayAnalysis:
        with self._lock:
            if analysis.id not in self._analyses:
                raise NotFound(f"Decay analysis not found: {analysis.id}")
            analyses = dict(self._analyses)
            analyses[analysis.id] = analysis.model_copy(deep=True)
            self._commit(analyses=analyses)
        return analysis

    def _commit(
        self,
        documents: Optional[Dict[str, Document]] = None,
        versions: Optional[Dict[str, List[DocumentVersion]]] = None,
        analyses: Optional[Dict[str, DecayAnalysis]] = None,
    ) -> None:
        """Flush the proposed state, then swap it in. A failed flush leaves the store unchanged."""
        documents = self._documents if documents is None else documents
        versions = self._versions if versions is None else versions
        analyses = self._analyses if analyses is None else analyses
        self._flush(documents, versions, analyses)
        self._documents, self._versions, self._analyses = documents, versions, analyses

    def _flush(
        self,
        documents: Dict[str, Document],
        versions: Dict[str, List[DocumentVersion]],
        analyses: Dict[str, DecayAnalysis],
    ) -> None:
        """Hook for durable subclasses; in-memory state needs no flush."""


class JsonDocumentStore(InMemoryDocumentStore):
    """
    Store persisted to a single JSON file.

    Every mutation rewrites the file atomically (temp file + os.replace),
    so a crash never leaves a half-written store behind.
    """

    def __init__(self, path: Path):
        super().__init__()
        self._path = Path(path).expanduser()
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            return

        try:
            with open(self._path) as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise PersistenceError(f"Failed to load store {self._path}: {e}") from e

        for item in data.get("documents", []):
            doc = Document.model_validate(item)
            self._documents[doc.id] = doc
        for item in data.get("versions", []):
            version = DocumentVersion.model_validate(item)
            self._versions.setdefault(version.document_id, []).append(version)
        for item in data.get("analyses", []):
            analysis = DecayAnalysis.model_validate(item)
            self._analyses[analysis.id] = analysis

        logger.info(
            "Loaded store %s: %d documents, %d analyses",
            self._path, len(self._documents), len(self._analyses),
        )

    def _flush(
        self,
        documents: Dict[str, Document],
        versions: Dict[str, List[DocumentVersion]],
        analyses: Dict[str, DecayAnalysis],
    ) -> None:
        data = {
            "documents": [d.model_dump(mode="json") for d in documents.values()],
            "versions": [
                v.model_dump(mode="json")
                for doc_versions in versions.values()
                for v in doc_versions
            ],
            "analyses": [a.model_dump(mode="json") for a in analyses.values()],
        }

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(self._path.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_name, self._path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to write store {self._path}: {e}") from e
