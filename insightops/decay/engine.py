"""
Decay Engine

Drives single-document and batch decay analysis.

Pipeline per document:
1. Run every evaluator on (document, versions, siblings)
2. Aggregate the signals into score, verdict and risk level
3. Derive recommendations and citations
4. Persist the resulting DecayAnalysis

Batch analysis is sequential and fetches each workspace's sibling set once.
A failure on one document becomes a BatchItemError; the batch continues.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Union

from ..common.clock import Clock, utc_now
from ..common.config import DecayConfig
from ..common.document_store import DocumentStore
from ..common.errors import ExternalTimeout, InputError, NotFound, PersistenceError
from ..common.schemas import DecayAnalysis, Document, DocumentVersion
from ..common.timeouts import run_with_timeout
from .aggregator import ConfidenceAggregator
from .contradiction import ContradictionEvaluator
from .freshness import FreshnessEvaluator
from .recommendations import build_recommendations
from .version_drift import VersionDriftEvaluator

logger = logging.getLogger("insightops.decay.engine")


@dataclass
class BatchItemError:
    """A batch item that could not be analyzed"""
    document_id: str
    error: str

    def to_dict(self) -> Dict[str, str]:
        return {"documentId": self.document_id, "error": self.error}


BatchItem = Union[DecayAnalysis, BatchItemError]


class DecayOrchestrator:
    """Runs the evaluators and persists analyses."""

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        config: Optional[DecayConfig] = None,
        clock: Clock = utc_now,
        store_timeout: Optional[float] = 10.0,
    ):
        """
        Args:
            store: Needed by the entry points that fetch or persist;
                analyze_document works without one
            config: Weights, thresholds and validity windows
            clock: "now" for freshness and analysis timestamps
            store_timeout: Per-call bound on store reads and writes
        """
        self._store = store
        self._config = config or DecayConfig()
        self._clock = clock
        self._store_timeout = store_timeout
        self._evaluators = [
            FreshnessEvaluator(self._config, clock=clock),
            ContradictionEvaluator(self._config),
            VersionDriftEvaluator(self._config),
        ]
        self._aggregator = ConfidenceAggregator(self._config.activation_threshold)

    # ------------------------------------------------------------------
    # Pure analysis
    # ------------------------------------------------------------------

    def analyze_document(
        self,
        document: Document,
        versions: Sequence[DocumentVersion],
        siblings: Sequence[Document],
        analyzed_by: str = "system",
    ) -> DecayAnalysis:
        """Analyze one document. No I/O; the result is not persisted."""
        versions = list(versions)
        siblings = [s for s in siblings if s.id != document.id]

        signals = [e.evaluate(document, versions, siblings) for e in self._evaluators]
        result = self._aggregator.aggregate(signals)

        drift = next((s for s in signals if s.name == "version_drift"), None)
        summary = drift.details.get("summary", "") if drift else ""

        analysis = DecayAnalysis(
            document_id=document.id,
            document_title=document.title,
            decay_detected=result.decay_detected,
            confidence_score=result.confidence_score,
            risk_level=result.risk_level,
            decay_reasons=result.reasons,
            what_changed_summary=summary,
            update_recommendations=build_recommendations(document, signals),
            citations=result.citations,
            confidence_breakdown=result.breakdown,
            analyzed_at=self._clock(),
            analyzed_by=analyzed_by,
        )

        logger.info(
            "Analyzed %s: decay=%s score=%.2f risk=%s",
            document.id, analysis.decay_detected, analysis.confidence_score, analysis.risk_level.value,
        )
        return analysis

    # ------------------------------------------------------------------
    # Store-backed entry points
    # ------------------------------------------------------------------

    def _require_store(self) -> DocumentStore:
        if self._store is None:
            raise InputError("A document store is required for this operation")
        return self._store

    async def _call_store(self, fn, *args, label: str):
        return await run_with_timeout(fn, *args, timeout=self._store_timeout, label=label)

    async def _persist(self, analysis: DecayAnalysis) -> DecayAnalysis:
        store = self._require_store()
        try:
            await self._call_store(store.persist_decay_analysis, analysis, label="persist analysis")
        except ExternalTimeout as e:
            raise PersistenceError(f"Timed out persisting analysis for {analysis.document_id}") from e
        except PersistenceError:
            raise
        except OSError as e:
            raise PersistenceError(f"Failed to persist analysis for {analysis.document_id}: {e}") from e
        return analysis

    async def _fetch_siblings(self, workspace_id: str) -> List[Document]:
        store = self._require_store()
        return await self._call_store(
            store.list_workspace_documents, workspace_id, None, label="sibling fetch"
        )

    async def analyze_by_id(
        self,
        document_id: str,
        include_related: bool = True,
        analyzed_by: str = "system",
    ) -> DecayAnalysis:
        """
        Fetch, analyze and persist one document.

        Raises:
            InputError: If document_id is blank
            NotFound: If the document does not exist
            PersistenceError: If the analysis cannot be stored
        """
        if not document_id or not document_id.strip():
            raise InputError("document_id is required")

        store = self._require_store()
        document = await self._call_store(store.get_document, document_id, label="document fetch")
        if document is None:
            raise NotFound(f"Document not found: {document_id}")

        versions = await self._call_store(store.get_versions, document_id, label="version fetch")
        siblings = await self._fetch_siblings(document.workspace_id) if include_related else []

        analysis = self.analyze_document(document, versions, siblings, analyzed_by=analyzed_by)
        return await self._persist(analysis)

    async def batch_analyze(
        self,
        documents: Sequence[Document],
        siblings: Optional[Sequence[Document]] = None,
        analyzed_by: str = "system",
        versions_by_id: Optional[Mapping[str, Sequence[DocumentVersion]]] = None,
    ) -> List[BatchItem]:
        """
        Analyze documents one at a time.

        When ``siblings`` is None, each distinct workspace's documents are
        fetched from the store once and reused for every document in it.
        Versions come from ``versions_by_id`` when it has the document,
        otherwise from the store. Analyses are persisted when a store is
        configured.

        Raises:
            InputError: If there is no store and siblings or versions_by_id
                is not supplied
        """
        results: List[BatchItem] = []
        if not documents:
            return results

        if self._store is None:
            if siblings is None:
                raise InputError("siblings are required when no document store is configured")
            if versions_by_id is None:
                raise InputError("versions_by_id is required when no document store is configured")

        sibling_cache: Dict[str, List[Document]] = {}

        for document in documents:
            try:
                if siblings is not None:
                    doc_siblings = list(siblings)
                else:
                    if document.workspace_id not in sibling_cache:
                        sibling_cache[document.workspace_id] = await self._fetch_siblings(document.workspace_id)
                    doc_siblings = sibling_cache[document.workspace_id]

                if versions_by_id is not None and document.id in versions_by_id:
                    versions = list(versions_by_id[document.id])
                elif self._store is not None:
                    versions = await self._call_store(self._store.get_versions, document.id, label="version fetch")
                else:
                    raise InputError(f"No version history supplied for {document.id}")

                analysis = self.analyze_document(document, versions, doc_siblings, analyzed_by=analyzed_by)
                if self._store is not None:
                    await self._persist(analysis)
                results.append(analysis)
            except Exception as e:
                logger.error("Batch analysis failed for %s: %s", document.id, e, exc_info=True)
                results.append(BatchItemError(document_id=document.id, error=str(e)))

        return results

    async def batch_analyze_workspace(
        self,
        workspace_id: Optional[str] = None,
        document_ids: Optional[Sequence[str]] = None,
        limit: int = 50,
        analyzed_by: str = "system",
    ) -> List[BatchItem]:
        """
        Batch entry point by explicit ids or by workspace (first ``limit`` documents).

        Unknown ids become BatchItemError entries.

        Raises:
            InputError: If neither workspace_id nor document_ids is given
        """
        store = self._require_store()

        if document_ids:
            documents: List[Document] = []
            missing: List[BatchItemError] = []
            for doc_id in document_ids:
                document = await self._call_store(store.get_document, doc_id, label="document fetch")
                if document is None:
                    missing.append(BatchItemError(document_id=doc_id, error=f"Document not found: {doc_id}"))
                else:
                    documents.append(document)
            return missing + await self.batch_analyze(documents, analyzed_by=analyzed_by)

        if workspace_id:
            workspace_docs = await self._fetch_siblings(workspace_id)
            return await self.batch_analyze(
                workspace_docs[: max(0, limit)], siblings=workspace_docs, analyzed_by=analyzed_by
            )

        raise InputError("workspace_id or document_ids is required")
