"""
InsightOps MCP Server.

Transport: stdio.

Expected MCP Tool Return Format:
{
    "ok": bool,
    ...                     # Tool-specific payload if ok is True
    "error": str            # Present if ok is False
}
"""

import argparse
import logging
import os
import signal
from datetime import timedelta
from typing import Annotated, Any, Dict, List, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from mcp.types import ToolAnnotations
from pydantic import Field

from .common.clock import Clock, utc_now
from .common.config import InsightOpsConfig, load_config
from .common.document_store import InMemoryDocumentStore, JsonDocumentStore
from .common.embedding_service import EmbeddingProvider, EmbeddingService
from .common.errors import InputError, InsightOpsError
from .common.timeouts import run_with_timeout
from .decay import DecayOrchestrator, filter_reports, latest_report, review_analysis, summarize
from .decay.engine import BatchItemError
from .retriever import (
    AnswerCache,
    CircuitBreaker,
    ContextBuilder,
    ProviderGateway,
    Responder,
    RetrievalMatch,
    Searcher,
)

logger = logging.getLogger("insightops.server")


def _match_to_dict(match: RetrievalMatch) -> Dict[str, Any]:
    return {
        "documentId": match.document_id,
        "title": match.title,
        "type": match.type,
        "similarity": round(match.similarity, 2),
        "updatedAt": match.updated_at.isoformat(),
        "excerpt": match.excerpt,
    }


class InsightOpsServerApp:
    """
    Main application class for the MCP server.

    Owns one store, one responder (with its cache and circuit breaker) and
    one decay engine for the life of the process.
    """

    def __init__(
        self,
        store: InMemoryDocumentStore,
        searcher: Searcher,
        responder: Responder,
        engine: DecayOrchestrator,
        mcp_server_name: str = "insightops",
        store_timeout: Optional[float] = 10.0,
    ) -> None:
        self.store = store
        self.searcher = searcher
        self.responder = responder
        self.engine = engine
        self._store_timeout = store_timeout
        self.mcp = FastMCP(name=mcp_server_name)

        # ---------- MCP Tools: Retrieval ---------- #
        @self.mcp.tool(
            name="search_documents",
            description="Rank a workspace's documents by semantic similarity to a query.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_search_documents(
            workspace_id: Annotated[str, Field(description="workspace to search")],
            query: Annotated[str, Field(description="natural language search query")],
            topk: Annotated[int, Field(description="maximum number of results", ge=1, le=50)] = 5,
        ) -> Dict[str, Any]:
            try:
                matches = await self.searcher.search(query, workspace_id, topk=topk)
            except InputError as exc:
                raise ToolError(f"Invalid search parameter: {exc}") from exc
            except InsightOpsError as e:
                return {"ok": False, "error": str(e)}
            return {"ok": True, "results": [_match_to_dict(m) for m in matches]}

        @self.mcp.tool(
            name="ask_question",
            description=(
                "Answer a question from a workspace's documents. "
                "Falls back to document excerpts when no AI provider is available."
            ),
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_ask_question(
            workspace_id: Annotated[str, Field(description="workspace to answer from")],
            question: Annotated[str, Field(description="natural language question")],
        ) -> Dict[str, Any]:
            try:
                result = await self.responder.ask_question(question, workspace_id)
            except InsightOpsError as e:
                return {"ok": False, "error": str(e)}
            return {"ok": True, "aiAvailable": self.responder.is_ai_available, **result.to_dict()}

        # ---------- MCP Tools: Decay ---------- #
        @self.mcp.tool(
            name="analyze_document",
            description="Analyze one document for decay (staleness, contradictions, version drift).",
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False)
        )
        async def tool_analyze_document(
            document_id: Annotated[str, Field(description="document to analyze")],
            include_related: Annotated[bool, Field(description="compare against related workspace documents")] = True,
            analyzed_by: Annotated[str, Field(description="who requested the analysis")] = "system",
        ) -> Dict[str, Any]:
            try:
                analysis = await self.engine.analyze_by_id(
                    document_id, include_related=include_related, analyzed_by=analyzed_by
                )
            except InsightOpsError as e:
                return {"ok": False, "error": str(e)}
            return {"ok": True, "analysis": analysis.to_public()}

        @self.mcp.tool(
            name="batch_analyze",
            description="Analyze several documents, by id or the first documents of a workspace.",
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False)
        )
        async def tool_batch_analyze(
            workspace_id: Annotated[Optional[str], Field(description="workspace to analyze")] = None,
            document_ids: Annotated[Optional[List[str]], Field(description="explicit document ids")] = None,
            limit: Annotated[int, Field(description="maximum documents when analyzing a workspace", ge=1, le=500)] = 50,
        ) -> Dict[str, Any]:
            try:
                items = await self.engine.batch_analyze_workspace(
                    workspace_id=workspace_id, document_ids=document_ids, limit=limit
                )
            except InsightOpsError as e:
                return {"ok": False, "error": str(e)}

            results = [
                item.to_dict() if isinstance(item, BatchItemError) else item.to_public()
                for item in items
            ]
            errors = sum(1 for item in items if isinstance(item, BatchItemError))
            return {
                "ok": True,
                "analyzed": len(items) - errors,
                "errors": errors,
                "results": results,
            }

        @self.mcp.tool(
            name="review_analysis",
            description="Record a human review decision (pending, reviewed, dismissed, actioned) on an analysis.",
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False)
        )
        async def tool_review_analysis(
            analysis_id: Annotated[str, Field(description="analysis to review")],
            review_status: Annotated[str, Field(description="pending | reviewed | dismissed | actioned")],
            reviewed_by: Annotated[str, Field(description="reviewer identifier")],
            review_notes: Annotated[Optional[str], Field(description="optional notes")] = None,
        ) -> Dict[str, Any]:
            try:
                analysis = await run_with_timeout(
                    review_analysis, self.store, analysis_id, review_status, reviewed_by, review_notes,
                    timeout=self._store_timeout, label="review update",
                )
            except InsightOpsError as e:
                return {"ok": False, "error": str(e)}
            return {"ok": True, "analysis": analysis.to_public()}

        @self.mcp.tool(
            name="list_reports",
            description="List decay analyses, newest first, with optional filters and paging.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_list_reports(
            workspace_id: Annotated[Optional[str], Field(description="restrict to one workspace")] = None,
            document_id: Annotated[Optional[str], Field(description="restrict to one document")] = None,
            decay_detected: Annotated[Optional[bool], Field(description="only analyses with this verdict")] = None,
            risk_level: Annotated[Optional[str], Field(description="low | medium | high")] = None,
            review_status: Annotated[Optional[str], Field(description="pending | reviewed | dismissed | actioned")] = None,
            limit: Annotated[int, Field(description="page size", ge=1, le=200)] = 50,
            offset: Annotated[int, Field(description="number of reports to skip", ge=0)] = 0,
        ) -> Dict[str, Any]:
            try:
                analyses = await run_with_timeout(
                    self.store.list_decay_analyses, document_id, workspace_id,
                    timeout=self._store_timeout, label="analysis listing",
                )
                matched = filter_reports(
                    analyses,
                    decay_detected=decay_detected,
                    risk_level=risk_level,
                    review_status=review_status,
                    limit=len(analyses),
                )
            except InsightOpsError as e:
                return {"ok": False, "error": str(e)}

            page = matched[offset: offset + limit]
            return {
                "ok": True,
                "total": len(matched),
                "limit": limit,
                "offset": offset,
                "reports": [a.to_public() for a in page],
            }

        @self.mcp.tool(
            name="get_report",
            description="Latest decay analysis of one document.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_get_report(
            document_id: Annotated[str, Field(description="document whose latest report to fetch")],
        ) -> Dict[str, Any]:
            try:
                analysis = await run_with_timeout(
                    latest_report, self.store, document_id,
                    timeout=self._store_timeout, label="report fetch",
                )
            except InsightOpsError as e:
                return {"ok": False, "error": str(e)}
            return {"ok": True, "analysis": analysis.to_public()}

        @self.mcp.tool(
            name="decay_summary",
            description="Decay statistics for a workspace: risk levels, review states, average confidence.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_decay_summary(
            workspace_id: Annotated[str, Field(description="workspace to summarize")],
        ) -> Dict[str, Any]:
            try:
                analyses = await run_with_timeout(
                    self.store.list_decay_analyses, None, workspace_id,
                    timeout=self._store_timeout, label="analysis listing",
                )
                total = await run_with_timeout(
                    self.store.count_documents, workspace_id,
                    timeout=self._store_timeout, label="document count",
                )
            except InsightOpsError as e:
                return {"ok": False, "error": str(e)}
            return {"ok": True, "summary": summarize(analyses, total)}

    def run(self) -> None:
        """Runs the MCP server using stdio transport."""
        self.mcp.run(transport="stdio")


def build_app(
    config: Optional[InsightOpsConfig] = None,
    store: Optional[InMemoryDocumentStore] = None,
    embedding: Optional[EmbeddingProvider] = None,
    gateway: Optional[ProviderGateway] = None,
    clock: Clock = utc_now,
    mcp_server_name: str = "insightops",
) -> InsightOpsServerApp:
    """Wire store, retriever and decay engine from configuration."""
    config = config or load_config()
    if store is None:
        store = JsonDocumentStore(config.store.path)
    if embedding is None:
        embedding = EmbeddingService(
            mode=config.embedding.mode,
            model=config.embedding.resolved_model(),
            openai_api_key=config.llm.openai_api_key or None,
        )
    if gateway is None:
        gateway = ProviderGateway.from_config(config.llm)

    searcher = Searcher(
        store,
        embedding,
        min_similarity=config.retriever.min_similarity,
        excerpt_chars=config.retriever.excerpt_chars,
        embed_timeout=config.embedding.timeout,
        store_timeout=config.store.timeout,
    )
    context_builder = ContextBuilder(
        searcher,
        topk=config.retriever.topk,
        char_budget=config.retriever.context_char_budget,
    )
    responder = Responder(
        context_builder,
        gateway,
        cache=AnswerCache(
            max_entries=config.responder.cache_max_entries,
            ttl=timedelta(seconds=config.responder.cache_ttl_seconds),
            clock=clock,
        ),
        breaker=CircuitBreaker(
            cooldown=timedelta(minutes=config.responder.quota_cooldown_minutes),
            clock=clock,
        ),
        clock=clock,
        stale_after_days=config.responder.stale_after_days,
        max_sources=config.responder.max_sources,
    )
    store.add_change_listener(responder.on_document_changed)

    engine = DecayOrchestrator(store, config=config.decay, clock=clock, store_timeout=config.store.timeout)

    return InsightOpsServerApp(
        store=store,
        searcher=searcher,
        responder=responder,
        engine=engine,
        mcp_server_name=mcp_server_name,
        store_timeout=config.store.timeout,
    )


def main() -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Run the InsightOps MCP server (stdio).")
    parser.add_argument(
        "--server-name",
        default=os.getenv("MCP_SERVER_NAME", "insightops"),
        help="Advertised MCP server name.",
    )
    parser.add_argument(
        "--store-path",
        default=None,
        help="Path to the JSON document store (overrides config).",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("INSIGHTOPS_LOG_LEVEL", "INFO"),
        help="Logging level.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    config = load_config()
    if args.store_path:
        config.store.path = args.store_path

    app = build_app(config, mcp_server_name=args.server_name)
    logger.info(
        "InsightOps server ready (store=%s, ai_available=%s)",
        config.store.path, app.responder.is_ai_available,
    )

    def _handle_shutdown(signum, frame):
        raise SystemExit(0)
    for sig in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
        if sig is not None:
            signal.signal(sig, _handle_shutdown)

    app.run()


if __name__ == "__main__":
    main()
