"""
InsightOps

Document decay detection and question answering over workspace documents.

Philosophy:
- Retrieval failures are fatal to an answer; AI failures never are
- Every external call is bounded by a timeout
- Decay verdicts are explainable: every reason carries a citation

Usage:
    from insightops.common import load_config, InMemoryDocumentStore
    from insightops.retriever import Searcher, Responder
    from insightops.decay import DecayOrchestrator, summarize
"""

__version__ = "0.1.0"
