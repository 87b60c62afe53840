"""
Tests for Responder

Covers the question-answering state machine: provider success, caching,
quota cooldown, basic mode and provider failures.
"""

import pytest
from datetime import timedelta

from insightops.common.errors import InputError
from insightops.retriever.answer_cache import AnswerCache
from insightops.retriever.circuit_breaker import CircuitBreaker
from insightops.retriever.context_builder import ContextBuilder
from insightops.retriever.gateway import ChatBackend, NoProvider, ProviderGateway
from insightops.retriever.responder import NO_CONTEXT_ANSWER, Responder
from insightops.retriever.searcher import Searcher
from insightops.tests.helpers import NOW, FakeEmbedding, make_document

GOOD_REPLY = '{"answer": "Employees may work remotely three days a week.", "confidence": 0.9}'


class RateLimited(Exception):
    status_code = 429


class ScriptedBackend(ChatBackend):
    """Returns a canned reply or raises; counts calls."""

    name = "scripted"

    def __init__(self, reply=GOOD_REPLY, error=None):
        super().__init__(model="scripted")
        self.reply = reply
        self.error = error
        self.calls = 0

    def complete(self, system, user):
        self.calls += 1
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def workspace(store):
    store.save_document(make_document(
        "remote", title="Remote Policy", content="Remote work is allowed three days a week.",
        embedding=[1.0, 0.0, 0.0], updated_at=NOW - timedelta(days=5),
    ))
    store.save_document(make_document(
        "handbook", title="Old Handbook", content="Office attendance rules.",
        embedding=[0.8, 0.6, 0.0], updated_at=NOW - timedelta(days=60),
    ))
    return store


def make_responder(store, backend, clock):
    searcher = Searcher(store, FakeEmbedding())
    responder = Responder(
        ContextBuilder(searcher),
        ProviderGateway(backend),
        cache=AnswerCache(clock=clock),
        breaker=CircuitBreaker(clock=clock),
        clock=clock,
    )
    store.add_change_listener(responder.on_document_changed)
    return responder


class TestProviderSuccess:
    @pytest.mark.asyncio
    async def test_answer_sources_and_stale_warning(self, workspace, clock):
        responder = make_responder(workspace, ScriptedBackend(), clock)

        result = await responder.ask_question("What is the remote policy?", "ws1")

        assert result.answer == "Employees may work remotely three days a week."
        assert result.confidence == pytest.approx(0.9)
        assert [s.document_id for s in result.sources] == ["remote", "handbook"]
        stale = [w for w in result.warnings if w.type == "stale_source"]
        assert len(stale) == 1
        assert stale[0].document_id == "handbook"
        assert stale[0].message == '"Old Handbook" was last updated 60 days ago'

    @pytest.mark.asyncio
    async def test_unstructured_reply_uses_default_confidence(self, workspace, clock):
        backend = ScriptedBackend(reply="Remote work is allowed three days a week.")
        responder = make_responder(workspace, backend, clock)

        result = await responder.ask_question("remote?", "ws1")

        assert result.answer == "Remote work is allowed three days a week."
        assert result.confidence == 0.5
        assert not result.has_warning("ai_error")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("age,stale", [
        (timedelta(days=30, hours=12), True),
        (timedelta(days=30), False),
    ])
    async def test_stale_boundary_uses_exact_age(self, store, clock, age, stale):
        store.save_document(make_document(
            "remote", title="Remote Policy", content="Remote work is allowed three days a week.",
            embedding=[1.0, 0.0, 0.0], updated_at=NOW - age,
        ))
        responder = make_responder(store, ScriptedBackend(), clock)

        result = await responder.ask_question("remote?", "ws1")

        assert result.has_warning("stale_source") is stale
        if stale:
            assert result.warnings[0].message == '"Remote Policy" was last updated 30 days ago'


class TestCaching:
    @pytest.mark.asyncio
    async def test_second_call_is_cached(self, workspace, clock):
        backend = ScriptedBackend()
        responder = make_responder(workspace, backend, clock)

        first = await responder.ask_question("What is the remote policy?", "ws1")
        second = await responder.ask_question("  what is THE remote policy?  ", "ws1")

        assert backend.calls == 1
        assert second.answer == first.answer
        assert second.confidence == first.confidence
        assert second.has_warning("cached")
        assert not first.has_warning("cached")

    @pytest.mark.asyncio
    async def test_cache_scoped_to_workspace(self, workspace, clock):
        workspace.save_document(make_document("ws2doc", workspace_id="ws2", embedding=[1.0, 0.0, 0.0],
                                              content="Other workspace content"))
        backend = ScriptedBackend()
        responder = make_responder(workspace, backend, clock)

        await responder.ask_question("remote?", "ws1")
        await responder.ask_question("remote?", "ws2")

        assert backend.calls == 2

    @pytest.mark.asyncio
    async def test_document_change_invalidates(self, workspace, clock):
        backend = ScriptedBackend()
        responder = make_responder(workspace, backend, clock)
        await responder.ask_question("remote?", "ws1")

        workspace.save_document(make_document(
            "remote", title="Remote Policy", content="Remote work is now fully allowed.",
            embedding=[1.0, 0.0, 0.0],
        ))
        result = await responder.ask_question("remote?", "ws1")

        assert backend.calls == 2
        assert not result.has_warning("cached")


class TestQuotaCooldown:
    @pytest.mark.asyncio
    async def test_quota_trips_breaker_and_skips_provider(self, workspace, clock):
        backend = ScriptedBackend(error=RateLimited("Too many requests"))
        responder = make_responder(workspace, backend, clock)

        first = await responder.ask_question("remote?", "ws1")
        assert first.has_warning("quota_exceeded")
        assert responder.breaker.is_open()
        assert not responder.is_ai_available

        clock.advance(minutes=10)
        second = await responder.ask_question("a different question", "ws1")

        assert backend.calls == 1
        assert second.has_warning("quota_exceeded")
        assert second.sources

    @pytest.mark.asyncio
    async def test_breaker_expires(self, workspace, clock):
        backend = ScriptedBackend(error=RateLimited("Too many requests"))
        responder = make_responder(workspace, backend, clock)
        await responder.ask_question("remote?", "ws1")

        backend.error = None
        clock.advance(minutes=31)
        result = await responder.ask_question("remote?", "ws1")

        assert backend.calls == 2
        assert not result.has_warning("quota_exceeded")


class TestBasicAnswers:
    @pytest.mark.asyncio
    async def test_no_provider_returns_basic_answer(self, workspace, clock):
        responder = make_responder(workspace, NoProvider(), clock)

        result = await responder.ask_question("remote?", "ws1")

        assert result.has_warning("basic_mode")
        assert result.confidence == result.sources[0].similarity == 1.0
        assert result.answer.startswith('Based on "Remote Policy", here\'s relevant information: ')
        assert not responder.is_ai_available

    @pytest.mark.asyncio
    async def test_zero_sources(self, store, clock):
        backend = ScriptedBackend()
        responder = make_responder(store, backend, clock)

        result = await responder.ask_question("remote?", "ws1")

        assert result.answer == NO_CONTEXT_ANSWER
        assert result.confidence == 0
        assert result.sources == []
        assert result.warnings == []
        assert backend.calls == 0

    @pytest.mark.asyncio
    async def test_other_failure_does_not_trip_breaker(self, workspace, clock):
        responder = make_responder(workspace, ScriptedBackend(error=RuntimeError("boom")), clock)

        result = await responder.ask_question("remote?", "ws1")

        assert result.has_warning("ai_error")
        assert not responder.breaker.is_open()

    @pytest.mark.asyncio
    async def test_too_short_answer_is_provider_failure(self, workspace, clock):
        responder = make_responder(workspace, ScriptedBackend(reply='{"answer": "ok"}'), clock)

        result = await responder.ask_question("remote?", "ws1")

        assert result.has_warning("ai_error")
        assert result.answer.startswith("Based on")

    @pytest.mark.asyncio
    async def test_basic_answers_are_not_cached(self, workspace, clock):
        responder = make_responder(workspace, NoProvider(), clock)
        await responder.ask_question("remote?", "ws1")
        assert len(responder.cache) == 0

    @pytest.mark.asyncio
    async def test_blank_question_rejected(self, workspace, clock):
        responder = make_responder(workspace, ScriptedBackend(), clock)
        with pytest.raises(InputError):
            await responder.ask_question("  ", "ws1")
