"""Tests for the circuit breaker and the answer cache."""

from datetime import timedelta

from insightops.retriever.answer_cache import AnswerCache, cache_key
from insightops.retriever.circuit_breaker import CircuitBreaker


class TestCircuitBreaker:
    def test_closed_initially(self, clock):
        breaker = CircuitBreaker(clock=clock)
        assert not breaker.is_open()
        assert breaker.disabled_until is None

    def test_trip_opens_for_cooldown(self, clock):
        breaker = CircuitBreaker(clock=clock)

        until = breaker.trip()

        assert until == clock.now + timedelta(minutes=30)
        assert breaker.is_open()
        clock.advance(minutes=29)
        assert breaker.is_open()
        clock.advance(minutes=1)
        assert not breaker.is_open()

    def test_custom_duration(self, clock):
        breaker = CircuitBreaker(clock=clock)
        breaker.trip(timedelta(seconds=10))
        clock.advance(seconds=11)
        assert not breaker.is_open()

    def test_reset(self, clock):
        breaker = CircuitBreaker(clock=clock)
        breaker.trip()
        breaker.reset()
        assert not breaker.is_open()


class TestAnswerCache:
    def test_key_normalizes_case_and_whitespace(self):
        assert cache_key("ws1", "  What Is X?  ") == "ws1:what is x?"

    def test_get_put(self, clock):
        cache = AnswerCache(clock=clock)
        cache.put("ws1", "Question?", "answer")
        assert cache.get("ws1", " question? ") == "answer"
        assert cache.get("ws2", "question?") is None

    def test_ttl_expiry(self, clock):
        cache = AnswerCache(ttl=timedelta(minutes=10), clock=clock)
        cache.put("ws1", "q", "answer")

        clock.advance(minutes=9)
        assert cache.get("ws1", "q") == "answer"
        clock.advance(minutes=1)
        assert cache.get("ws1", "q") is None
        assert len(cache) == 0

    def test_lru_eviction(self, clock):
        cache = AnswerCache(max_entries=2, clock=clock)
        cache.put("ws1", "a", 1)
        cache.put("ws1", "b", 2)
        cache.get("ws1", "a")  # a becomes most recent
        cache.put("ws1", "c", 3)

        assert cache.get("ws1", "a") == 1
        assert cache.get("ws1", "b") is None
        assert cache.get("ws1", "c") == 3

    def test_invalidate_workspace(self, clock):
        cache = AnswerCache(clock=clock)
        cache.put("ws1", "a", 1)
        cache.put("ws1", "b", 2)
        cache.put("ws10", "a", 3)

        assert cache.invalidate_workspace("ws1") == 2
        assert cache.get("ws1", "a") is None
        assert cache.get("ws10", "a") == 3
