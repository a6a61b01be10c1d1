"""Tests for SnapshotFetcher failure isolation."""

import asyncio

from community_pulse.errors import FetchError, ResolutionError
from community_pulse.pipeline.fetcher import SnapshotFetcher
from community_pulse.providers.mock_provider import MockProvider
from community_pulse.registry.schemas import SourceDescriptor
from community_pulse.resolver.resolver import SourceResolver


def _fetcher(provider: MockProvider, timeout: float = 1.0) -> SnapshotFetcher:
    return SnapshotFetcher(provider, SourceResolver(provider), timeout=timeout)


class TestFetchAll:
    async def test_results_in_input_order(self, pipeline_registry, provider):
        results = await _fetcher(provider).fetch_all(pipeline_registry)

        assert [r.source_id for r in results] == ["ALPHA", "BRAVO", "SECRET", "HIDDEN"]
        assert [r.ok for r in results] == [True, True, True, False]

    async def test_unreferenced_private_short_circuits(self, pipeline_registry, provider):
        results = await _fetcher(provider).fetch_all(pipeline_registry)

        hidden = results[-1]
        assert hidden.restricted is True
        assert hidden.error is None
        assert "HIDDEN" not in provider.fetch_calls
        assert len(provider.fetch_calls) == 3

    async def test_failure_is_isolated(self, pipeline_registry, make_snapshot):
        provider = MockProvider(
            snapshots={"1": make_snapshot(provider_id="1"), "3": make_snapshot(provider_id="3")},
            fail_ids={"2"},
        )

        results = await _fetcher(provider).fetch_all(pipeline_registry)

        by_id = {r.source_id: r for r in results}
        assert by_id["ALPHA"].ok
        assert isinstance(by_id["BRAVO"].error, FetchError)
        assert "ConnectionError" in str(by_id["BRAVO"].error)
        assert by_id["SECRET"].ok

    async def test_resolution_failure(self):
        provider = MockProvider(unresolvable={"bad"})
        descriptor = SourceDescriptor(id="BAD", display_name="Bad", external_ref="bad")

        result = await _fetcher(provider).fetch_one(descriptor)

        assert isinstance(result.error, ResolutionError)
        assert result.provider_id is None
        assert provider.fetch_calls == []

    async def test_timeout_becomes_fetch_error(self):
        provider = MockProvider(delay_seconds=1.0)
        descriptor = SourceDescriptor(id="SLOW", display_name="Slow", provider_id="9")

        result = await _fetcher(provider, timeout=0.05).fetch_one(descriptor)

        assert isinstance(result.error, FetchError)
        assert result.error.timed_out is True

    async def test_slow_entry_does_not_delay_others(self, make_snapshot):
        class SlowForOne(MockProvider):
            async def _fetch_snapshot(self, provider_id):
                if provider_id == "slow":
                    await asyncio.sleep(1.0)
                return await super()._fetch_snapshot(provider_id)

        provider = SlowForOne(snapshots={"fast": make_snapshot(provider_id="fast")})
        fast = SourceDescriptor(id="FAST", display_name="Fast", provider_id="fast")
        slow = SourceDescriptor(id="SLOW", display_name="Slow", provider_id="slow")

        loop = asyncio.get_running_loop()
        started = loop.time()
        results = await _fetcher(provider, timeout=0.1).fetch_all([slow, fast])

        assert loop.time() - started < 0.5
        assert results[0].error is not None
        assert results[1].ok

    async def test_malformed_payload_contained(self):
        class Broken(MockProvider):
            async def _fetch_snapshot(self, provider_id):
                raise KeyError("approximate_member_count")

        descriptor = SourceDescriptor(id="X", display_name="X", provider_id="1")

        result = await _fetcher(Broken()).fetch_one(descriptor)

        assert isinstance(result.error, FetchError)
        assert "KeyError" in str(result.error)
