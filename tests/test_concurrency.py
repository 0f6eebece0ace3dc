"""
Tests — concurrent consumers.

Delivery is at-least-once: concurrent pops racing on the same due id must
deliver it one or more times, and may deliver it more than once.
"""
import asyncio

import pytest


class TestConcurrentPop:

    @pytest.mark.asyncio
    async def test_two_consumers_deliver_at_least_once(self, queue, clock):
        await queue.push("alarm", message_id="m", delay_ms=0)

        first, second = await asyncio.gather(queue.pop(10), queue.pop(10))
        combined = first + second
        assert combined.count("alarm") >= 1

        for _ in range(3):
            clock.advance(1000)
            assert await queue.pop(10) == []

    @pytest.mark.asyncio
    async def test_sequential_consumers_do_not_duplicate(self, queue):
        await queue.push("alarm", message_id="m", delay_ms=0)
        assert await queue.pop(10) == ["alarm"]
        assert await queue.pop(10) == []

    @pytest.mark.asyncio
    async def test_racing_consumers_can_duplicate(self, make_queue):
        """Duplicate delivery is allowed, and under contention it does happen."""
        deliveries = []
        for round_no in range(20):
            queue, store, clock = make_queue("race")
            await queue.push(f"job-{round_no}", message_id="job", delay_ms=0)

            results = await asyncio.gather(*(queue.pop(10) for _ in range(4)))
            count = sum(r.count(f"job-{round_no}") for r in results)
            deliveries.append(count)

            clock.advance(1000)
            assert await queue.pop(10) == []

        assert min(deliveries) >= 1
        assert max(deliveries) > 1

    @pytest.mark.asyncio
    async def test_concurrent_producers_refreshing_one_id(self, queue, store, clock):
        await asyncio.gather(*(
            queue.push(f"v{i}", message_id="watchdog", delay_ms=1000 + i)
            for i in range(10)
        ))
        assert store.index_size(queue.index_key) == 1
        clock.advance(5000)
        bodies = await queue.pop(10)
        assert len(bodies) == 1
        assert bodies[0].startswith("v")

    @pytest.mark.asyncio
    async def test_refresh_landing_mid_delivery_is_removed_with_it(self, queue, store):
        """A refresh between the body read and the cleanup is lost; the old body fires."""
        await queue.push("stale", message_id="watchdog", delay_ms=0)
        read_body = store.get

        async def refreshed_during_read(key):
            body = await read_body(key)
            await queue.push("fresh", message_id="watchdog", delay_ms=60_000)
            return body

        store.get = refreshed_during_read

        assert await queue.pop(10) == ["stale"]
        assert store.index_size(queue.index_key) == 0
        assert store.has_content(queue.content_key("watchdog")) is False
