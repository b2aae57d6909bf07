from __future__ import annotations

import asyncio

import pytest

from services.event_hub import JOBS_CHANNEL, EventHub


@pytest.mark.asyncio
async def test_publish_fans_out_to_channel_subscribers() -> None:
    hub = EventHub()
    a = await hub.subscribe(JOBS_CHANNEL)
    b = await hub.subscribe(JOBS_CHANNEL)
    other = await hub.subscribe("recorder")

    await hub.publish(JOBS_CHANNEL, {"type": "job_completed", "job_id": "j1"})

    assert (await asyncio.wait_for(a.get(), timeout=0.5))["job_id"] == "j1"
    assert (await asyncio.wait_for(b.get(), timeout=0.5))["job_id"] == "j1"
    assert other.empty()


@pytest.mark.asyncio
async def test_full_queue_drops_oldest_payload() -> None:
    hub = EventHub(maxsize=2)
    q = await hub.subscribe(JOBS_CHANNEL)
    for i in range(3):
        await hub.publish(JOBS_CHANNEL, {"n": i})

    assert [q.get_nowait()["n"], q.get_nowait()["n"]] == [1, 2]


@pytest.mark.asyncio
async def test_unsubscribe_and_publish_nowait() -> None:
    hub = EventHub()
    q = await hub.subscribe(JOBS_CHANNEL)
    hub.publish_nowait(JOBS_CHANNEL, {"n": 1})
    assert (await asyncio.wait_for(q.get(), timeout=0.5)) == {"n": 1}

    await hub.unsubscribe(JOBS_CHANNEL, q)
    assert hub.subscriber_count(JOBS_CHANNEL) == 0
    await hub.publish(JOBS_CHANNEL, {"n": 2})
    assert q.empty()


def test_publish_nowait_without_loop_is_noop() -> None:
    EventHub().publish_nowait(JOBS_CHANNEL, {"n": 1})
