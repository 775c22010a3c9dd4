"""Tests for the background analytics dispatcher."""

import asyncio
import logging
from unittest.mock import AsyncMock

from shortlink.services.background_tasks import AnalyticsDispatcher
from shortlink.services.click_recorder import RequestMetadata


def make_recorder() -> AsyncMock:
    recorder = AsyncMock()
    recorder.record = AsyncMock(return_value=None)
    return recorder


async def test_jobs_are_processed():
    recorder = make_recorder()
    dispatcher = AnalyticsDispatcher(recorder, workers=2, queue_size=10)
    dispatcher.start()

    for code in ("a1b", "c2d", "e3f"):
        assert dispatcher.submit(code, RequestMetadata())
    await dispatcher.join()

    assert sorted(call.args[0] for call in recorder.record.await_args_list) == ["a1b", "c2d", "e3f"]
    assert dispatcher.processed == 3
    await dispatcher.stop()
    assert not dispatcher.running


async def test_full_queue_drops_and_logs(caplog):
    recorder = make_recorder()
    dispatcher = AnalyticsDispatcher(recorder, workers=1, queue_size=2)
    dispatcher.start()

    # Workers have not run yet, so nothing has left the queue
    with caplog.at_level(logging.WARNING):
        results = [dispatcher.submit(f"code{n}", RequestMetadata()) for n in range(3)]

    assert results == [True, True, False]
    assert dispatcher.dropped == 1
    assert "dropped click for code2" in caplog.text

    await dispatcher.join()
    assert recorder.record.await_count == 2
    await dispatcher.stop()


async def test_failing_job_does_not_stop_worker(caplog):
    recorder = make_recorder()
    recorder.record.side_effect = [RuntimeError("boom"), None]
    dispatcher = AnalyticsDispatcher(recorder, workers=1, queue_size=10)
    dispatcher.start()

    dispatcher.submit("bad", RequestMetadata())
    dispatcher.submit("good", RequestMetadata())
    await asyncio.wait_for(dispatcher.join(), timeout=1.0)

    assert dispatcher.processed == 1
    assert "failed on bad" in caplog.text
    await dispatcher.stop()


async def test_submit_before_start_is_dropped():
    dispatcher = AnalyticsDispatcher(make_recorder())
    assert dispatcher.submit("abc", RequestMetadata()) is False
    assert dispatcher.dropped == 1


async def test_stop_abandons_jobs_after_timeout():
    release = asyncio.Event()
    recorder = make_recorder()

    async def slow_record(code, metadata):
        await release.wait()

    recorder.record.side_effect = slow_record
    dispatcher = AnalyticsDispatcher(recorder, workers=1, queue_size=10)
    dispatcher.start()
    dispatcher.submit("slow", RequestMetadata())

    await dispatcher.stop(timeout=0.05)

    assert not dispatcher.running
    assert dispatcher.processed == 0
