"""Tests for the poll cycle and wake scheduler"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from browser_remote.dispatcher import Dispatcher
from browser_remote.errors import TransportError
from browser_remote.interpreter import CommandInterpreter
from browser_remote.models import ExecutionOutcome
from browser_remote.poller import PollLoop, WakeScheduler
from browser_remote.reporter import Reporter
from browser_remote.resolver import TargetResolver
from browser_remote.settings import Settings

from dom_fakes import FakeHost, tab


READY = Settings(server_url="https://srv", api_key="k", browser_id="brc1", registered=True)


def _loop(items=None, settings=READY, poll_error=None):
    """PollLoop with recorded dispatch/report calls in one shared timeline."""
    timeline = []
    store = MagicMock()
    store.load.return_value = settings

    client = MagicMock()
    client.poll = AsyncMock(return_value=items or [], side_effect=poll_error)

    async def report(_settings, envelope_id, outcome):
        timeline.append(("report", envelope_id, outcome.status))
        return 200

    client.report = AsyncMock(side_effect=report)

    dispatcher = MagicMock()

    async def dispatch(envelope):
        timeline.append(("dispatch", envelope.id))
        return ExecutionOutcome.executed("ok")

    dispatcher.dispatch = AsyncMock(side_effect=dispatch)
    loop = PollLoop(store, client, dispatcher, Reporter(client))
    return loop, client, dispatcher, timeline


def _item(envelope_id, command=None):
    return {"id": envelope_id, "command": command or {"type": "click", "selector": "#a"}}


class TestPollOnce:
    @pytest.mark.asyncio
    async def test_report_precedes_next_dispatch(self):
        loop, _, _, timeline = _loop([_item(1), _item(2)])
        processed = await loop.poll_once()
        assert [e.id for e in processed] == [1, 2]
        assert timeline == [
            ("dispatch", 1), ("report", 1, "executed"),
            ("dispatch", 2), ("report", 2, "executed"),
        ]

    @pytest.mark.asyncio
    async def test_transport_failure_aborts_cycle(self):
        loop, client, dispatcher, timeline = _loop(poll_error=TransportError("Poll error: HTTP 500"))
        assert await loop.poll_once() == []
        dispatcher.dispatch.assert_not_called()
        client.report.assert_not_called()
        assert not loop.running

    @pytest.mark.asyncio
    async def test_skipped_when_not_registered(self):
        settings = Settings(server_url="https://srv", api_key="k", browser_id="brc1")
        loop, client, _, _ = _loop([_item(1)], settings=settings)
        assert await loop.poll_once() == []
        client.poll.assert_not_called()

    @pytest.mark.asyncio
    async def test_skipped_when_incomplete(self):
        loop, client, _, _ = _loop([_item(1)], settings=Settings(registered=True))
        assert await loop.poll_once() == []
        client.poll.assert_not_called()

    @pytest.mark.asyncio
    async def test_settings_read_fresh_each_cycle(self):
        loop, _, _, _ = _loop()
        await loop.poll_once()
        await loop.poll_once()
        assert loop.store.load.call_count == 2

    @pytest.mark.asyncio
    async def test_item_without_id_skipped(self):
        loop, _, _, timeline = _loop([{"command": {"type": "click", "selector": "#a"}}, _item(5)])
        processed = await loop.poll_once()
        assert [e.id for e in processed] == [5]
        assert timeline == [("dispatch", 5), ("report", 5, "executed")]

    @pytest.mark.asyncio
    async def test_report_failure_does_not_stop_batch(self):
        loop, client, _, timeline = _loop([_item(1), _item(2)])
        client.report.side_effect = [TransportError("Report failed"), 200]
        processed = await loop.poll_once()
        assert [e.id for e in processed] == [1, 2]
        assert timeline == [("dispatch", 1), ("dispatch", 2)]
        assert client.report.await_count == 2

    @pytest.mark.asyncio
    async def test_overlapping_wake_is_ignored(self):
        loop, client, _, _ = _loop()
        release = asyncio.Event()

        async def slow_poll(_settings):
            await release.wait()
            return [_item(1)]

        client.poll.side_effect = slow_poll
        first = asyncio.create_task(loop.poll_once("timer"))
        await asyncio.sleep(0)
        assert loop.running

        assert await loop.poll_once("signal") == []
        release.set()
        processed = await first
        assert [e.id for e in processed] == [1]
        assert client.poll.await_count == 1
        assert not loop.running

    @pytest.mark.asyncio
    async def test_stuck_page_does_not_wedge_the_loop(self):
        class StuckHost(FakeHost):
            async def run_in_context(self, context, procedure, *args):
                await asyncio.Event().wait()

        loop, client, _, _ = _loop([_item(1, {"type": "eval", "code": "new Promise(() => {})"})])
        host = StuckHost([tab(0, "https://example.com/", active=True)])
        loop.dispatcher = Dispatcher(TargetResolver(host), CommandInterpreter(), timeout=0.05)

        processed = await asyncio.wait_for(loop.poll_once("timer"), 5)
        assert [e.id for e in processed] == [1]
        outcome = client.report.await_args.args[2]
        assert outcome.status == "error"
        assert "timed out" in outcome.result
        assert not loop.running

        await asyncio.wait_for(loop.poll_once("signal"), 5)
        assert client.poll.await_count == 2


class TestReporter:
    @pytest.mark.asyncio
    async def test_rejected_report_returns_false(self):
        client = MagicMock()
        client.report = AsyncMock(return_value=404)
        assert await Reporter(client).report(READY, 1, ExecutionOutcome.error("x")) is False

    @pytest.mark.asyncio
    async def test_transport_error_swallowed(self):
        client = MagicMock()
        client.report = AsyncMock(side_effect=TransportError("down"))
        assert await Reporter(client).report(READY, 1, ExecutionOutcome.executed("ok")) is False


class TestWakeScheduler:
    @pytest.mark.asyncio
    async def test_failed_cycle_does_not_escape(self):
        wake = AsyncMock(side_effect=RuntimeError("boom"))
        await WakeScheduler(wake, interval=60).fire("manual")
        wake.assert_awaited_once_with("manual")

    @pytest.mark.asyncio
    async def test_timer_keeps_firing_after_failures(self):
        calls = []

        async def wake(reason):
            calls.append(reason)
            raise RuntimeError("boom")

        scheduler = WakeScheduler(wake, interval=0.01)
        scheduler.start()
        await asyncio.sleep(0.1)
        await scheduler.stop()
        assert len(calls) >= 2
        assert set(calls) == {"timer"}

    @pytest.mark.asyncio
    async def test_trigger(self):
        wake = AsyncMock()
        await WakeScheduler(wake).trigger("signal")
        wake.assert_awaited_once_with("signal")

    @pytest.mark.asyncio
    async def test_stop_cancels_triggered_wakes(self):
        started = asyncio.Event()

        async def wake(_reason):
            started.set()
            await asyncio.Event().wait()

        scheduler = WakeScheduler(wake, interval=60)
        task = scheduler.trigger("signal")
        await started.wait()
        assert scheduler._pending == {task}

        await scheduler.stop()
        assert task.cancelled()
        assert scheduler._pending == set()

    @pytest.mark.asyncio
    async def test_finished_trigger_is_forgotten(self):
        scheduler = WakeScheduler(AsyncMock(), interval=60)
        await scheduler.trigger("signal")
        await asyncio.sleep(0)
        assert scheduler._pending == set()
