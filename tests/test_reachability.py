"""Tests for the backend reachability monitor."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from lingua.services.reachability import ReachabilityMonitor
from tests.fakes import BACKEND_URL, FakeClock


def _monitor(logger, handler, initially_online: bool = True, **options) -> ReachabilityMonitor:
    return ReachabilityMonitor(
        base_url=BACKEND_URL + "/",
        logger=logger,
        transport=httpx.MockTransport(handler),
        initially_online=initially_online,
        **options,
    )


class TestProbe:
    @pytest.mark.parametrize("status", [200, 401, 404])
    async def test_direct_http_response_is_reachable(self, logger, status: int):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(status)

        monitor = _monitor(logger, handler, initially_online=False)

        assert await monitor.probe() is True
        assert monitor.is_online() is True
        assert seen[0].method == "HEAD"
        assert str(seen[0].url) == f"{BACKEND_URL}/rest/v1/"

    async def test_transport_error_is_unreachable(self, logger):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        monitor = _monitor(logger, handler)
        changes: list[bool] = []
        monitor.subscribe(changes.append)

        assert await monitor.probe() is False
        assert await monitor.probe() is False
        assert changes == [False]

    async def test_redirect_is_unreachable(self, logger):
        """A captive portal bouncing the request to its login page is not the backend."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"location": "http://portal.example/login"})

        monitor = _monitor(logger, handler)

        assert await monitor.probe() is False
        assert monitor.is_online() is False

    async def test_success_ignored_during_hold_down(self, logger):
        clock = FakeClock()
        monitor = _monitor(
            logger, lambda request: httpx.Response(200), hold_down_s=30.0, clock=clock,
        )

        monitor.mark_unreachable("sign_in_with_password: timed out")
        clock.advance(29.0)

        assert await monitor.probe() is False
        assert monitor.is_online() is False

        clock.advance(1.0)

        assert await monitor.probe() is True
        assert monitor.is_online() is True

    async def test_unconfigured_backend_is_offline(self, logger):
        monitor = ReachabilityMonitor(base_url="", logger=logger)

        assert monitor.is_online() is False
        assert await monitor.probe() is False


class TestTransitions:
    def test_mark_unreachable_notifies(self, reachability: ReachabilityMonitor):
        changes: list[bool] = []
        reachability.subscribe(changes.append)

        reachability.mark_unreachable("sign_in_with_password: timed out")
        reachability.set_platform_state(True)

        assert changes == [False, True]

    def test_unsubscribe(self, reachability: ReachabilityMonitor):
        changes: list[bool] = []
        unsubscribe = reachability.subscribe(changes.append)
        unsubscribe()
        unsubscribe()

        reachability.set_platform_state(False)

        assert changes == []

    def test_failing_listener_does_not_block_others(self, reachability: ReachabilityMonitor):
        changes: list[bool] = []

        def broken(online: bool) -> None:
            raise RuntimeError("listener bug")

        reachability.subscribe(broken)
        reachability.subscribe(changes.append)

        reachability.set_platform_state(False)

        assert changes == [False]


class TestBackgroundProbing:
    async def test_start_and_stop(self, logger):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200)

        monitor = ReachabilityMonitor(
            base_url=BACKEND_URL,
            logger=logger,
            poll_interval_s=60.0,
            transport=httpx.MockTransport(handler),
            initially_online=False,
        )
        changes: list[bool] = []
        monitor.subscribe(changes.append)

        monitor.start()
        await asyncio.wait_for(_until(lambda: bool(changes)), timeout=2.0)
        await monitor.stop()
        await monitor.stop()

        assert changes == [True]
        assert len(calls) == 1


async def _until(predicate) -> None:
    while not predicate():
        await asyncio.sleep(0.01)
