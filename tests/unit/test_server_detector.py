"""Tests for server detection."""

import httpx
import pytest

from models import DetectionFailure
from services.port_prober import PortProber
from services.process_locator import ProcessLocator
from services.server_detector import ServerDetector


def build_detector(config, strategy, handler) -> ServerDetector:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ServerDetector(
        config,
        strategy,
        ProcessLocator(config, strategy),
        PortProber(config, strategy, client),
    )


def answering_on(*ports, calls=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.port)
        return httpx.Response(200 if request.url.port in ports else 404)

    return handler


class TestServerDetector:
    @pytest.mark.asyncio
    async def test_declared_port_is_not_trusted(
        self, test_config, fake_strategy_factory, server_command_line
    ):
        # Declared port 9000 fails, the real API listens on 9500.
        strategy = fake_strategy_factory(
            processes=[(4242, server_command_line)],
            ports={4242: [9500, 9000]},
        )
        calls = []
        detector = build_detector(test_config, strategy, answering_on(9500, calls=calls))

        result = await detector.detect()

        assert result.success
        assert result.server.port == 9500
        assert result.server.csrf_token == "abc123"
        assert result.server.workspace_id == "file_home_dev_project"
        assert calls == [9000, 9500]

    @pytest.mark.asyncio
    async def test_short_circuits_on_first_verified_candidate(
        self, test_config, fake_strategy_factory, server_command_line
    ):
        other = server_command_line.replace("abc123", "second")
        strategy = fake_strategy_factory(
            processes=[(100, server_command_line), (200, other)],
            ports={100: [9000], 200: [9100]},
        )
        detector = build_detector(test_config, strategy, answering_on(9000, 9100))

        result = await detector.detect()

        assert result.server.process_id == 100
        assert strategy.port_queries == [100]

    @pytest.mark.asyncio
    async def test_second_candidate_used_when_first_is_dead(
        self, test_config, fake_strategy_factory, server_command_line
    ):
        other = server_command_line.replace("abc123", "second")
        strategy = fake_strategy_factory(
            processes=[(100, server_command_line), (200, other)],
            ports={100: [9000], 200: [9100]},
        )
        detector = build_detector(test_config, strategy, answering_on(9100))

        result = await detector.detect()

        assert result.server.process_id == 200
        assert result.server.csrf_token == "second"

    @pytest.mark.asyncio
    async def test_no_candidates_is_server_not_found(self, test_config, fake_strategy_factory):
        strategy = fake_strategy_factory(processes=[(1, "/sbin/init")])
        detector = build_detector(test_config, strategy, answering_on())

        result = await detector.detect()

        assert not result.success
        assert result.failure == DetectionFailure.SERVER_NOT_FOUND
        assert result.error == "No Antigravity Language Server found"
        assert result.tip == "Start the IDE and try again."

    @pytest.mark.asyncio
    async def test_no_answering_port_is_unreachable(
        self, test_config, fake_strategy_factory, server_command_line
    ):
        strategy = fake_strategy_factory(
            processes=[(4242, server_command_line)],
            ports={4242: [9000, 9500]},
        )
        detector = build_detector(test_config, strategy, answering_on())

        result = await detector.detect()

        assert result.failure == DetectionFailure.SERVER_UNREACHABLE
        assert result.error == "Language Server found but no port responds to API"
        assert "starting up" in result.tip

    @pytest.mark.asyncio
    async def test_discovery_failure_is_reported_separately(self, test_config, fake_strategy_factory):
        strategy = fake_strategy_factory(unavailable=True)
        detector = build_detector(test_config, strategy, answering_on(9000))

        result = await detector.detect()

        assert result.failure == DetectionFailure.DISCOVERY_UNAVAILABLE
        assert "ps" in result.error

    @pytest.mark.asyncio
    async def test_declared_port_fallback_when_enumeration_is_empty(
        self, test_config, fake_strategy_factory, server_command_line
    ):
        strategy = fake_strategy_factory(processes=[(4242, server_command_line)])
        detector = build_detector(test_config, strategy, answering_on(9000))

        result = await detector.detect()

        assert result.success
        assert result.server.port == 9000
