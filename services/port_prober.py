"""Port prober for agy-top.

A server's declared port is not reliable, so every listening port of the
process is tried against the real API and the first 200 wins.
"""

import asyncio
from typing import List

import httpx

from config import ApplicationConfig
from utils import create_contextual_logger

from .platform_strategies import PlatformStrategy


def user_status_url(config: ApplicationConfig, port: int) -> str:
    return f"http://{config.local_host}:{port}/{config.local_service_path}/GetUserStatus"


def local_api_headers(config: ApplicationConfig, csrf_token: str) -> dict:
    return {
        "Content-Type": "application/json",
        "Connect-Protocol-Version": "1",
        config.csrf_header: csrf_token,
    }


USER_STATUS_BODY = {"wrapper_data": {}}


class PortProber:
    """Enumerates listening ports for a pid and verifies them against the API."""

    def __init__(
        self,
        config: ApplicationConfig,
        strategy: PlatformStrategy,
        http_client: httpx.AsyncClient,
    ) -> None:
        self.config = config
        self.strategy = strategy
        self.http_client = http_client
        self.logger = create_contextual_logger(__name__, service="port_prober")

    async def probe(self, pid: int) -> List[int]:
        """Return the ascending, de-duplicated listening ports of pid."""
        ports = await self.strategy.list_listening_ports(pid)
        return sorted(set(ports))

    async def test(self, port: int, csrf_token: str) -> bool:
        """True only when the port answers the user status call with HTTP 200."""
        timeout = self.config.port_probe_timeout
        try:
            response = await asyncio.wait_for(
                self.http_client.post(
                    user_status_url(self.config, port),
                    json=USER_STATUS_BODY,
                    headers=local_api_headers(self.config, csrf_token),
                    timeout=timeout,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            self.logger.debug("Port probe timed out", port=port)
            return False
        except httpx.HTTPError as e:
            self.logger.debug("Port probe failed", port=port, error=str(e))
            return False

        self.logger.debug("Port probe answered", port=port, status_code=response.status_code)
        return response.status_code == 200
