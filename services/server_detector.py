"""Server detector for agy-top.

Composes the process locator and port prober into a verified server handle.
Detection never retries on its own; callers decide when to run it again.
"""

from typing import List, Optional

from config import ApplicationConfig
from models import DetectionFailure, DetectionResult, ProcessCandidate, ServerHandle
from utils import DiscoveryUnavailable, create_contextual_logger

from .platform_strategies import PlatformStrategy
from .port_prober import PortProber
from .process_locator import ProcessLocator

NOT_FOUND_ERROR = "No Antigravity Language Server found"
UNREACHABLE_ERROR = "Language Server found but no port responds to API"
UNREACHABLE_TIP = "The server may still be starting up. Try again in a few seconds."


class ServerDetector:
    """Finds the first candidate/port pair that answers the local API."""

    def __init__(
        self,
        config: ApplicationConfig,
        strategy: PlatformStrategy,
        locator: ProcessLocator,
        prober: PortProber,
    ) -> None:
        self.config = config
        self.strategy = strategy
        self.locator = locator
        self.prober = prober
        self.logger = create_contextual_logger(__name__, service="server_detector")

    async def _ports_for(self, candidate: ProcessCandidate) -> List[int]:
        ports = await self.prober.probe(candidate.process_id)
        if not ports and candidate.declared_port > 0:
            # Port enumeration came back empty; the declared port is the last resort.
            return [candidate.declared_port]
        return ports

    async def _verify(self, candidate: ProcessCandidate) -> Optional[ServerHandle]:
        for port in await self._ports_for(candidate):
            if await self.prober.test(port, candidate.csrf_token):
                return ServerHandle.from_candidate(candidate, port)
        return None

    async def detect(self) -> DetectionResult:
        """Locate candidates and return the first verified handle, short-circuiting."""
        try:
            candidates = await self.locator.locate()
        except DiscoveryUnavailable as e:
            self.logger.warning("Process discovery unavailable", error=str(e))
            return DetectionResult.not_found(
                DetectionFailure.DISCOVERY_UNAVAILABLE, str(e), e.tip
            )

        if not candidates:
            return DetectionResult.not_found(
                DetectionFailure.SERVER_NOT_FOUND,
                NOT_FOUND_ERROR,
                self.strategy.troubleshooting_tip(),
            )

        for candidate in candidates:
            handle = await self._verify(candidate)
            if handle is not None:
                self.logger.info(
                    "Language server detected",
                    pid=handle.process_id,
                    port=handle.port,
                    declared_port=candidate.declared_port,
                )
                return DetectionResult.found(handle)

        self.logger.warning("Language server found but unreachable", candidates=len(candidates))
        return DetectionResult.not_found(
            DetectionFailure.SERVER_UNREACHABLE, UNREACHABLE_ERROR, UNREACHABLE_TIP
        )
