"""Process locator for agy-top.

Finds language server processes and extracts their launch parameters. Command
line parsing is best effort: quoting and flag order vary between IDE builds.
"""

import re
from typing import List, Optional

from config import ApplicationConfig
from models import ProcessCandidate
from utils import create_contextual_logger

from .platform_strategies import PlatformStrategy

_TOKEN_VALUE = r"[=\s]+[\"']?([a-zA-Z0-9\-_.]+)[\"']?"


class CommandLineParser:
    """Extracts candidate parameters from one process command line."""

    def __init__(self, config: ApplicationConfig) -> None:
        self.config = config
        self._data_dir = re.compile(
            re.escape(config.data_dir_flag.lstrip("-"))
            + r"[=\s]+[\"']?"
            + re.escape(config.data_dir_prefix),
            re.IGNORECASE,
        )
        self._port = re.compile(re.escape(config.port_flag) + r"[=\s]+(\d+)")
        self._csrf = re.compile(r"--csrf_token" + _TOKEN_VALUE)
        self._workspace = re.compile(r"--workspace_id" + _TOKEN_VALUE)

    def matches(self, command_line: str) -> bool:
        if self.config.port_flag not in command_line:
            return False
        if self.config.data_dir_flag not in command_line:
            return False
        return bool(self._data_dir.search(command_line))

    def parse(self, pid: int, command_line: str) -> Optional[ProcessCandidate]:
        """Return a candidate, or None when the line does not qualify or lacks a token."""
        if not self.matches(command_line):
            return None

        token_match = self._csrf.search(command_line)
        if not token_match:
            return None

        port_match = self._port.search(command_line)
        declared_port = int(port_match.group(1)) if port_match else 0
        if declared_port > 65535:
            declared_port = 0

        workspace_match = self._workspace.search(command_line)
        return ProcessCandidate(
            process_id=pid,
            declared_port=declared_port,
            csrf_token=token_match.group(1),
            workspace_id=workspace_match.group(1) if workspace_match else None,
        )


class ProcessLocator:
    """Lists OS processes and keeps the ones that look like the language server."""

    def __init__(self, config: ApplicationConfig, strategy: PlatformStrategy) -> None:
        self.config = config
        self.strategy = strategy
        self.parser = CommandLineParser(config)
        self.logger = create_contextual_logger(__name__, service="process_locator")

    async def locate(self) -> List[ProcessCandidate]:
        """Return candidates in OS enumeration order.

        Raises:
            DiscoveryUnavailable: the process listing itself failed.
        """
        entries = await self.strategy.list_processes()
        candidates = []
        for pid, command_line in entries:
            candidate = self.parser.parse(pid, command_line)
            if candidate is None:
                continue
            candidates.append(candidate)

        self.logger.debug(
            "Process scan complete",
            platform=self.strategy.name,
            processes_seen=len(entries),
            candidates=len(candidates),
        )
        return candidates
