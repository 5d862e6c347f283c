"""Platform-specific process and listening-port enumeration.

Processes and their listening sockets are read through psutil. When the OS
refuses psutil access to a process's socket table, each strategy falls back to
the tools the platform ships with and hands the raw text to pure parsing
functions, so the parsers can be tested without a live OS.
`get_platform_strategy` is the single point where the platform is selected.
"""

import asyncio
import contextlib
import json
import re
import sys
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence, Tuple

import psutil

from config import ApplicationConfig
from utils import DiscoveryUnavailable, create_contextual_logger

# (pid, full command line)
ProcessEntry = Tuple[int, str]

_SS_PORT = re.compile(
    r"LISTEN\s+\d+\s+\d+\s+(?:\*|[\d.]+|\[[\da-fA-F:.]*\])(?:%\S+)?:(\d+)", re.IGNORECASE
)
_LSOF_PORT = re.compile(
    r"(?:TCP|UDP)\s+(?:\*|[\d.]+|\[[\da-fA-F:]+\]):(\d+)\s+\(LISTEN\)", re.IGNORECASE
)

logger = create_contextual_logger(__name__, service="platform_strategies")


async def run_command(args: Sequence[str], timeout: float) -> str:
    """Run a command and return its stdout.

    Raises:
        DiscoveryUnavailable: the executable is missing, exits non-zero, or times out.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        raise DiscoveryUnavailable(f"Cannot run {args[0]}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        # The child may exit between the timeout and the kill.
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        raise DiscoveryUnavailable(f"{args[0]} timed out after {timeout:g}s") from e

    if process.returncode != 0:
        detail = stderr.decode("utf-8", errors="replace").strip()
        raise DiscoveryUnavailable(
            f"{args[0]} exited with status {process.returncode}"
            + (f": {detail}" if detail else "")
        )
    return stdout.decode("utf-8", errors="replace")


def _sorted_unique(ports: Iterable[int]) -> List[int]:
    return sorted({port for port in ports if 0 < port <= 65535})


def scan_processes(name_filter: str) -> List[ProcessEntry]:
    """Return (pid, command line) for processes whose name or arguments mention name_filter.

    Processes that vanish or deny access while being read are skipped.

    Raises:
        DiscoveryUnavailable: the process table itself could not be read.
    """
    entries: List[ProcessEntry] = []
    try:
        for proc in psutil.process_iter(["pid", "name", "cmdline"]):
            name = proc.info.get("name") or ""
            command_line = " ".join(proc.info.get("cmdline") or [])
            if name_filter in name or name_filter in command_line:
                entries.append((proc.info["pid"], command_line))
    except (psutil.Error, OSError) as e:
        raise DiscoveryUnavailable(f"Cannot enumerate processes: {e}") from e
    return entries


def listening_ports(pid: int) -> List[int]:
    """Read the TCP ports pid listens on from the OS socket table.

    A process that no longer exists has no ports.

    Raises:
        psutil.AccessDenied: the socket table of pid is not readable.
    """
    try:
        connections = psutil.Process(pid).net_connections(kind="tcp")
    except psutil.NoSuchProcess:
        return []
    return _sorted_unique(
        conn.laddr.port for conn in connections if conn.status == psutil.CONN_LISTEN and conn.laddr
    )


def parse_ss_ports(stdout: str, pid: int) -> List[int]:
    """Parse `ss -tlnp` output for sockets owned by pid."""
    marker = f"pid={pid},"
    ports = []
    for line in stdout.splitlines():
        if marker not in line:
            continue
        match = _SS_PORT.search(line)
        if match:
            ports.append(int(match.group(1)))
    return _sorted_unique(ports)


def parse_lsof_ports(stdout: str, pid: int) -> List[int]:
    """Parse `lsof -nP -iTCP -sTCP:LISTEN` output for sockets owned by pid."""
    pid_text = str(pid)
    ports = []
    for line in stdout.splitlines():
        parts = line.split()
        if len(parts) < 2 or parts[1] != pid_text:
            continue
        match = _LSOF_PORT.search(line)
        if match:
            ports.append(int(match.group(1)))
    return _sorted_unique(ports)


def parse_netstat_ports(stdout: str, pid: int) -> List[int]:
    """Parse Windows `netstat -ano` output for LISTENING sockets owned by pid."""
    pid_text = str(pid)
    ports = []
    for line in stdout.splitlines():
        parts = line.split()
        if len(parts) < 5 or parts[0].upper() != "TCP":
            continue
        if parts[3].upper() != "LISTENING" or parts[4] != pid_text:
            continue
        _, _, port_text = parts[1].rpartition(":")
        if port_text.isdigit():
            ports.append(int(port_text))
    return _sorted_unique(ports)


def parse_powershell_ports(stdout: str) -> List[int]:
    """Parse `Get-NetTCPConnection | Select-Object LocalPort | ConvertTo-Json` output."""
    trimmed = stdout.strip()
    if not trimmed:
        return []
    data = json.loads(trimmed)
    items = data if isinstance(data, list) else [data]
    ports = []
    for item in items:
        value = item.get("LocalPort") if isinstance(item, dict) else item
        if isinstance(value, (int, str)) and str(value).isdigit():
            ports.append(int(value))
    return _sorted_unique(ports)


class PlatformStrategy(ABC):
    """Capability interface for OS-specific discovery."""

    name: str = "generic"

    def __init__(self, config: ApplicationConfig) -> None:
        self.config = config

    @abstractmethod
    async def list_processes(self) -> List[ProcessEntry]:
        """Return (pid, command line) for processes matching the server name.

        Raises:
            DiscoveryUnavailable: the listing mechanism itself failed.
        """

    @abstractmethod
    async def list_listening_ports(self, pid: int) -> List[int]:
        """Return the ascending, de-duplicated TCP ports pid listens on."""

    @abstractmethod
    def troubleshooting_tip(self) -> str:
        """Platform-specific remediation hint for a missing server."""


class PsutilStrategy(PlatformStrategy):
    """psutil for processes and sockets; system tools when socket access is denied."""

    @property
    def process_list_timeout(self) -> float:
        return self.config.process_list_timeout

    async def list_processes(self) -> List[ProcessEntry]:
        timeout = self.process_list_timeout
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(scan_processes, self.config.process_name), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise DiscoveryUnavailable(f"Process enumeration timed out after {timeout:g}s") from e

    async def list_listening_ports(self, pid: int) -> List[int]:
        try:
            return await asyncio.to_thread(listening_ports, pid)
        except psutil.AccessDenied:
            logger.debug("Socket table not readable, falling back to system tools", pid=pid)
        except (psutil.Error, OSError) as e:
            logger.debug("Port enumeration failed", pid=pid, error=str(e))
            return []
        return await self.fallback_ports(pid)

    @abstractmethod
    async def fallback_ports(self, pid: int) -> List[int]:
        """Enumerate pid's listening ports with the platform's own tools."""


class PosixStrategy(PsutilStrategy):
    """Linux and macOS; ss with lsof fallback when psutil is denied."""

    def __init__(self, config: ApplicationConfig, platform: str = "linux") -> None:
        super().__init__(config)
        self.platform = platform
        self.name = platform

    async def fallback_ports(self, pid: int) -> List[int]:
        if self.platform.startswith("linux"):
            try:
                stdout = await run_command(["ss", "-tlnp"], self.config.process_list_timeout)
                ports = parse_ss_ports(stdout, pid)
                if ports:
                    return ports
            except DiscoveryUnavailable as e:
                logger.debug("ss unavailable, falling back to lsof", pid=pid, error=str(e))
        return await self._lsof_ports(pid)

    async def _lsof_ports(self, pid: int) -> List[int]:
        try:
            stdout = await run_command(
                ["lsof", "-nP", "-a", "-iTCP", "-sTCP:LISTEN", "-p", str(pid)],
                self.config.process_list_timeout,
            )
        except DiscoveryUnavailable as e:
            logger.debug("lsof port enumeration failed", pid=pid, error=str(e))
            return []
        return parse_lsof_ports(stdout, pid)

    def troubleshooting_tip(self) -> str:
        return "Ensure Antigravity IDE is running. Check: ps aux | grep language_server"


class WindowsStrategy(PsutilStrategy):
    """Windows; Get-NetTCPConnection with netstat fallback when psutil is denied."""

    name = "win32"

    @property
    def process_list_timeout(self) -> float:
        return self.config.windows_process_list_timeout

    def _powershell(self, script: str) -> List[str]:
        return ["powershell", "-ExecutionPolicy", "Bypass", "-NoProfile", "-Command", script]

    async def fallback_ports(self, pid: int) -> List[int]:
        script = (
            f"Get-NetTCPConnection -State Listen -OwningProcess {pid} "
            "-ErrorAction SilentlyContinue | Select-Object LocalPort | ConvertTo-Json -Compress"
        )
        try:
            stdout = await run_command(
                self._powershell(script), self.config.windows_process_list_timeout
            )
            ports = parse_powershell_ports(stdout)
            if ports:
                return ports
        except (DiscoveryUnavailable, ValueError) as e:
            logger.debug("Get-NetTCPConnection failed, falling back to netstat", pid=pid, error=str(e))

        try:
            stdout = await run_command(["netstat", "-ano"], self.config.process_list_timeout)
        except DiscoveryUnavailable as e:
            logger.debug("netstat port enumeration failed", pid=pid, error=str(e))
            return []
        return parse_netstat_ports(stdout, pid)

    def troubleshooting_tip(self) -> str:
        return (
            "Ensure Antigravity IDE is running. "
            "Check Task Manager for language_server_windows_x64.exe"
        )


def get_platform_strategy(
    config: ApplicationConfig, platform: Optional[str] = None
) -> PlatformStrategy:
    """Select the strategy for the given (or current) platform tag."""
    platform = platform or sys.platform
    if platform == "win32":
        return WindowsStrategy(config)
    return PosixStrategy(config, platform)
