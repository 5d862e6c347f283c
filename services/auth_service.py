"""Browser login and logout for agy-top.

Login serves a one-route callback app on a local port, opens the web login
page and waits for the redirect carrying the token.
"""

import asyncio
import random
import socket
import webbrowser
from typing import Callable, List, Optional
from urllib.parse import quote

import uvicorn
from pydantic import BaseModel

from config import ApplicationConfig
from models import StoredAuth
from routers import create_callback_app
from utils import create_contextual_logger

from .config_store import ConfigStore

CALLBACK_HOST = "localhost"
CALLBACK_PORT_START = 9876
CALLBACK_PORT_COUNT = 100
LOGIN_TIMEOUT = 300.0


class LoginResult(BaseModel):
    success: bool
    error: Optional[str] = None
    auth: Optional[StoredAuth] = None


class LoginSession:
    """Pending login shared between the callback route and the waiting flow."""

    def __init__(self, store: ConfigStore) -> None:
        self.store = store
        self.result: Optional[LoginResult] = None
        self._done = asyncio.Event()

    def complete(self, auth: StoredAuth) -> None:
        if self._done.is_set():
            return
        self.store.store_auth(auth)
        self.result = LoginResult(success=True, auth=auth)
        self._done.set()

    def fail(self, error: str) -> None:
        if self._done.is_set():
            return
        self.result = LoginResult(success=False, error=error)
        self._done.set()

    async def wait(self) -> LoginResult:
        await self._done.wait()
        return self.result


def port_is_free(port: int, host: str = CALLBACK_HOST) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        try:
            probe.bind((host, port))
        except OSError:
            return False
    return True


def candidate_ports() -> List[int]:
    ports = list(range(CALLBACK_PORT_START, CALLBACK_PORT_START + CALLBACK_PORT_COUNT))
    random.shuffle(ports)
    return ports


class LoginFlow:
    """Runs one browser login round trip."""

    def __init__(
        self,
        config: ApplicationConfig,
        store: ConfigStore,
        open_browser: Callable[[str], bool] = webbrowser.open,
        timeout: float = LOGIN_TIMEOUT,
        notify: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.open_browser = open_browser
        self.timeout = timeout
        self.notify = notify or (lambda message: None)
        self.logger = create_contextual_logger(__name__, service="login_flow")

    def login_url(self, port: int) -> str:
        callback_url = f"http://{CALLBACK_HOST}:{port}/callback"
        web_url = self.store.resolve_web_url(self.config)
        return f"{web_url}/auth/cli?callback={quote(callback_url, safe='')}&app={self.config.client_name}"

    def _pick_port(self) -> Optional[int]:
        for port in candidate_ports():
            if port_is_free(port):
                return port
        return None

    async def run(self) -> LoginResult:
        port = self._pick_port()
        if port is None:
            return LoginResult(success=False, error="No free local port for the login callback")

        session = LoginSession(self.store)
        server = uvicorn.Server(
            uvicorn.Config(
                create_callback_app(session),
                host=CALLBACK_HOST,
                port=port,
                log_level="warning",
                lifespan="off",
                access_log=False,
            )
        )
        serve_task = asyncio.create_task(server.serve())

        try:
            while not server.started:
                if serve_task.done():
                    return LoginResult(success=False, error=f"Callback server failed on port {port}")
                await asyncio.sleep(0.05)

            url = self.login_url(port)
            self.logger.info("Waiting for browser login", port=port)
            self.notify(url)
            try:
                opened = self.open_browser(url)
            except webbrowser.Error:
                opened = False
            if not opened:
                self.logger.warning("Could not open browser automatically", url=url)

            try:
                return await asyncio.wait_for(session.wait(), timeout=self.timeout)
            except asyncio.TimeoutError:
                return LoginResult(success=False, error="Login timed out. Please try again.")
        finally:
            server.should_exit = True
            await serve_task


def logout(store: ConfigStore) -> bool:
    """Forget stored credentials; returns whether any were present."""
    was_authenticated = store.is_authenticated()
    store.clear_auth()
    return was_authenticated
