"""Test utilities and fixtures for agy-top tests."""

import os
import sys
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest

from config import ApplicationConfig
from models import CreditPool, ModelQuota, QuotaSnapshot, StoredAuth, UserInfo
from services.config_store import ConfigStore
from services.platform_strategies import PlatformStrategy
from utils import DiscoveryUnavailable

SERVER_COMMAND_LINE = (
    "/opt/antigravity/bin/language_server_linux_x64 --enable_lsp "
    "--extension_server_port 9000 --csrf_token abc123 "
    "--app_data_dir antigravity --workspace_id file_home_dev_project"
)


class FakeStrategy(PlatformStrategy):
    """Platform strategy backed by canned process and port tables."""

    name = "fake"

    def __init__(
        self,
        config: ApplicationConfig,
        processes: Optional[List[Tuple[int, str]]] = None,
        ports: Optional[Dict[int, List[int]]] = None,
        unavailable: bool = False,
    ) -> None:
        super().__init__(config)
        self.processes = processes or []
        self.ports = ports or {}
        self.unavailable = unavailable
        self.port_queries: List[int] = []

    async def list_processes(self) -> List[Tuple[int, str]]:
        if self.unavailable:
            raise DiscoveryUnavailable("ps: command not found")
        return list(self.processes)

    async def list_listening_ports(self, pid: int) -> List[int]:
        self.port_queries.append(pid)
        return list(self.ports.get(pid, []))

    def troubleshooting_tip(self) -> str:
        return "Start the IDE and try again."


@pytest.fixture
def test_config(tmp_path) -> ApplicationConfig:
    """Configuration pointing at a temporary config directory and test URLs."""
    return ApplicationConfig(
        config_dir=tmp_path,
        api_url="https://api.test",
        web_url="https://app.test",
        api_retry_backoff_factor=0,
        port_probe_timeout=0.5,
        local_fetch_timeout=1.0,
        log_level="DEBUG",
    )


@pytest.fixture
def store(test_config) -> ConfigStore:
    return ConfigStore.from_config(test_config)


@pytest.fixture
def authenticated_store(store) -> ConfigStore:
    store.store_auth(StoredAuth(token="tok-123", user_id=42, email="dev@example.com"))
    return store


@pytest.fixture
def fake_strategy_factory(test_config) -> Callable[..., FakeStrategy]:
    def factory(**kwargs: Any) -> FakeStrategy:
        return FakeStrategy(test_config, **kwargs)

    return factory


@pytest.fixture
def user_status_payload() -> Dict[str, Any]:
    """A GetUserStatus body with string-encoded numbers, as the server sends them."""
    return {
        "userStatus": {
            "name": "Dev User",
            "email": "dev@example.com",
            "userTier": {"name": "Free"},
            "planStatus": {
                "availablePromptCredits": "650000",
                "availableFlowCredits": 80000,
                "planInfo": {
                    "planName": "Individual",
                    "monthlyPromptCredits": "1000000",
                    "monthlyFlowCredits": 100000,
                },
            },
            "cascadeModelConfigData": {
                "clientModelConfigs": [
                    {
                        "label": "Gemini 3 Flash",
                        "modelOrAlias": {"model": "gemini-3-flash"},
                        "quotaInfo": {
                            "remainingFraction": "0.8",
                            "resetTime": "2030-01-01T05:00:00Z",
                        },
                    },
                    {
                        "label": "Claude Sonnet 4.5",
                        "modelOrAlias": {"model": "claude-sonnet-4-5"},
                        "quotaInfo": {"remainingFraction": 1},
                    },
                    {
                        "label": "No quota info",
                        "modelOrAlias": {"model": "gemini-legacy"},
                    },
                ]
            },
        }
    }


@pytest.fixture
def make_model() -> Callable[..., ModelQuota]:
    def factory(model_id: str = "gemini-3-flash", remaining: float = 100.0, label: Optional[str] = None) -> ModelQuota:
        return ModelQuota(label=label or model_id, model_id=model_id, remaining_percentage=remaining)

    return factory


@pytest.fixture
def make_snapshot() -> Callable[..., QuotaSnapshot]:
    def factory(
        models: Optional[List[ModelQuota]] = None,
        prompt: Optional[Tuple[float, float]] = None,
        flow: Optional[Tuple[float, float]] = None,
        tier: Optional[str] = "Free",
    ) -> QuotaSnapshot:
        """prompt and flow are (available, monthly) pairs."""
        return QuotaSnapshot(
            timestamp=datetime.now(timezone.utc),
            prompt_credits=CreditPool(available=prompt[0], monthly=prompt[1]) if prompt else None,
            flow_credits=CreditPool(available=flow[0], monthly=flow[1]) if flow else None,
            user_info=UserInfo(name="Dev User", tier=tier) if tier else None,
            models=models or [],
        )

    return factory


@pytest.fixture
def server_command_line() -> str:
    return SERVER_COMMAND_LINE
