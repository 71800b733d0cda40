from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from device_link._context import Context
from device_link._manager import DeviceFlowManager
from device_link._memory import MemoryFlowStore
from device_link.models.flow import AuthorizationFlow
from device_link.providers.device import DeviceFlowProvider


class TestDeviceFlowProvider(DeviceFlowProvider):
    __test__ = False
    id = "ghcp"
    client_id = "test_client_id"
    device_authorization_endpoint = "https://auth.example/login/device/code"
    token_endpoint = "https://auth.example/login/oauth/access_token"
    scopes = ["copilot"]


@dataclass
class LinkedCredential:
    user_id: str
    provider_id: str
    access_token: str
    scopes: list[str]


class MemoryCredentialVault:
    """In-memory credential vault for testing.

    Implements CredentialVault protocol via duck typing.
    """

    def __init__(self):
        self.credentials: list[LinkedCredential] = []
        self.fail = False

    def save_token(
        self,
        *,
        user_id: str,
        provider_id: str,
        access_token: str,
        scopes: list[str],
    ) -> None:
        if self.fail:
            raise RuntimeError("Vault unavailable")

        self.credentials.append(
            LinkedCredential(
                user_id=user_id,
                provider_id=provider_id,
                access_token=access_token,
                scopes=scopes,
            )
        )


class RecordingNotifier:
    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.fail = False

    async def __call__(self, *, user_id: str, provider_id: str) -> None:
        self.calls.append((user_id, provider_id))

        if self.fail:
            raise RuntimeError("Container refresh failed")


@pytest.fixture
def flow_store() -> MemoryFlowStore:
    return MemoryFlowStore()


@pytest.fixture
def credential_vault() -> MemoryCredentialVault:
    return MemoryCredentialVault()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def provider() -> TestDeviceFlowProvider:
    return TestDeviceFlowProvider()


@pytest.fixture
def context(
    flow_store: MemoryFlowStore,
    credential_vault: MemoryCredentialVault,
    notifier: RecordingNotifier,
) -> Context:
    def _get_user_id_from_request(request) -> str | None:
        authorization = request.headers.get("Authorization")

        if authorization and authorization.startswith("Bearer "):
            return authorization.removeprefix("Bearer ")

        return None

    return Context(
        flow_store=flow_store,
        credential_vault=credential_vault,
        notifier=notifier,
        get_user_id_from_request=_get_user_id_from_request,
    )


@pytest.fixture
def manager(provider: TestDeviceFlowProvider, context: Context) -> DeviceFlowManager:
    return DeviceFlowManager([provider], context)


def make_flow(**overrides) -> AuthorizationFlow:
    now = datetime.now(tz=timezone.utc)

    data = {
        "id": "flow-1",
        "user_id": "u1",
        "provider_id": "ghcp",
        "device_code": "d1",
        "user_code": "ABCD-1234",
        "verification_uri": "https://example/device",
        "scopes": ["copilot"],
        "interval_seconds": 5,
        "expires_at": now + timedelta(minutes=15),
        "created_at": now,
    }
    data.update(overrides)

    return AuthorizationFlow(**data)


@pytest.fixture
def pending_flow(flow_store: MemoryFlowStore) -> AuthorizationFlow:
    flow = make_flow()
    flow_store.create(flow)
    return flow
