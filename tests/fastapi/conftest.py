from typing import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from device_link._memory import MemoryFlowStore
from device_link.router import DeviceLinkRouter

from ..conftest import MemoryCredentialVault, RecordingNotifier, TestDeviceFlowProvider


@pytest.fixture
def router(
    provider: TestDeviceFlowProvider,
    flow_store: MemoryFlowStore,
    credential_vault: MemoryCredentialVault,
    notifier: RecordingNotifier,
) -> DeviceLinkRouter:
    return DeviceLinkRouter(
        providers=[provider],
        flow_store=flow_store,
        credential_vault=credential_vault,
        notifier=notifier,
        get_user_id_from_request=lambda request: request.headers.get("X-User-Id"),
        config={"retention_seconds": 120},
    )


@pytest.fixture
def test_app(router: DeviceLinkRouter) -> FastAPI:
    app = FastAPI()
    app.include_router(router, prefix="/api/providers")

    return app


@pytest.fixture
def client(test_app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(test_app) as c:
        yield c
