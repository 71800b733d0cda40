from collections.abc import Iterable
from datetime import datetime

from typing_extensions import Protocol

from .models.flow import AuthorizationFlow, FlowStatus


class FlowStore(Protocol):
    """Storage protocol for device authorization flows.

    Implementations need a unique index on ``id`` and a secondary index on
    ``(status, created_at)`` for the reaper.
    """

    def create(self, flow: AuthorizationFlow) -> None:
        """Insert a new flow. Raises if a flow with the same id exists."""
        ...

    def get(self, flow_id: str) -> AuthorizationFlow | None: ...

    def update(
        self,
        flow: AuthorizationFlow,
        *,
        expected_status: FlowStatus,
        expected_interval: int | None = None,
    ) -> bool:
        """Replace the stored flow if its status still equals ``expected_status``.

        When ``expected_interval`` is given the stored ``interval_seconds`` must
        match it too. Returns False (and writes nothing) when the flow is
        missing or has changed since it was read.
        """
        ...

    def delete(self, flow_id: str) -> None:
        """Delete a flow. Deleting a missing flow is not an error."""
        ...

    def find_flows(
        self,
        *,
        statuses: Iterable[FlowStatus],
        created_before: datetime | None = None,
    ) -> list[AuthorizationFlow]: ...


class CredentialVault(Protocol):
    def save_token(
        self,
        *,
        user_id: str,
        provider_id: str,
        access_token: str,
        scopes: list[str],
    ) -> None: ...


class PostLinkNotifier(Protocol):
    async def __call__(self, *, user_id: str, provider_id: str) -> None:
        """Called in the background once a credential has been linked."""
        ...
