import uuid
from datetime import datetime, timedelta, timezone
from enum import StrEnum

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from device_link.exceptions import (
    FlowDenied,
    FlowError,
    FlowExpired,
    InvalidTransition,
    TransientNetworkFailure,
)

DENIED_MESSAGE = "User denied access"
EXPIRED_MESSAGE = "Device flow expired"


class FlowStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not FlowStatus.PENDING


TERMINAL_STATUSES = frozenset(
    status for status in FlowStatus if status.is_terminal
)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


class AuthorizationFlow(BaseModel):
    """A single device authorization attempt.

    Records are immutable: every transition returns a new record and only
    a pending record can transition.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    provider_id: str
    device_code: str = Field(repr=False)
    user_code: str
    verification_uri: str
    scopes: list[str] = Field(default_factory=list)
    interval_seconds: int
    expires_at: AwareDatetime
    status: FlowStatus = FlowStatus.PENDING
    error_message: str | None = None
    created_at: AwareDatetime = Field(default_factory=_now)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or _now()) > self.expires_at

    def _transition(self, status: FlowStatus, **changes) -> "AuthorizationFlow":
        if self.status.is_terminal:
            raise InvalidTransition(
                f"Cannot move flow {self.id} from {self.status} to {status}"
            )

        return self.model_copy(update={"status": status, **changes})

    def complete(self) -> "AuthorizationFlow":
        return self._transition(FlowStatus.COMPLETED, error_message=None)

    def expire(self) -> "AuthorizationFlow":
        return self._transition(FlowStatus.EXPIRED, error_message=None)

    def fail(self, message: str) -> "AuthorizationFlow":
        return self._transition(FlowStatus.ERROR, error_message=message)

    def slow_down(self, interval_seconds: int) -> "AuthorizationFlow":
        """Raise the poll interval, keeping the flow pending."""
        if self.status.is_terminal:
            raise InvalidTransition(f"Cannot slow down terminal flow {self.id}")

        return self.model_copy(
            update={"interval_seconds": max(self.interval_seconds, interval_seconds)}
        )


class DeviceFlowInit(BaseModel):
    id: str
    user_code: str
    verification_uri: str
    expires_at: AwareDatetime
    interval: int

    @classmethod
    def from_flow(cls, flow: AuthorizationFlow) -> "DeviceFlowInit":
        return cls(
            id=flow.id,
            user_code=flow.user_code,
            verification_uri=flow.verification_uri,
            expires_at=flow.expires_at,
            interval=flow.interval_seconds,
        )


class DeviceFlowStatus(BaseModel):
    status: FlowStatus
    error: str | None = None
    interval: int | None = None
    # Only set for poll-time network failures, the stored flow stays pending
    retryable: bool = False

    @classmethod
    def from_flow(cls, flow: AuthorizationFlow) -> "DeviceFlowStatus":
        error = flow.error_message

        if flow.status is FlowStatus.EXPIRED:
            error = EXPIRED_MESSAGE

        return cls(status=flow.status, error=error, interval=flow.interval_seconds)

    def raise_for_status(self) -> None:
        """Raise the exception matching a failed or expired status."""
        if self.status is FlowStatus.EXPIRED:
            raise FlowExpired(self.error)

        if self.status is FlowStatus.ERROR:
            if self.retryable:
                raise TransientNetworkFailure(self.error)

            if self.error == DENIED_MESSAGE:
                raise FlowDenied(self.error)

            raise FlowError(self.error)


def expires_at_from_seconds(expires_in: int, now: datetime | None = None) -> datetime:
    return (now or _now()) + timedelta(seconds=expires_in)
