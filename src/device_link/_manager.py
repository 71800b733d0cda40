import asyncio
import logging
from collections.abc import Callable

from device_link.exceptions import (
    InvalidFlow,
    TransientNetworkFailure,
    UnsupportedProvider,
)

from ._context import Context
from .models.flow import (
    DENIED_MESSAGE,
    AuthorizationFlow,
    DeviceFlowInit,
    DeviceFlowStatus,
    FlowStatus,
    expires_at_from_seconds,
)
from .providers.device import (
    DeviceFlowProvider,
    TokenDenied,
    TokenExpired,
    TokenOtherError,
    TokenPending,
    TokenResult,
    TokenSlowDown,
    TokenSuccess,
)

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error"
VAULT_ERROR_MESSAGE = "Failed to store credential"


class DeviceFlowManager:
    """Runs device authorization flows from initiation to a linked credential.

    Flows are driven by the caller: every ``poll`` makes at most one request
    to the token endpoint and persists the resulting transition. Only pending
    flows are ever written, with a compare-and-set on the pending status, so
    a late write can't overwrite a terminal state.
    """

    def __init__(self, providers: list[DeviceFlowProvider], context: Context):
        self.providers = {provider.id: provider for provider in providers}
        self.context = context
        self._background_tasks: set[asyncio.Task[None]] = set()

    def get_provider(self, provider_id: str) -> DeviceFlowProvider:
        provider = self.providers.get(provider_id)

        if provider is None:
            raise UnsupportedProvider(f"OAuth not supported for provider: {provider_id}")

        return provider

    async def initiate(self, user_id: str, provider_id: str) -> DeviceFlowInit:
        """Start a new flow for ``user_id``.

        Raises:
            UnsupportedProvider: If no provider is registered under ``provider_id``
            UpstreamUnavailable: If the device code request fails, in which
                case nothing is stored
        """
        provider = self.get_provider(provider_id)

        logger.info(f"Initiating device flow for provider {provider_id}")

        data = await provider.request_device_code(
            timeout=self.context.request_timeout
        )

        interval = data.interval
        if interval is None:
            interval = self.context.default_interval

        flow = AuthorizationFlow(
            user_id=user_id,
            provider_id=provider_id,
            device_code=data.device_code,
            user_code=data.user_code,
            verification_uri=data.verification_uri,
            scopes=list(provider.scopes),
            interval_seconds=interval,
            expires_at=expires_at_from_seconds(data.expires_in),
        )

        self.context.flow_store.create(flow)

        logger.info(f"Device flow {flow.id} initiated for provider {provider_id}")

        return DeviceFlowInit.from_flow(flow)

    def _get_owned_flow(self, flow_id: str, user_id: str) -> AuthorizationFlow:
        flow = self.context.flow_store.get(flow_id)

        # Missing and foreign flows must look the same to the caller
        if flow is None or flow.user_id != user_id:
            raise InvalidFlow()

        return flow

    def _save(
        self,
        flow: AuthorizationFlow,
        transition: Callable[[AuthorizationFlow], AuthorizationFlow],
    ) -> tuple[AuthorizationFlow, bool]:
        """Apply ``transition`` to the stored flow and write it back.

        The write is a compare-and-set on status and interval. While the
        stored flow is still pending the transition is reapplied to it, so
        a concurrent slow_down is never undone. Returns the flow as it now
        stands and whether our write won.
        """
        current = flow

        while True:
            updated = transition(current)

            if self.context.flow_store.update(
                updated,
                expected_status=current.status,
                expected_interval=current.interval_seconds,
            ):
                return updated, True

            stored = self.context.flow_store.get(flow.id)

            # A cancelled flow has nothing stored, report what we computed
            if stored is None:
                return updated, False

            if stored.status.is_terminal:
                logger.info(
                    f"Device flow {flow.id} changed concurrently, keeping stored state"
                )

                return stored, False

            current = stored

    def _expire(self, flow: AuthorizationFlow) -> AuthorizationFlow:
        flow, saved = self._save(flow, AuthorizationFlow.expire)

        if saved:
            logger.info(f"Device flow {flow.id} expired")

        return flow

    async def poll(self, flow_id: str, user_id: str) -> DeviceFlowStatus:
        """Check the token endpoint once and advance the flow.

        Raises:
            InvalidFlow: If the flow does not exist or belongs to someone else
        """
        flow = self._get_owned_flow(flow_id, user_id)

        if flow.status.is_terminal:
            return DeviceFlowStatus.from_flow(flow)

        if flow.is_expired():
            return DeviceFlowStatus.from_flow(self._expire(flow))

        provider = self.get_provider(flow.provider_id)

        try:
            result = await provider.exchange_token(
                flow.device_code, timeout=self.context.request_timeout
            )
        except TransientNetworkFailure as e:
            logger.warning(
                f"Error polling token for device flow {flow.id}: {e.error_description}"
            )

            return DeviceFlowStatus(
                status=FlowStatus.ERROR,
                error=NETWORK_ERROR_MESSAGE,
                interval=flow.interval_seconds,
                retryable=True,
            )

        return await self._apply(flow, result)

    async def _apply(
        self, flow: AuthorizationFlow, result: TokenResult
    ) -> DeviceFlowStatus:
        if isinstance(result, TokenPending):
            return DeviceFlowStatus(
                status=FlowStatus.PENDING, interval=flow.interval_seconds
            )

        if isinstance(result, TokenSlowDown):
            logger.warning(f"Upstream asked device flow {flow.id} to slow down")

            increment = self.context.slow_down_increment

            flow, _ = self._save(
                flow,
                lambda current: current.slow_down(
                    current.interval_seconds + increment
                ),
            )

            return DeviceFlowStatus.from_flow(flow)

        if isinstance(result, TokenExpired):
            return DeviceFlowStatus.from_flow(self._expire(flow))

        if isinstance(result, TokenDenied):
            flow, _ = self._save(flow, lambda current: current.fail(DENIED_MESSAGE))

            return DeviceFlowStatus.from_flow(flow)

        if isinstance(result, TokenOtherError):
            logger.error(f"Device flow {flow.id} failed upstream: {result.error}")

            message = result.error_description or result.error

            flow, _ = self._save(flow, lambda current: current.fail(message))

            return DeviceFlowStatus.from_flow(flow)

        assert isinstance(result, TokenSuccess)

        return self._link(flow, result)

    def _link(self, flow: AuthorizationFlow, result: TokenSuccess) -> DeviceFlowStatus:
        try:
            self.context.credential_vault.save_token(
                user_id=flow.user_id,
                provider_id=flow.provider_id,
                access_token=result.access_token,
                scopes=result.scopes or list(flow.scopes),
            )
        except Exception:
            logger.exception(f"Failed to store credential for device flow {flow.id}")

            flow, _ = self._save(
                flow, lambda current: current.fail(VAULT_ERROR_MESSAGE)
            )

            return DeviceFlowStatus.from_flow(flow)

        flow, saved = self._save(flow, AuthorizationFlow.complete)

        if saved:
            logger.info(f"Device flow {flow.id} completed for provider {flow.provider_id}")
            self._notify(flow)
        elif flow.status is not FlowStatus.COMPLETED:
            # The credential is linked even though the record moved on
            logger.warning(
                f"Device flow {flow.id} was already {flow.status} when its "
                "credential was stored"
            )
            self._notify(flow)

        return DeviceFlowStatus(
            status=FlowStatus.COMPLETED, interval=flow.interval_seconds
        )

    def _notify(self, flow: AuthorizationFlow) -> None:
        if self.context.notifier is None:
            return

        task = asyncio.create_task(
            self._run_notifier(flow.user_id, flow.provider_id),
            name=f"device-link-notify-{flow.id}",
        )

        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _run_notifier(self, user_id: str, provider_id: str) -> None:
        assert self.context.notifier is not None

        try:
            await self.context.notifier(user_id=user_id, provider_id=provider_id)
        except Exception:
            logger.exception(f"Post-link notifier failed for provider {provider_id}")

    def get_status(
        self, flow_id: str, user_id: str | None = None
    ) -> DeviceFlowStatus | None:
        """Return the stored status without contacting the provider.

        Pending flows past their deadline are expired on read. Returns None
        for unknown flows and, when ``user_id`` is given, for flows owned by
        another user.
        """
        flow = self.context.flow_store.get(flow_id)

        if flow is None or (user_id is not None and flow.user_id != user_id):
            return None

        if flow.status is FlowStatus.PENDING and flow.is_expired():
            flow = self._expire(flow)

        return DeviceFlowStatus.from_flow(flow)

    def cancel(self, flow_id: str) -> None:
        self.context.flow_store.delete(flow_id)

        logger.info(f"Device flow {flow_id} cancelled")

    async def aclose(self) -> None:
        """Wait for outstanding post-link notifications."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
