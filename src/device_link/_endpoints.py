"""HTTP endpoints for linking a provider through the device flow.

Every provider gets four routes:
- POST /{provider}/device/initiate - Start a flow for the current user
- POST /{provider}/device/poll - Poll a flow once, body ``{"flow_id": ...}``
- GET /{provider}/device/status?flow_id=... - Stored status, no upstream call
- POST /{provider}/device/cancel - Delete a flow, body ``{"flow_id": ...}``
"""

import json
import logging

from cross_web import AsyncHTTPRequest

from device_link.exceptions import InvalidFlow, UpstreamUnavailable

from ._context import Context
from ._manager import DeviceFlowManager
from ._route import Route
from .models.flow import FlowStatus
from .utils._response import Response

logger = logging.getLogger(__name__)


def _unauthorized() -> Response:
    return Response.error(
        "unauthorized",
        error_description="Not logged in",
        status_code=401,
    )


def _invalid_flow() -> Response:
    error = InvalidFlow()

    return Response.error(
        error.error,
        error_description=error.error_description,
        status_code=404,
    )


async def _get_flow_id(request: AsyncHTTPRequest) -> str | None:
    try:
        data = json.loads(await request.get_body() or "{}")
    except ValueError:
        return None

    if not isinstance(data, dict):
        return None

    flow_id = data.get("flow_id")

    return flow_id if isinstance(flow_id, str) and flow_id else None


class DeviceFlowEndpoints:
    def __init__(self, manager: DeviceFlowManager, provider_id: str):
        self.manager = manager
        self.provider_id = provider_id

    async def initiate(self, request: AsyncHTTPRequest, context: Context) -> Response:
        if not (user_id := context.get_user_id(request)):
            return _unauthorized()

        try:
            flow = await self.manager.initiate(user_id, self.provider_id)
        except UpstreamUnavailable as e:
            logger.error(f"Failed to init device flow for {self.provider_id}")

            return Response.error(
                e.error,
                error_description="Failed to initialize OAuth flow",
                status_code=502,
            )

        return Response.success(
            {
                "flow_id": flow.id,
                "user_code": flow.user_code,
                "verification_uri": flow.verification_uri,
                "expires_at": flow.expires_at.isoformat(),
                "interval": flow.interval,
            }
        )

    async def poll(self, request: AsyncHTTPRequest, context: Context) -> Response:
        if not (user_id := context.get_user_id(request)):
            return _unauthorized()

        if not (flow_id := await _get_flow_id(request)):
            return Response.error(
                "invalid_request", error_description="No flow_id provided"
            )

        try:
            status = await self.manager.poll(flow_id, user_id)
        except InvalidFlow:
            return _invalid_flow()

        return Response.success(
            {
                **status.model_dump(mode="json", exclude_none=True),
                "is_configured": status.status is FlowStatus.COMPLETED,
            }
        )

    async def status(self, request: AsyncHTTPRequest, context: Context) -> Response:
        if not (user_id := context.get_user_id(request)):
            return _unauthorized()

        flow_id = request.query_params.get("flow_id")

        if not flow_id:
            return Response.error(
                "invalid_request", error_description="No flow_id provided"
            )

        status = self.manager.get_status(flow_id, user_id=user_id)

        if status is None:
            return _invalid_flow()

        return Response.success(
            status.model_dump(mode="json", include={"status", "error"}, exclude_none=True)
        )

    async def cancel(self, request: AsyncHTTPRequest, context: Context) -> Response:
        if not (user_id := context.get_user_id(request)):
            return _unauthorized()

        if not (flow_id := await _get_flow_id(request)):
            return Response.error(
                "invalid_request", error_description="No flow_id provided"
            )

        flow = context.flow_store.get(flow_id)

        # Someone else's flow is answered like a missing one and left alone
        if flow is not None and flow.user_id == user_id:
            self.manager.cancel(flow_id)

        return Response.success({"message": "OAuth flow cancelled"})

    @property
    def routes(self) -> list[Route]:
        prefix = f"/{self.provider_id}/device"
        operation_prefix = self.provider_id.replace("-", "_")

        return [
            Route(
                path=f"{prefix}/initiate",
                methods=["POST"],
                function=self.initiate,
                operation_id=f"{operation_prefix}_device_initiate",
                summary="Start a device authorization flow",
            ),
            Route(
                path=f"{prefix}/poll",
                methods=["POST"],
                function=self.poll,
                operation_id=f"{operation_prefix}_device_poll",
                summary="Poll a device authorization flow",
            ),
            Route(
                path=f"{prefix}/status",
                methods=["GET"],
                function=self.status,
                operation_id=f"{operation_prefix}_device_status",
                summary="Get the status of a device authorization flow",
            ),
            Route(
                path=f"{prefix}/cancel",
                methods=["POST"],
                function=self.cancel,
                operation_id=f"{operation_prefix}_device_cancel",
                summary="Cancel a device authorization flow",
            ),
        ]
