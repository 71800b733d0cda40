import logging
from collections.abc import Callable
from datetime import timedelta
from itertools import chain

from cross_web import AsyncHTTPRequest
from fastapi import APIRouter

from ._config import Config
from ._context import Context
from ._endpoints import DeviceFlowEndpoints
from ._manager import DeviceFlowManager
from ._reaper import ExpiryReaper
from ._storage import CredentialVault, FlowStore, PostLinkNotifier
from .providers.device import DeviceFlowProvider

logger = logging.getLogger(__name__)


class DeviceLinkRouter(APIRouter):
    """Routes for linking provider credentials through the device flow.

    The reaper is created but not started, start it from the application's
    lifespan:

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            router.reaper.start()
            yield
            await router.reaper.stop()
            await router.manager.aclose()
    """

    def __init__(
        self,
        providers: list[DeviceFlowProvider],
        flow_store: FlowStore,
        credential_vault: CredentialVault,
        get_user_id_from_request: Callable[[AsyncHTTPRequest], str | None],
        notifier: PostLinkNotifier | None = None,
        config: Config | None = None,
    ):
        super().__init__()

        self._context = Context(
            flow_store=flow_store,
            credential_vault=credential_vault,
            notifier=notifier,
            get_user_id_from_request=get_user_id_from_request,
            config=config,
        )

        self.manager = DeviceFlowManager(providers, self._context)
        self.reaper = ExpiryReaper(
            flow_store,
            retention=timedelta(seconds=self._context.retention_seconds),
            interval=self._context.reaper_interval,
        )

        routes = list(
            chain.from_iterable(
                DeviceFlowEndpoints(self.manager, provider.id).routes
                for provider in providers
            )
        )

        for route in routes:
            self.add_api_route(
                route.path,
                route.to_fastapi_endpoint(self._context),
                methods=route.methods,
                operation_id=route.operation_id,
                openapi_extra=route.openapi,
                summary=route.summary,
            )

        logger.debug(f"Registered {len(routes)} device flow routes")
