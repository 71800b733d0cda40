from collections.abc import Callable

from cross_web import AsyncHTTPRequest

from ._config import DEFAULT_CONFIG, Config
from ._storage import CredentialVault, FlowStore, PostLinkNotifier


class Context:
    def __init__(
        self,
        flow_store: FlowStore,
        credential_vault: CredentialVault,
        notifier: PostLinkNotifier | None = None,
        get_user_id_from_request: Callable[[AsyncHTTPRequest], str | None]
        | None = None,
        config: Config | None = None,
    ):
        self.flow_store = flow_store
        self.credential_vault = credential_vault
        self.notifier = notifier
        self.get_user_id_from_request = get_user_id_from_request
        self.config: Config = {**DEFAULT_CONFIG, **(config or {})}

    @property
    def request_timeout(self) -> float:
        return self.config["request_timeout_seconds"]

    @property
    def default_interval(self) -> int:
        return self.config["default_interval_seconds"]

    @property
    def slow_down_increment(self) -> int:
        return self.config["slow_down_increment_seconds"]

    @property
    def retention_seconds(self) -> int:
        return self.config["retention_seconds"]

    @property
    def reaper_interval(self) -> float:
        return self.config["reaper_interval_seconds"]

    def get_user_id(self, request: AsyncHTTPRequest) -> str | None:
        if self.get_user_id_from_request is None:
            return None

        return self.get_user_id_from_request(request)
