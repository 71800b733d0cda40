import threading
from collections.abc import Iterable
from datetime import datetime

from .models.flow import AuthorizationFlow, FlowStatus


class MemoryFlowStore:
    """In-process FlowStore, safe to share between threads.

    Flow state is lost on restart, use a database backed store in production.
    """

    def __init__(self) -> None:
        self._flows: dict[str, AuthorizationFlow] = {}
        self._lock = threading.Lock()

    def create(self, flow: AuthorizationFlow) -> None:
        with self._lock:
            if flow.id in self._flows:
                raise ValueError(f"Flow {flow.id} already exists")

            self._flows[flow.id] = flow

    def get(self, flow_id: str) -> AuthorizationFlow | None:
        with self._lock:
            return self._flows.get(flow_id)

    def update(
        self,
        flow: AuthorizationFlow,
        *,
        expected_status: FlowStatus,
        expected_interval: int | None = None,
    ) -> bool:
        with self._lock:
            current = self._flows.get(flow.id)

            if current is None or current.status is not expected_status:
                return False

            if (
                expected_interval is not None
                and current.interval_seconds != expected_interval
            ):
                return False

            self._flows[flow.id] = flow

            return True

    def delete(self, flow_id: str) -> None:
        with self._lock:
            self._flows.pop(flow_id, None)

    def find_flows(
        self,
        *,
        statuses: Iterable[FlowStatus],
        created_before: datetime | None = None,
    ) -> list[AuthorizationFlow]:
        wanted = set(statuses)

        with self._lock:
            flows = list(self._flows.values())

        return sorted(
            (
                flow
                for flow in flows
                if flow.status in wanted
                and (created_before is None or flow.created_at < created_before)
            ),
            key=lambda flow: flow.created_at,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._flows)
