import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ._storage import FlowStore
from .models.flow import TERMINAL_STATUSES, FlowStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    expired: int
    deleted: int


class ExpiryReaper:
    """Expires overdue pending flows and deletes old terminal ones.

    Works only through the FlowStore, so it can run next to any number of
    pollers without coordinating with them.
    """

    def __init__(
        self,
        flow_store: FlowStore,
        retention: timedelta = timedelta(hours=1),
        interval: float = 60.0,
    ):
        self.flow_store = flow_store
        self.retention = retention
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    def sweep(self, now: datetime | None = None) -> SweepResult:
        now = now or datetime.now(tz=timezone.utc)

        expired = 0

        for flow in self.flow_store.find_flows(statuses=[FlowStatus.PENDING]):
            if flow.expires_at < now and self.flow_store.update(
                flow.expire(),
                expected_status=FlowStatus.PENDING,
                expected_interval=flow.interval_seconds,
            ):
                expired += 1

        stale = self.flow_store.find_flows(
            statuses=TERMINAL_STATUSES, created_before=now - self.retention
        )

        for flow in stale:
            self.flow_store.delete(flow.id)

        result = SweepResult(expired=expired, deleted=len(stale))

        if result.expired or result.deleted:
            logger.info(
                f"Reaped device flows: {result.expired} expired, "
                f"{result.deleted} deleted"
            )

        return result

    async def run(self) -> None:
        while True:
            try:
                self.sweep()
            except Exception:
                logger.exception("Device flow sweep failed")

            await asyncio.sleep(self.interval)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return

        self._task = asyncio.create_task(self.run(), name="device-link-reaper")

    async def stop(self) -> None:
        if self._task is None:
            return

        self._task.cancel()

        try:
            await self._task
        except asyncio.CancelledError:
            pass

        self._task = None
