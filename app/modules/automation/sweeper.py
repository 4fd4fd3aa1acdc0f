import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from app.core.errors import StoreError
from app.modules.automation.repository import AutomationRepository, GroupLocks
from app.modules.automation.schemas import AutomationDocument, Suspension
from app.modules.automation.suspensions import current_time_ms, partition_expired

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    processed: int = 0
    restored: int = 0
    errors: List[str] = field(default_factory=list)
    skipped: bool = False


class SuspensionSweeper:
    """
    Restores members whose suspension has expired, across all groups.

    One failed restoration never stops the others, and one group's store
    failure never stops the other groups. run_once is non-reentrant: a call
    made while a sweep is in flight returns a skipped result.
    """

    def __init__(
        self,
        repository: AutomationRepository,
        roblox,
        audit=None,
        locks: Optional[GroupLocks] = None,
        clock: Callable[[], int] = current_time_ms,
        retain_failed_restores: bool = False,
    ):
        self.repository = repository
        self.roblox = roblox
        self.audit = audit
        self.locks = locks or GroupLocks()
        self.clock = clock
        self.retain_failed_restores = retain_failed_restores
        self._running = asyncio.Lock()

    async def restore_expired(
        self,
        group_id: str,
        document: AutomationDocument,
        now_ms: int,
        result: SweepResult,
    ) -> Tuple[AutomationDocument, List[Suspension]]:
        """Restore expired suspensions of one group; returns (document without them, expired)."""
        expired, remaining = partition_expired(document, now_ms)
        if not expired:
            return document, []
        result.processed += len(expired)
        failed = []
        for suspension in expired:
            try:
                await self.roblox.set_role(group_id, suspension.user_id, suspension.previous_role_id)
            except Exception as e:
                failed.append(suspension)
                message = f"Failed to restore {suspension.username} ({suspension.user_id}) in group {group_id}: {str(e)}"
                logger.error(message)
                result.errors.append(message)
                continue
            result.restored += 1
            logger.info(
                f"Restored {suspension.username} ({suspension.user_id}) to role "
                f"{suspension.previous_role_name} in group {group_id}"
            )
            if self.audit is not None:
                await self.audit.record_suspension_expired(group_id, suspension)
        if self.retain_failed_restores:
            remaining = remaining + failed
        return document.model_copy(update={"suspensions": remaining}), expired

    async def run_once(self, now_ms: Optional[int] = None) -> SweepResult:
        if self._running.locked():
            logger.info("Suspension sweep already in progress, skipping")
            return SweepResult(skipped=True)
        async with self._running:
            return await self._sweep(self.clock() if now_ms is None else now_ms)

    async def _sweep(self, now_ms: int) -> SweepResult:
        result = SweepResult()
        try:
            documents = self.repository.list()
        except StoreError as e:
            logger.error(f"Error listing automation documents: {str(e)}")
            result.errors.append(str(e))
            return result

        for group_id, document in documents:
            expired, _ = partition_expired(document, now_ms)
            if not expired:
                continue
            try:
                async with self.locks.for_group(group_id):
                    # Re-read under the lock so request-side writes are not clobbered
                    current = self.repository.get(group_id)
                    updated, expired = await self.restore_expired(group_id, current, now_ms, result)
                    if expired:
                        self.repository.update_suspensions(group_id, updated.suspensions)
            except Exception as e:
                logger.error(f"Error processing suspensions for group {group_id}: {str(e)}")
                result.errors.append(f"Group {group_id}: {str(e)}")

        if result.processed:
            logger.info(f"Suspension sweep processed {result.processed}, restored {result.restored}")
        else:
            logger.debug("No expired suspensions found")
        return result


class SweeperScheduler:
    """Fixed-delay background loop around SuspensionSweeper.run_once."""

    def __init__(self, sweeper: SuspensionSweeper, interval_seconds: float = 60):
        self.sweeper = sweeper
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        logger.info(f"Suspension sweeper started - checking every {self.interval_seconds} seconds")
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Suspension sweeper stopped")

    async def _loop(self) -> None:
        # First run happens immediately at startup
        while True:
            try:
                result = await self.sweeper.run_once()
                if result.restored:
                    logger.info(f"Restored {result.restored} user(s) from suspension")
            except Exception as e:
                logger.error(f"Error in suspension sweeper loop: {str(e)}")
            await asyncio.sleep(self.interval_seconds)
