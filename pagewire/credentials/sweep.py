"""
Credential sweeper - background task that keeps credentials on the fast path.

Started once at application startup by the sweep plugin and cancelled at
shutdown. Each run refreshes every credential past its policy age so request
handling rarely has to wait on a provider round-trip.
"""

import asyncio

from pagewire.core.logging.logger import get_logger
from pagewire.credentials.lifecycle import SweepReport, TokenLifecycleManager

logger = get_logger(__name__)


class CredentialSweeper:
    """Owns the periodic refresh task and its cancellation."""

    def __init__(
        self,
        lifecycle: TokenLifecycleManager,
        interval_seconds: float = 900,
        concurrency: int = 5,
    ):
        self.lifecycle = lifecycle
        self.interval_seconds = interval_seconds
        self.concurrency = concurrency
        self.last_report: SweepReport | None = None
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> SweepReport:
        """Run a single sweep and return its report. Never raises on refresh failures."""
        report = await self.lifecycle.refresh_stale(concurrency=self.concurrency)
        self.last_report = report

        if report.failed:
            logger.warning(
                f"Credential sweep finished: {len(report.refreshed)} refreshed, "
                f"{len(report.failed)} failed ({', '.join(sorted(report.failed))})"
            )
        else:
            logger.info(
                f"Credential sweep finished: {len(report.refreshed)} refreshed, "
                f"{report.skipped} fresh"
            )
        return report

    def start(self) -> None:
        """Start the background sweep task if it is not already running."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run_forever(), name="credential_sweep")
        logger.info(f"Started credential sweep task (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Cancel the background task and wait for it to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Stopped credential sweep task")

    async def _run_forever(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                logger.info("Credential sweep task cancelled")
                raise
            except Exception as e:
                # Store outages and the like; the next interval retries
                logger.error(f"Credential sweep run failed: {e}", exc_info=True)

            await asyncio.sleep(self.interval_seconds)
