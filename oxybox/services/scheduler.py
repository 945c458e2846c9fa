"""Per-organisation probing loop."""

import asyncio
import logging
import time
from enum import Enum
from typing import List, Optional

from ..config.models import OrganisationConfig, TargetConfig
from ..metrics.encoder import TimeSeriesEncoder
from ..metrics.series import TimeSeries, create_time_series, flatten_series
from ..probe.engine import ProbeEngine
from ..probe.errors import ProbeError
from ..probe.result import ProbeResult
from .remote_write import PushError, RemoteWriteClient

LAST_CYCLE_METRIC = "oxybox_scheduler_last_cycle_timestamp_seconds"


class SchedulerState(Enum):
    """Lifecycle of an organisation loop."""

    IDLE = "idle"
    RUNNING = "running"
    SLEEPING = "sleeping"


class ProbeScheduler:
    """
    Probes every target of one organisation on a fixed cadence.

    Each cycle launches one task per target, bounded by the polling
    interval, waits for all of them and sleeps for whatever is left of the
    interval. Cycles never overlap; a failing or hanging target never
    affects its siblings.
    """

    def __init__(
        self,
        name: str,
        config: OrganisationConfig,
        engine: ProbeEngine,
        remote_write: RemoteWriteClient,
        endpoint: str,
        logger: logging.Logger,
        dry_run: bool = False
    ):
        """
        Initialize scheduler.

        Args:
            name: Organisation short-name (config key)
            config: Organisation configuration
            engine: Shared probe engine
            remote_write: Shared remote-write client
            endpoint: Remote-write base URL
            logger: Logger instance
            dry_run: Log encoded series instead of pushing them
        """
        self.name = name
        self.config = config
        self.engine = engine
        self.remote_write = remote_write
        self.endpoint = endpoint
        self.dry_run = dry_run
        self.logger = logger.getChild(f"ProbeScheduler.{name}")

        self.state = SchedulerState.IDLE
        self.cycle = 0
        self.last_cycle_completed_at: Optional[float] = None

    @property
    def interval(self) -> float:
        return float(self.config.polling_interval_seconds)

    async def run(self) -> None:
        """Run cycles forever."""
        self.logger.info(
            f"Starting probe loop for {self.name}",
            extra={
                "organisation_id": self.config.organisation_id,
                "targets": len(self.config.targets),
                "interval_seconds": self.interval,
            }
        )
        try:
            while True:
                cycle_start = time.monotonic()
                await self.run_cycle()

                wait = max(0.0, self.interval - (time.monotonic() - cycle_start))
                self.state = SchedulerState.SLEEPING
                self.logger.debug(f"Cycle {self.cycle} done, sleeping {wait:.2f}s")
                await asyncio.sleep(wait)
        finally:
            self.state = SchedulerState.IDLE

    async def run_cycle(self) -> None:
        """Probe all targets once and wait for every task to finish or time out."""
        self.state = SchedulerState.RUNNING
        self.cycle += 1
        cycle_start = time.monotonic()
        targets = list(self.config.targets)

        tasks = [
            asyncio.wait_for(self._probe_target(target), timeout=self.interval)
            for target in targets
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        failures = 0
        for target, result in zip(targets, results):
            if isinstance(result, asyncio.TimeoutError):
                failures += 1
                self.logger.warning(
                    f"Probe of {target.url} timed out after {self.interval:.0f}s",
                    extra={"organisation_id": self.config.organisation_id, "url": target.url}
                )
            elif isinstance(result, BaseException):
                failures += 1
                self.logger.error(
                    f"Probe task for {target.url} crashed: {result}",
                    exc_info=result,
                    extra={"organisation_id": self.config.organisation_id, "url": target.url}
                )

        self.last_cycle_completed_at = time.time()
        self.logger.info(
            f"Cycle {self.cycle} completed",
            extra={
                "organisation_id": self.config.organisation_id,
                "targets": len(targets),
                "task_failures": failures,
                "duration_seconds": round(time.monotonic() - cycle_start, 3),
            }
        )

        # Organisations without targets never push anything
        if targets:
            await self._push_heartbeat()

    async def _push_heartbeat(self) -> None:
        """Push the completion time of the last cycle to the organisation's tenant."""
        series = create_time_series(
            LAST_CYCLE_METRIC,
            [("job", "oxybox"), ("organisation", self.name)],
            self.last_cycle_completed_at
        )
        await self._push(f"organisation {self.name}", [series])

    async def _probe_target(self, target: TargetConfig) -> None:
        """Probe one target, then encode and push its metrics."""
        org_id = self.config.organisation_id

        try:
            result = await self.engine.probe(target.url)
        except ProbeError as e:
            self.logger.warning(
                f"Probe error for {target.url}: {e.message}",
                extra={"organisation_id": org_id, "url": target.url, "phase": e.phase,
                       "error_type": type(e).__name__}
            )
            result = ProbeResult.failed(target.url)
            accepted = False
        else:
            accepted = self.is_accepted(target, result)
            self._log_result(target, result, accepted)

        series = TimeSeriesEncoder.encode(result, accepted, org_id)
        await self._push(target.url, series)

    @staticmethod
    def is_accepted(target: TargetConfig, result: ProbeResult) -> bool:
        """A probe succeeds when its HTTP status is one of the accepted codes."""
        return result.http_status is not None and result.http_status in target.accepted_status_codes

    def _log_result(self, target: TargetConfig, result: ProbeResult, accepted: bool) -> None:
        extra = {
            "organisation_id": self.config.organisation_id,
            "url": target.url,
            "http_status": result.http_status,
        }
        if not accepted:
            self.logger.warning(
                f"Unexpected status for {target.url}: {result.http_status} "
                f"(accepted: {sorted(target.accepted_status_codes)})",
                extra=extra
            )
            return

        cert_days = result.cert_days_remaining(time.time())
        cert = f"{cert_days:.2f}d" if cert_days is not None else "N/A"
        self.logger.info(
            f"URL: {target.url}, Status: {result.http_status}, "
            f"Elapsed: {result.total_probe_time * 1000:.2f}ms, Cert: {cert}",
            extra={**extra, "total_probe_time": result.total_probe_time, "cert_days_remaining": cert_days}
        )

    async def _push(self, source: str, series: List[TimeSeries]) -> None:
        org_id = self.config.organisation_id
        if self.dry_run:
            self.logger.info(
                f"DRY RUN - {len(series)} series for {source}",
                extra={"organisation_id": org_id, "series": flatten_series(series)}
            )
            return

        try:
            await self.remote_write.push(self.endpoint, org_id, series)
        except PushError as e:
            self.logger.error(
                f"Failed to send metrics for {source}: {e}",
                extra={"organisation_id": org_id, "source": source, "error_type": type(e).__name__}
            )
