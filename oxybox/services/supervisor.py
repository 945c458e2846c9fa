"""Restart supervision for long-running organisation loops."""

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Dict, Optional

from ..metrics.series import create_time_series
from .remote_write import PushError, RemoteWriteClient

RESTARTS_METRIC = "oxybox_scheduler_restarts_total"


class Supervisor:
    """
    Keeps organisation loops alive.

    A loop that returns or raises is restarted after an exponential backoff
    with jitter. Cancellation is never treated as a crash, so graceful
    shutdown stops the supervisor too.
    """

    def __init__(
        self,
        logger: logging.Logger,
        remote_write: Optional[RemoteWriteClient] = None,
        endpoint: Optional[str] = None,
        base_delay: float = 1.0,
        max_delay: float = 60.0
    ):
        """
        Initialize supervisor.

        Args:
            logger: Logger instance
            remote_write: Client used to publish restart counters (optional)
            endpoint: Remote-write base URL for restart counters
            base_delay: Initial restart delay in seconds
            max_delay: Maximum restart delay in seconds
        """
        self.logger = logger.getChild("Supervisor")
        self.remote_write = remote_write
        self.endpoint = endpoint
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.restarts: Dict[str, int] = {}

    def backoff(self, attempt: int) -> float:
        """Delay before restart number ``attempt`` (1-based), jitter included."""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        jitter = random.uniform(0, delay * 0.1)  # Add 0-10% jitter
        return delay + jitter

    async def run(
        self,
        name: str,
        loop_factory: Callable[[], Awaitable[None]],
        tenant_id: Optional[str] = None
    ) -> None:
        """
        Run ``loop_factory()`` forever, restarting it whenever it stops.

        Args:
            name: Organisation short-name, used in logs and metrics
            loop_factory: Returns a fresh loop coroutine on each call
            tenant_id: Tenant that receives the restart counter
        """
        self.restarts.setdefault(name, 0)
        attempt = 0

        while True:
            started = time.monotonic()
            try:
                await loop_factory()
                self.logger.error(f"Probe loop for {name} exited unexpectedly")
            except asyncio.CancelledError:
                self.logger.info(f"Probe loop for {name} cancelled")
                raise
            except Exception as e:
                self.logger.error(
                    f"Probe loop for {name} crashed: {e}",
                    exc_info=True,
                    extra={"organisation": name, "error_type": type(e).__name__}
                )

            # A loop that stayed up long enough starts over with the short delay
            if time.monotonic() - started > self.max_delay:
                attempt = 0
            attempt += 1
            self.restarts[name] += 1

            await self._publish_restarts(name, tenant_id)

            delay = self.backoff(attempt)
            self.logger.warning(
                f"Restarting probe loop for {name} in {delay:.2f}s",
                extra={"organisation": name, "restarts": self.restarts[name]}
            )
            await asyncio.sleep(delay)

    async def _publish_restarts(self, name: str, tenant_id: Optional[str]) -> None:
        if self.remote_write is None or self.endpoint is None:
            return

        series = create_time_series(
            RESTARTS_METRIC,
            [("job", "oxybox"), ("organisation", name)],
            float(self.restarts[name])
        )
        try:
            await self.remote_write.push(self.endpoint, tenant_id, [series])
        except PushError as e:
            self.logger.error(f"Failed to publish restart counter for {name}: {e}")
