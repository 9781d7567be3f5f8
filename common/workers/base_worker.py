import asyncio
from abc import ABC, abstractmethod
from typing import Optional
from uuid import uuid4

from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


class BaseWorker(ABC):
    """Base worker that runs one unit of work on a fixed interval."""

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        worker_id: Optional[str] = None,
        run_once: bool = False,
    ):
        self.name = name
        self.interval_seconds = interval_seconds
        self.worker_id = worker_id or f"{name}_worker_{uuid4()}"
        self.run_once = run_once
        self.running = False
        self._stop_event: Optional[asyncio.Event] = None

    async def setup(self):
        """Initialize worker dependencies."""
        logger.info(f"Worker {self.worker_id} setup completed")

    async def cleanup(self):
        """Cleanup worker resources."""
        logger.info(f"Worker {self.worker_id} cleanup completed")

    async def start(self):
        """Run ticks until stopped, or a single tick when run_once is set."""
        if self.running:
            logger.warning(f"Worker {self.worker_id} is already running")
            return

        self.running = True
        self._stop_event = asyncio.Event()
        logger.info(
            f"Starting worker {self.worker_id} (interval={self.interval_seconds}s)"
        )

        try:
            await self.setup()
            while self.running:
                try:
                    await self.tick()
                except Exception as e:
                    # A failed tick is retried on the next interval
                    logger.error(
                        f"Worker {self.worker_id} tick failed: {e}", exc_info=True
                    )
                if self.run_once or not self.running:
                    break
                await self._sleep_until_next_tick()
        finally:
            self.running = False
            await self.cleanup()

    async def _sleep_until_next_tick(self):
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
        except asyncio.TimeoutError:
            pass

    def request_stop(self):
        """Finish the current tick, then leave the loop without waiting out the interval."""
        self.running = False
        if self._stop_event is not None:
            self._stop_event.set()

    async def stop(self):
        """Stop the worker."""
        self.request_stop()
        logger.info(f"Stopping worker {self.worker_id}")

    @abstractmethod
    async def tick(self):
        """Perform one unit of work."""
        pass
