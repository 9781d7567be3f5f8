"""
Worker launcher: telemetry, logging, signal handling and the asyncio loop
for interval workers started from ``workers/``.
"""

import asyncio
import logging
import signal
from typing import Optional, Callable

from common.core.otel_axiom_exporter import _initialize_telemetry, get_logger
from common.workers.base_worker import BaseWorker


class WorkerLauncher:
    """Runs one worker until it finishes or the process is asked to stop."""

    def __init__(self):
        self.logger = get_logger(__name__)
        self.worker_instance: Optional[BaseWorker] = None

    def _setup_logging(self, level: int = logging.INFO):
        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            force=True,
        )

    def _register_signal_handlers(self, loop: asyncio.AbstractEventLoop):
        """SIGINT/SIGTERM let the current tick finish, then the loop exits."""
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._request_stop, sig)
            except NotImplementedError:
                # Not available on Windows event loops
                pass

    def _request_stop(self, signum: int) -> None:
        self.logger.info(f"Received signal {signum}, stopping after the current tick...")
        if self.worker_instance:
            self.worker_instance.request_stop()

    async def _run_worker_async(self, worker_instance: BaseWorker, worker_name: str):
        self.worker_instance = worker_instance
        self._register_signal_handlers(asyncio.get_running_loop())

        try:
            self.logger.info(f"Starting {worker_name}...")
            await worker_instance.start()
        except Exception as e:
            self.logger.error(f"Worker failed with error: {e}", exc_info=True)
            raise
        finally:
            self.logger.info(f"{worker_name} shutdown complete")

    def run(
        self,
        worker_factory: Callable[..., BaseWorker],
        worker_name: str,
        setup_logging: bool = True,
        log_level: int = logging.INFO,
        factory_args: tuple = (),
        factory_kwargs: dict = None,
    ):
        """
        Main entry point to run a worker.

        Args:
            worker_factory: Function/class that creates the worker instance
            worker_name: Human readable name for logging
            setup_logging: Whether to setup logging configuration
            log_level: Root log level when logging is set up here
            factory_args: Args to pass to worker factory
            factory_kwargs: Kwargs to pass to worker factory
        """
        if factory_kwargs is None:
            factory_kwargs = {}

        _initialize_telemetry()

        if setup_logging:
            self._setup_logging(log_level)

        self.logger.info(f"Configuring {worker_name}...")
        worker_instance = worker_factory(*factory_args, **factory_kwargs)

        asyncio.run(self._run_worker_async(worker_instance, worker_name))

    def run_with_cli(
        self,
        worker_factory: Callable[..., BaseWorker],
        worker_name: str,
        setup_logging: bool = True,
        cli_setup_func: Optional[Callable] = None,
    ):
        """
        Run worker with CLI argument parsing support.

        Args:
            cli_setup_func: Function that sets up argument parser and returns
                (args, factory_args, factory_kwargs)
        """
        log_level = logging.INFO
        if cli_setup_func:
            args, factory_args, factory_kwargs = cli_setup_func()
            if hasattr(args, "log_level"):
                log_level = getattr(logging, args.log_level)
        else:
            factory_args, factory_kwargs = (), {}

        self.run(
            worker_factory=worker_factory,
            worker_name=worker_name,
            setup_logging=setup_logging,
            log_level=log_level,
            factory_args=factory_args,
            factory_kwargs=factory_kwargs,
        )
