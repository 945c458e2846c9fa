"""Main application entry point for the oxybox endpoint prober."""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Dict, List, Optional

from .config.loader import ConfigError, ConfigLoader
from .config.models import ProbeConfig
from .config.settings import Settings
from .probe.engine import ProbeEngine, create_tls_context
from .probe.resolver import DnsResolver
from .services.remote_write import RemoteWriteClient
from .services.scheduler import ProbeScheduler
from .services.supervisor import Supervisor
from .utils.logger import setup_logger


class OxyboxApp:
    """
    Main probing application.

    Builds the shared resolver, TLS context and remote-write client once and
    runs one supervised probe loop per organisation.
    """

    def __init__(
        self,
        config_path: str,
        dry_run: bool = False,
        log_level: str = "INFO"
    ):
        """
        Initialize application.

        Args:
            config_path: Path to configuration file
            dry_run: If True, log series instead of pushing them
            log_level: Log level name

        Raises:
            SystemExit: If configuration is invalid
        """
        self.config_path = config_path
        self.dry_run = dry_run
        self.logger = setup_logger("oxybox", log_level)

        self.config = self._load_config()
        self.endpoint = Settings.mimir_endpoint()
        dns_hosts = Settings.dns_hosts()

        self.logger.info(f"Using DNS hosts: {dns_hosts}")
        self.logger.info(f"Remote write endpoint: {self.endpoint}")

        self.engine = ProbeEngine(
            resolver=DnsResolver(dns_hosts),
            tls_context=create_tls_context(),
            http_timeout=Settings.http_timeout(),
            follow_redirects=Settings.follow_redirects(),
            logger=self.logger
        )
        self.remote_write = RemoteWriteClient(logger=self.logger)
        self.schedulers: Dict[str, ProbeScheduler] = {
            name: ProbeScheduler(
                name=name,
                config=org_config,
                engine=self.engine,
                remote_write=self.remote_write,
                endpoint=self.endpoint,
                logger=self.logger,
                dry_run=dry_run
            )
            for name, org_config in self.config
        }
        self.supervisor = Supervisor(
            self.logger,
            remote_write=None if dry_run else self.remote_write,
            endpoint=self.endpoint
        )
        self.logger.info(f"Application initialized with {len(self.schedulers)} organisations")

    def _load_config(self) -> ProbeConfig:
        """
        Load and validate configuration.

        Raises:
            SystemExit: If configuration is missing or invalid
        """
        try:
            self.logger.info(f"Loading configuration from {self.config_path}")
            config = ConfigLoader.load_from_file(self.config_path)
            self.logger.info("Configuration loaded successfully")
            return config

        except FileNotFoundError:
            self.logger.error(f"Configuration file not found: {self.config_path}")
            sys.exit(1)

        except ConfigError as e:
            self.logger.error(f"Failed to load configuration: {e}")
            sys.exit(1)

    async def run_once(self) -> None:
        """Run a single cycle for every organisation concurrently."""
        await asyncio.gather(*(s.run_cycle() for s in self.schedulers.values()))

    async def run_forever(self) -> None:
        """Run supervised loops until cancelled by SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()
        main_task = asyncio.current_task()
        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, self._signal_handler, signum, main_task)

        tasks: List[asyncio.Task] = [
            asyncio.create_task(
                self.supervisor.run(name, scheduler.run, scheduler.config.organisation_id),
                name=f"probe-loop-{name}"
            )
            for name, scheduler in self.schedulers.items()
        ]

        try:
            if tasks:
                await asyncio.gather(*tasks)
            else:
                self.logger.warning("No organisations configured, idling")
                await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.logger.info("Shutting down probe loops")
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            for signum in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(signum)
            self.logger.info("Stopped")

    def _signal_handler(self, signum: int, task: Optional[asyncio.Task]) -> None:
        signal_name = signal.Signals(signum).name
        self.logger.info(f"Received {signal_name}, initiating graceful shutdown...")
        if task is not None:
            task.cancel()


def main():
    """
    CLI entry point.

    Parses command-line arguments and starts the prober.
    """
    parser = argparse.ArgumentParser(
        description='Synthetic HTTP(S) endpoint prober with Prometheus remote write',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Probe forever using config.yml (or $CONFIG_FILE)
  oxybox

  # Probe every target once and exit
  oxybox --run-once

  # Print the series instead of pushing them
  oxybox --run-once --dry-run --config /path/to/config.yml
        """
    )

    parser.add_argument(
        '--config',
        default=Settings.config_file(),
        help='Path to configuration file (default: config.yml or CONFIG_FILE env var)'
    )

    parser.add_argument(
        '--run-once',
        action='store_true',
        help='Run one probing cycle per organisation and exit'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Log encoded series instead of pushing them'
    )

    parser.add_argument(
        '--log-level',
        default=Settings.log_level(),
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO or LOG_LEVEL env var)'
    )

    args = parser.parse_args()

    try:
        app = OxyboxApp(
            config_path=args.config,
            dry_run=args.dry_run,
            log_level=args.log_level
        )
    except ValueError as e:
        logging.error(f"Application startup failed: {e}")
        sys.exit(1)

    if args.run_once:
        asyncio.run(app.run_once())
    else:
        try:
            asyncio.run(app.run_forever())
        except KeyboardInterrupt:
            pass


if __name__ == '__main__':
    main()
