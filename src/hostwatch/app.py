"""hostwatch - sampling loop and command-line entry point."""

import argparse
import json
import signal
import sys
import threading

import psutil

from hostwatch.alerts import WebhookNotifier
from hostwatch.config import Config, ConfigError, load_config
from hostwatch.logger import get_logger, setup_logger
from hostwatch.models import Metrics
from hostwatch.sampler import Sampler

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_SAMPLE_ERROR = 1
EXIT_CONFIG_ERROR = 2


class Agent:
    """
    Runs sampling cycles until stopped.

    Each cycle samples the host, posts an alert when CPU usage is above the
    configured threshold, then waits ``config.interval`` seconds. A cycle
    whose sampling fails is logged and skipped; the loop keeps going.
    """

    def __init__(
        self,
        config: Config,
        sampler: Sampler | None = None,
        notifier: WebhookNotifier | None = None,
    ) -> None:
        self._config = config
        self._sampler = sampler or Sampler()
        self._notifier = notifier or WebhookNotifier(config.webhook_url, timeout=config.request_timeout)
        self._stop_event = threading.Event()
        self._cycles = 0

    @property
    def config(self) -> Config:
        return self._config

    @property
    def cycles(self) -> int:
        """Number of cycles run so far, including skipped ones."""
        return self._cycles

    def sample(self) -> Metrics:
        """Collect one snapshot. Provider errors propagate."""
        return self._sampler.collect(cluster_id=self._config.cluster_id)

    def run_cycle(self) -> bool:
        """Run one sampling cycle. Returns True if an alert was attempted."""
        self._cycles += 1
        try:
            metrics = self.sample()
        except (psutil.Error, OSError):
            logger.exception("Sampling failed, skipping cycle %d", self._cycles)
            return False
        return self.evaluate(metrics)

    def evaluate(self, metrics: Metrics) -> bool:
        """Alert if CPU usage is strictly above the threshold."""
        if metrics.cpu_percent <= self._config.threshold:
            return False

        logger.warning(
            "CPU usage %.1f%% is above threshold %.1f%%",
            metrics.cpu_percent,
            self._config.threshold,
        )
        self._notifier.notify(metrics, self._config.cluster_id)
        return True

    def run(self, max_cycles: int | None = None) -> None:
        """
        Run cycles until stop() is called or ``max_cycles`` have completed.

        The wait between cycles starts after the previous cycle finishes.
        """
        self._stop_event.clear()
        completed = 0
        while not self._stop_event.is_set():
            self.run_cycle()
            completed += 1
            if max_cycles is not None and completed >= max_cycles:
                break
            self._stop_event.wait(timeout=self._config.interval)

    def stop(self) -> None:
        """Ask the loop to exit after the current cycle."""
        self._stop_event.set()

    def close(self) -> None:
        """Release the notifier's HTTP session."""
        self._notifier.close()


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="hostwatch",
        description="Sample host resource usage and post a webhook alert on high CPU.",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Dotenv file holding CID, WEBHOOK_URL and MAX (default: ./.env if present)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Sample once, print the snapshot as JSON, alert if needed and exit.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file.")
    return parser.parse_args(argv)


def run_once(agent: Agent) -> int:
    """Sample once, print the snapshot as JSON and alert if needed."""
    try:
        metrics = agent.sample()
    except (psutil.Error, OSError):
        logger.exception("Sampling failed")
        return EXIT_SAMPLE_ERROR
    print(json.dumps(metrics.to_dict(), indent=2, ensure_ascii=False))
    agent.evaluate(metrics)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Entry point for the hostwatch agent."""
    args = parse_arguments(argv)
    setup_logger(
        console_level_name="DEBUG" if args.debug else "INFO",
        log_file_path=args.log_file,
    )

    try:
        config = load_config(args.env_file)
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_CONFIG_ERROR

    logger.info(
        "Starting hostwatch for %s (threshold=%.1f%%, interval=%.1fs)",
        config.cluster_id,
        config.threshold,
        config.interval,
    )
    agent = Agent(config)
    try:
        if args.once:
            return run_once(agent)
        signal.signal(signal.SIGTERM, lambda signum, frame: agent.stop())
        try:
            agent.run()
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            agent.stop()
    finally:
        agent.close()
    logger.info("hostwatch stopped after %d cycles", agent.cycles)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
