"""Verification Test: Chaos Monkey - sampling while processes die.

Processes can exit at any point between enumeration, the CPU/memory reads
and the command-line lookup. Sampling must never raise because of that;
vanished processes are dropped or keep an empty command line.
"""

import multiprocessing
import random
import threading
import time

import pytest

from hostwatch.app import Agent
from hostwatch.config import Config
from hostwatch.models import Metrics
from hostwatch.sampler import Sampler


def dummy_worker(duration: float = 60.0) -> None:
    """A dummy worker process that sleeps for a given duration."""
    try:
        time.sleep(duration)
    except (KeyboardInterrupt, SystemExit):
        pass


def busy_worker(duration: float = 5.0) -> None:
    """A worker that keeps one core busy for a given duration."""
    deadline = time.monotonic() + duration
    while time.monotonic() < deadline:
        pass


class RecordingNotifier:
    """Counts alerts without touching the network."""

    def __init__(self):
        self.sent = 0

    def notify(self, metrics, cluster_id):
        self.sent += 1
        return True


def spawn(target, count, duration):
    processes = []
    for _ in range(count):
        p = multiprocessing.Process(target=target, args=(duration,))
        p.start()
        processes.append(p)
    return processes


def cleanup(processes):
    for p in processes:
        if p.is_alive():
            p.terminate()
    for p in processes:
        p.join(timeout=1.0)


class TestChaosMonkey:
    """Chaos Monkey verification suite tests."""

    def test_sampler_survives_process_termination(self):
        """
        Test that sampling doesn't fail when processes die between samples.

        The first sample caches Process objects for the children; killing
        half of them before the second sample exercises NoSuchProcess paths.
        """
        processes = spawn(dummy_worker, 30, 60.0)
        sampler = Sampler(cpu_interval=0.1)

        try:
            sampler.collect()

            for p in random.sample(processes, 15):
                p.terminate()
                time.sleep(0.02)

            for _ in range(3):
                metrics = sampler.collect()
                assert isinstance(metrics, Metrics)
                assert len(metrics.processes) <= 5
        finally:
            cleanup(processes)

    def test_terminated_process_is_not_ranked(self):
        """Test a reaped child no longer appears among collected processes."""
        p = multiprocessing.Process(target=dummy_worker, args=(60.0,))
        p.start()
        time.sleep(0.1)
        p.terminate()
        p.join(timeout=1.0)

        try:
            processes = Sampler().collect_processes()
        except Exception as e:
            pytest.fail(f"collect_processes raised an exception: {e}")

        assert p.pid not in {proc.pid for proc in processes}

    def test_zombie_process_handling(self):
        """Test sampling tolerates an exited but unreaped child."""
        p = multiprocessing.Process(target=dummy_worker, args=(0.1,))
        p.start()
        time.sleep(0.3)

        try:
            metrics = Sampler(cpu_interval=0.1).collect()
            assert isinstance(metrics.processes, tuple)
        finally:
            p.join(timeout=1.0)

    def test_busy_children_lead_the_ranking(self):
        """Test a single sample on new processes ranks CPU-bound children first."""
        busy = spawn(busy_worker, 2, 5.0)
        idle = spawn(dummy_worker, 5, 30.0)

        try:
            time.sleep(0.3)
            metrics = Sampler().collect()

            top_pids = {proc.pid for proc in metrics.processes}
            assert top_pids & {p.pid for p in busy}
            assert metrics.processes[0].cpu_percent > 0.0
        finally:
            cleanup(busy + idle)

    def test_agent_keeps_cycling_during_chaos(self):
        """Test the agent loop keeps running while processes churn."""
        config = Config(
            cluster_id="chaos",
            webhook_url="https://example.com/hook",
            threshold=-1.0,  # Alert every cycle
            interval=0.05,
        )
        notifier = RecordingNotifier()
        agent = Agent(config, sampler=Sampler(cpu_interval=0.1), notifier=notifier)
        runner = threading.Thread(target=agent.run, daemon=True)
        processes = []

        try:
            runner.start()
            start_time = time.time()
            while time.time() - start_time < 3.0:
                processes.extend(spawn(dummy_worker, 3, 10.0))
                alive = [p for p in processes if p.is_alive()]
                for p in random.sample(alive, min(2, len(alive))):
                    p.terminate()
                time.sleep(0.1)

            assert runner.is_alive(), "Agent loop died during churn"
        finally:
            agent.stop()
            runner.join(timeout=5.0)
            cleanup(processes)

        assert agent.cycles >= 5
        assert notifier.sent == agent.cycles
