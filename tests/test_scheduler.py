import threading
import time

import pytest

from pss_monitor.scheduler import PollingScheduler


def test_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        PollingScheduler(lambda: None, 0)


def test_start_and_stop_are_idempotent():
    scheduler = PollingScheduler(lambda: None, 60)
    try:
        assert scheduler.start() is True
        assert scheduler.start() is False
        assert scheduler.is_running
    finally:
        assert scheduler.stop() is True
    assert scheduler.stop() is False
    assert not scheduler.is_running


def test_loop_runs_job_repeatedly():
    ran = threading.Event()
    calls = []

    def job():
        calls.append(1)
        if len(calls) >= 2:
            ran.set()

    scheduler = PollingScheduler(job, 0.01)
    scheduler.start()
    try:
        assert ran.wait(2)
    finally:
        scheduler.stop()


def test_overlapping_run_is_skipped():
    started = threading.Event()
    release = threading.Event()
    calls = []

    def job():
        calls.append(1)
        started.set()
        release.wait(2)

    scheduler = PollingScheduler(job, 60)
    worker = threading.Thread(target=scheduler.run_once)
    worker.start()
    assert started.wait(2)
    assert scheduler.sweep_in_progress

    assert scheduler.run_once() is False

    release.set()
    worker.join(2)
    assert calls == [1]
    assert not scheduler.sweep_in_progress


def test_job_errors_do_not_escape():
    def job():
        raise RuntimeError("boom")

    scheduler = PollingScheduler(job, 60)
    assert scheduler.run_once() is True
    assert not scheduler.sweep_in_progress


def test_stop_does_not_interrupt_running_sweep():
    started = threading.Event()
    finished = threading.Event()

    def job():
        started.set()
        time.sleep(0.05)
        finished.set()

    scheduler = PollingScheduler(job, 0.01)
    scheduler.start()
    assert started.wait(2)
    scheduler.stop()

    assert finished.wait(2)
