"""Tests for the in-process sweep scheduler."""

from unittest.mock import MagicMock, patch

import pytest

from sisyphus.config import AppConfig, SchedulerConfig
from sisyphus.scheduler import run_scheduler_loop, start_scheduler_thread
from sisyphus.sweep import SweepReport


def test_scheduler_sweeps_each_tick() -> None:
    """Each tick runs one sweep with the configured fan-out, then sleeps."""
    config = AppConfig(scheduler=SchedulerConfig(max_workers=3))
    credentials = MagicMock()
    with patch("sisyphus.scheduler.run_sweep", return_value=SweepReport()) as sweep:
        with patch("sisyphus.scheduler.time.sleep", side_effect=StopIteration("one tick")) as sleep:
            with pytest.raises(StopIteration, match="one tick"):
                run_scheduler_loop(config, credentials, interval_seconds=90)
    sweep.assert_called_once_with(credentials, config.queue, max_workers=3)
    sleep.assert_called_once_with(90)


def test_scheduler_survives_sweep_errors() -> None:
    """A failing sweep is logged and the loop keeps going."""
    config = AppConfig()
    with patch("sisyphus.scheduler.run_sweep", side_effect=[RuntimeError("boom"), SweepReport()]) as sweep:
        with patch("sisyphus.scheduler.time.sleep", side_effect=[None, StopIteration("two ticks")]):
            with pytest.raises(StopIteration, match="two ticks"):
                run_scheduler_loop(config, MagicMock(), interval_seconds=60)
    assert sweep.call_count == 2


def test_start_scheduler_thread_is_daemon() -> None:
    """The loop runs in a daemon thread with the configured interval."""
    config = AppConfig(scheduler=SchedulerConfig(interval_seconds=120))
    with patch("sisyphus.scheduler.threading.Thread") as thread_cls:
        start_scheduler_thread(config, MagicMock())
    kwargs = thread_cls.call_args[1]
    assert kwargs["daemon"] is True
    assert kwargs["kwargs"] == {"interval_seconds": 120}
    thread_cls.return_value.start.assert_called_once()
