#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import (
    Callable,
    List,
    Optional,
)

import abc
import enum
import logging
import signal
import threading
import time

from cquery.pipeline import IngestionPipeline
from cquery.types import (
    IngestionResult,
    IngestionStatus,
)

log = logging.getLogger(__name__)


class SignalContext(object):

    def __init__(self, signals: List[signal.Signals], handler: Callable):
        self._signals = set(signals)
        self._handler = handler
        self._cache = {}

    def __enter__(self):
        # register signal handlers
        for sig in self._signals:
            self._cache[sig] = signal.signal(sig, self._handler)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        # restore default signal handlers
        for k, v in self._cache.items():
            signal.signal(k, v)
        self._cache = {}


class Timer(abc.ABC):
    """
    Clock and interruptible wait used by the scheduler
    """

    @abc.abstractmethod
    def now(self) -> float:
        raise NotImplementedError

    @abc.abstractmethod
    def wait(self, seconds: float) -> bool:
        """
        Suspend for ``seconds`` or until the timer is cancelled

        :param seconds: delay
        :return: True if the wait was cancelled
        """
        raise NotImplementedError

    @abc.abstractmethod
    def cancel(self) -> None:
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def cancelled(self) -> bool:
        raise NotImplementedError


class EventTimer(Timer):
    """
    Wall clock timer based on a ``threading.Event``
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def now(self) -> float:
        return time.monotonic()

    def wait(self, seconds: float) -> bool:
        return self._event.wait(max(0.0, seconds))

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@enum.unique
class SchedulerState(enum.Enum):
    IDLE = 0
    RUNNING = enum.auto()
    SLEEPING = enum.auto()
    FAILED = enum.auto()
    STOPPED = enum.auto()


class Scheduler(object):
    """
    Runs the ingestion pipeline once, or repeatedly on a fixed interval.

    State transitions:
    IDLE -> RUNNING -> SLEEPING (run succeeded) or FAILED (run aborted/crashed) -> RUNNING -> ...
    any state -> STOPPED (``stop()`` or single run finished)

    In looping mode a failed run is reported and the next run is attempted after the interval
    (retry by resumption). In single run mode unexpected errors propagate.
    """

    def __init__(self, pipeline: IngestionPipeline, timer: Optional[Timer] = None) -> None:
        """
        :param pipeline: ingestion pipeline
        :param timer: clock/wait abstraction, defaults to the wall clock
        """
        self._pipeline = pipeline
        self._timer = timer if timer is not None else EventTimer()
        self._state = SchedulerState.IDLE

        self.runs = 0
        self.failures = 0
        self.last_result: Optional[IngestionResult] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    def stop(self) -> None:
        """
        Stop scheduling runs, an active run finishes its current batch first

        :return:
        """
        log.info("Stopping scheduler")
        self._timer.cancel()
        self._pipeline.stop()

    def handle_signal(self, signum, frame) -> None:
        log.critical(f"Received {signal.Signals(signum).name} ({signum}) '{signal.strsignal(signum)}'. Terminating!")
        self.stop()

    def start(self, interval: Optional[int] = None) -> Optional[IngestionResult]:
        """
        Run the pipeline

        :param interval: number of seconds between the end of a run and the start of the next one,
            if None or <= 0 the pipeline runs exactly once
        :return: result of the last run
        """
        if interval is None or interval <= 0:
            try:
                return self._tick(reraise=True)
            finally:
                self._state = SchedulerState.STOPPED

        log.info(f"Starting scheduler (interval {interval}s)")

        while not self._timer.cancelled:
            self._tick(reraise=False)

            log.info(f"Resuming ingestion in {interval}s")
            if self._timer.wait(interval):
                break

        self._state = SchedulerState.STOPPED
        log.info("Terminating scheduler")

        return self.last_result

    def _tick(self, reraise: bool) -> Optional[IngestionResult]:
        self._state = SchedulerState.RUNNING
        self.runs += 1
        current = self._timer.now()

        try:
            result = self._pipeline.run_once()
        except Exception as e:
            self._state = SchedulerState.FAILED
            self.failures += 1
            if reraise:
                raise
            log.critical(f"Encountered unexpected error in run {self.runs}!", exc_info=True)
            self.last_result = IngestionResult(status=IngestionStatus.ABORTED, error=e)
            return self.last_result

        elapsed = self._timer.now() - current
        log.info(f"Executed run {self.runs} in {elapsed:.4f}s")

        self.last_result = result
        if result.ok:
            self._state = SchedulerState.SLEEPING
        else:
            self._state = SchedulerState.FAILED
            self.failures += 1
            log.error(f"Run {self.runs} failed: {result}")

        return result
