#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import Optional

import abc
import random

from cquery.exceptions import ConfigurationError


class ThrottlePolicy(abc.ABC):
    """
    Pacing between successive requests to the node

    Spreads requests out over time to avoid bursty load, this is not a correctness mechanism.
    """

    @abc.abstractmethod
    def next_delay(self) -> float:
        """
        Delay before the next request in milliseconds

        :return:
        """
        raise NotImplementedError

    def next_delay_seconds(self) -> float:
        return self.next_delay() / 1000.0


class RandomThrottle(ThrottlePolicy):
    """
    Uniformly distributed random delay in [0, base + 1) milliseconds
    """

    def __init__(self, base: int, rng: Optional[random.Random] = None) -> None:
        """
        :param base: non-negative throttle base
        :param rng: random number generator (seeded for reproducible tests)
        """
        if isinstance(base, bool) or not isinstance(base, int) or base < 0:
            raise ConfigurationError(f"Throttle base must be a non-negative integer (got {base!r})")

        self.base = base
        self._random = rng if rng is not None else random.Random()

    def next_delay(self) -> float:
        # random() is in [0, 1), hence the upper bound is exclusive
        return self._random.random() * (self.base + 1)

    def __repr__(self) -> str:
        return f"RandomThrottle(base={self.base})"


class NoThrottle(ThrottlePolicy):
    """
    No delay at all
    """

    def next_delay(self) -> float:
        return 0.0

    def __repr__(self) -> str:
        return "NoThrottle()"
