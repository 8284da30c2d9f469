#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import (
    Iterator,
    Sequence,
    TypeVar,
)

import logging
import time

log = logging.getLogger(__name__)

T = TypeVar("T")


def timeit(func: callable) -> callable:
    """
    Decorator for measuring a function's running time

    :param func: function
    :return:
    """
    def measure_time(*args, **kwargs):
        start_time = time.time()
        result = func(*args, **kwargs)
        elapsed = time.time() - start_time
        log.info(f"Processing time of '{func.__qualname__}()': {elapsed:.4f} seconds.")
        return result

    return measure_time


def batched(a: Sequence[T], size: int = 8) -> Iterator[Sequence[T]]:
    """
    Yield successive evenly-sized chunks from a list

    :param a: source list
    :param size: chunk size
    :return:
    """
    assert size > 0

    for i in range(0, len(a), size):
        yield a[i:i + size]
