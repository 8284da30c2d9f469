#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import (
    Any,
    Callable,
    Dict,
    Optional,
    Tuple,
)

import time

from .base import (
    Cache,
    TKey,
)


class Cache_Memory(Cache):
    """
    Simple in-memory cache service (single process only)

    Expired entries are dropped lazily on access.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._cache: Dict[TKey, Tuple[Any, Optional[float]]] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def set(self, name: TKey, value: Any, ttl: Optional[int] = None) -> Any:
        expires = self._clock() + ttl if ttl is not None else None
        self._cache[name] = (value, expires)

    def get(self, name: TKey) -> Any:
        try:
            value, expires = self._cache[name]
        except KeyError:
            return None

        if expires is not None and expires <= self._clock():
            del self._cache[name]
            return None

        return value

    def remove(self, name: TKey) -> Any:
        self._cache.pop(name, None)

    def ping(self) -> Any:
        return True

    def flush(self) -> Any:
        self._cache = {}
