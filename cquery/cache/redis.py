#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import (
    Any,
    Optional,
)

import pickle
import redis

from .base import (
    Cache,
    TKey,
)


class Cache_Redis(Cache):
    """
    Simple wrapper around a redis instance

    Note: Currently uses ``pickle`` to convert any python value/object to bytes
    Note: Keys are namespaced with ``prefix`` as the redis database may be shared
    """

    def __init__(self, host: str, port: int, password: Optional[str], db: int, prefix: str = "cquery:") -> None:
        self._prefix = prefix
        self._redis = redis.Redis(
            host=host,
            port=int(port),
            password=password,
            db=int(db),
        )

    def _key(self, name: TKey) -> TKey:
        if isinstance(name, bytes):
            return self._prefix.encode("utf-8") + name
        return f"{self._prefix}{name}"

    def set(self, name: TKey, value: Any, ttl: Optional[int] = None) -> Any:
        self._redis.set(self._key(name), pickle.dumps(value, protocol=5), ex=ttl)

    def get(self, name: TKey) -> Any:
        raw = self._redis.get(self._key(name))
        if raw is None:
            return None
        return pickle.loads(raw)

    def remove(self, name: TKey) -> Any:
        self._redis.delete(self._key(name))

    def ping(self) -> Any:
        self._redis.ping()

    def flush(self) -> Any:
        # only remove our own keys
        for key in self._redis.scan_iter(match=f"{self._prefix}*"):
            self._redis.delete(key)
