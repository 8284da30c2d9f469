#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import (
    Any,
    Mapping,
)

from .base import (
    Cache,
    Cache_Dummy,
)
from .memory import Cache_Memory
from .redis import Cache_Redis


def build_cache(config: Mapping[str, Any]) -> Cache:
    """
    Create the cache service selected by ``CACHE_BACKEND``

    :param config: configuration mapping
    :return:
    """
    backend = str(config["CACHE_BACKEND"]).lower()

    if backend == "redis":
        return Cache_Redis(
            host=config["REDIS_HOST"],
            port=config["REDIS_PORT"],
            password=config["REDIS_PASSWORD"],
            db=config["REDIS_DATABASE"],
        )
    elif backend == "memory":
        return Cache_Memory()
    elif backend in ("none", "dummy", ""):
        return Cache_Dummy()
    else:
        raise ValueError(f"Unknown cache backend '{backend}'")
