#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import (
    Any,
    Mapping,
    Optional,
)

import os
import logging

from dataclasses import dataclass

from cquery.exceptions import ConfigurationError


DEFAULT = {
    # Logging settings
    "LOG_LEVEL": os.getenv("LOG_LEVEL", logging.INFO),
    "LOG_FORMAT": "%(asctime)s.%(msecs)04d %(levelname)-5s [%(threadName)-10s %(process)5d] %(name)s: %(message)s",
    "LOG_DATE_FORMAT": "%H:%M:%S",

    # Database settings
    "DB_DRIVER": "postgresql",
    "DB_HOST": os.getenv("DB_HOST", "localhost"),
    "DB_PORT": os.getenv("DB_PORT", 5432),
    "DB_USERNAME": os.getenv("DB_USERNAME", "root"),
    "DB_PASSWORD": os.getenv("DB_PASSWORD", "password"),
    "DB_DATABASE": os.getenv("DB_DATABASE", "debug"),
    "DB_SCHEMA": os.getenv("DB_SCHEMA", "public"),

    "DB_DEBUG": False,

    # Cache settings ("memory", "redis" or "none")
    "CACHE_BACKEND": os.getenv("CACHE_BACKEND", "memory"),
    "CACHE_TTL": os.getenv("CACHE_TTL", 3600),

    # Redis cache settings
    "REDIS_HOST": os.getenv("REDIS_HOST", "localhost"),
    "REDIS_PORT": os.getenv("REDIS_PORT", 6379),
    "REDIS_PASSWORD": os.getenv("REDIS_PASSWORD", "password"),
    "REDIS_DATABASE": os.getenv("REDIS_DATABASE", 0),

    # Casper node RPC url
    "API_URL": os.getenv("RPC_URL"),
    "RPC_TIMEOUT": os.getenv("RPC_TIMEOUT", 30),
    "RPC_RETRIES": os.getenv("RPC_RETRIES", 5),
    "RPC_MAX_DELAY": os.getenv("RPC_MAX_DELAY", 60),

    # Ingestion settings
    "LIMIT_BULK_INSERT": os.getenv("LIMIT_BULK_INSERT", 100),
    "BASE_RANDOM_THROTTLE_NUMBER": os.getenv("BASE_RANDOM_THROTTLE_NUMBER", 100),
    "LOOP": os.getenv("LOOP", 0),

    "PID_FILE": os.getenv("PID_FILE", "cquery.pid"),
}

CONFIG = dict(DEFAULT)


@dataclass(frozen=True)
class IngestionConfig(object):
    """
    Immutable run parameters of the ingestion pipeline.

    Attributes:
        limit_bulk_insert: batch ceiling, max number of records per persistence call
            (also the number of blocks collected before a flush)
        base_random_throttle_number: throttle base in milliseconds, delays are drawn from [0, base + 1)
        loop: poll interval in seconds, 0 runs the pipeline only once
    """
    limit_bulk_insert: int = 100
    base_random_throttle_number: int = 100
    loop: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.limit_bulk_insert, int) or self.limit_bulk_insert <= 0:
            raise ConfigurationError(f"Bulk insert limit must be a positive integer (got {self.limit_bulk_insert!r})")
        if not isinstance(self.base_random_throttle_number, int) or self.base_random_throttle_number < 0:
            raise ConfigurationError(f"Throttle base must be a non-negative integer (got {self.base_random_throttle_number!r})")
        if not isinstance(self.loop, int) or self.loop < 0:
            raise ConfigurationError(f"Poll interval must be a non-negative integer (got {self.loop!r})")

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **overrides: Optional[int]) -> "IngestionConfig":
        """
        Build the run parameters from a ``CONFIG`` like mapping.

        Overrides that are ``None`` are ignored (e.g. unset command line flags).

        :param config: configuration mapping
        :param overrides: explicit values for ``limit_bulk_insert``, ``base_random_throttle_number`` or ``loop``
        :return:
        """
        values = {
            "limit_bulk_insert": config["LIMIT_BULK_INSERT"],
            "base_random_throttle_number": config["BASE_RANDOM_THROTTLE_NUMBER"],
            "loop": config["LOOP"],
        }
        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            values = {k: int(v) for k, v in values.items()}
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid ingestion setting: {e}") from e

        return cls(**values)
