#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

import logging
import pytest

from sqlalchemy import event

import cquery.cache
import cquery.db
import cquery.db.orm as orm
from cquery.config import CONFIG as C
from cquery.util import init_decimal_context

from .fake import (
    FakeChain,
    FakeTimer,
)

log = logging.getLogger(__name__)


def pytest_configure(config):
    logging.basicConfig(level=C["LOG_LEVEL"], format=C["LOG_FORMAT"], datefmt=C["LOG_DATE_FORMAT"])
    init_decimal_context()


@pytest.fixture(scope="session")
def c() -> cquery.cache.Cache:
    cache = cquery.cache.Cache_Redis(
        host=C["REDIS_HOST"],
        port=C["REDIS_PORT"],
        password=C["REDIS_PASSWORD"],
        db=C["REDIS_DATABASE"],
        prefix="cquery_test:",
    )

    try:
        cache.ping()
    except Exception as e:
        pytest.skip(f"Redis is not available ({e})")

    return cache


@pytest.fixture()
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture()
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture()
def dbm() -> cquery.db.FusionSQL:
    """
    In-memory SQlite database for testing, created through the alembic migrations
    """
    db = cquery.db.FusionSQL(
        conn="sqlite:///:memory:",
        verbose=C["DB_DEBUG"],
    )

    # Note: SQlite doesn't have the concept of schemata as found in postgres.
    #       However, we can work around it by attaching another external database.
    @event.listens_for(db.engine, "connect")
    def schema_attach(dbapi_connection, connection_record) -> None:
        dbapi_connection.execute(f"ATTACH DATABASE ':memory:' AS {orm.Base.metadata.schema}")

    cquery.db.upgrade_schema(db)

    yield db

    db.dispose()
