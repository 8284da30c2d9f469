#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import Optional

import logging

from pathlib import Path

from alembic import command
from alembic.config import Config

from .pgsql import FusionSQL

log = logging.getLogger(__name__)

SCRIPT_LOCATION = Path(__file__).resolve().parents[2] / "alembic"


def upgrade_schema(db: FusionSQL, revision: str = "head", script_location: Optional[Path] = None) -> None:
    """
    Bring the database schema up to date by running all pending alembic migrations.

    Note: Part of the process bootstrap, the ingestion pipeline assumes an up-to-date schema

    :param db: database service
    :param revision: target revision
    :param script_location: alembic migration environment
    :return:
    """
    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(script_location or SCRIPT_LOCATION))

    log.info(f"Upgrading database schema to '{revision}'")

    # share the connection with the migration environment (see alembic/env.py)
    with db.engine.begin() as connection:
        alembic_cfg.attributes["connection"] = connection
        command.upgrade(alembic_cfg, revision)
