#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
)
from sqlalchemy.orm import declarative_base

from cquery.config import CONFIG as C

Base = declarative_base(
    metadata=MetaData(
        schema=C["DB_SCHEMA"],
    ),
)


class BaseModel(object):
    id = Column(Integer, primary_key=True, unique=True, autoincrement=True)
