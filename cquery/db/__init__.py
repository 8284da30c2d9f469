#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from .misc import (
    build_insert_ignore,
    build_url,
)
from .pgsql import FusionSQL
from .repository import (
    BlockRepository,
    DeployRepository,
    transaction,
)
from .migrate import upgrade_schema
