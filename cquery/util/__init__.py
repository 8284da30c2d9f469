#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from .decimal import (
    init_decimal_context,
    to_decimal,
)
from .misc import (
    batched,
    timeit,
)
