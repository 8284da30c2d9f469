#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from .base import (
    Base,
    BaseModel,
)
from .chain import (
    Block,
    Deploy,
)
from .state import State
