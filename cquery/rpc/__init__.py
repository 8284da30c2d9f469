#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from .base import RPCClient
from .casper import (
    CasperRPC,
    check_rpc_url,
    parse_block,
    parse_timestamp,
)
