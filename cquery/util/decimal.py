#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import (
    Optional,
    Union,
)

import logging

from decimal import (
    Context,
    Decimal,
    ROUND_HALF_UP,
    setcontext,
    Clamped,
    DivisionByZero,
    FloatOperation,
    InvalidOperation,
    Overflow,
    Subnormal,
    Underflow,
)

log = logging.getLogger(__name__)


def init_decimal_context() -> None:
    """
    Configure the decimal module context

    Note: Needs to be called from every thread
    """
    setcontext(
        Context(
            prec=78,
            rounding=ROUND_HALF_UP,
            traps=[
                Clamped,
                DivisionByZero,
                FloatOperation,
                # Inexact,
                InvalidOperation,
                Overflow,
                # Rounded,
                Subnormal,
                Underflow
            ],
            flags=[],
        )
    )


def to_decimal(value: Union[None, int, str, Decimal]) -> Optional[Decimal]:
    """
    Convert a U512 motes value (serialized as decimal string by the node) to a decimal number

    :param value: integer or string value of a motes amount
    :return:
    """
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, str, Decimal)):
        raise TypeError(f"Unsupported motes value {value!r}")
    return Decimal(value)
