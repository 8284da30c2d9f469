#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)

from .base import (
    Base,
    BaseModel,
)

# Note: Casper hashes are 32 bytes, hex encoded without prefix
# Note: All amounts are stored in motes (U512)


class Block(BaseModel, Base):
    """
    Store block information

    Relationships
    - one-to-many with ``Deploy`` (via height)
    """
    __tablename__ = "block"

    height = Column(Integer, nullable=False, unique=True)
    hash = Column(String(length=64), nullable=False, unique=True)
    timestamp = Column(DateTime, nullable=False)
    era_id = Column(Integer, nullable=False)

    parent_hash = Column(String(length=64))
    state_root_hash = Column(String(length=64))
    proposer = Column(String(length=68))
    protocol_version = Column(String(length=16))

    count_deploys = Column(Integer, nullable=False, default=0)
    count_transfers = Column(Integer, nullable=False, default=0)


class Deploy(BaseModel, Base):
    """
    Store deploy (transaction) information

    Relationships
    - many-to-one with ``Block`` (via block_height)
    """
    __tablename__ = "deploy"
    __table_args__ = (
        Index("ix_deploy_account", "account"),
        Index("ix_deploy_block_height", "block_height"),
    )

    hash = Column(String(length=64), nullable=False, unique=True)
    block_height = Column(Integer, ForeignKey(Block.__table__.c.height), nullable=False)
    block_hash = Column(String(length=64), nullable=False)

    # sender public key
    account = Column(String(length=68), nullable=False)
    timestamp = Column(DateTime, nullable=False)

    # execution result
    success = Column(Boolean, nullable=False)
    cost = Column(Numeric(precision=78, scale=0), nullable=False)
    error_message = Column(Text)

    # payload
    kind = Column(String(length=32))
    is_transfer = Column(Boolean, nullable=False, default=False)
    payment_amount = Column(Numeric(precision=78, scale=0))
    transfer_amount = Column(Numeric(precision=78, scale=0))
    transfer_target = Column(String(length=80))
    contract_hash = Column(String(length=64))
    contract_name = Column(String(length=128))
    entry_point = Column(String(length=128))
    chain_name = Column(String(length=32))
    gas_price = Column(Integer)
    ttl = Column(String(length=16))
