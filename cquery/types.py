#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import (
    List,
    Optional,
)

import datetime
import enum

from dataclasses import (
    dataclass,
    field,
)
from decimal import Decimal


@dataclass(frozen=True)
class BlockRecord(object):
    """
    Normalized block as returned by the RPC capability.

    Attributes:
        height: position of the block in the chain, starting at 0
        hash: block hash
        timestamp: block timestamp (naive UTC)
        era_id: era the block belongs to
        deploy_hashes: referenced deploys (non-transfer)
        transfer_hashes: referenced native transfer deploys
    """
    height: int
    hash: str
    timestamp: datetime.datetime
    era_id: int
    parent_hash: Optional[str] = None
    state_root_hash: Optional[str] = None
    proposer: Optional[str] = None
    protocol_version: Optional[str] = None
    deploy_hashes: List[str] = field(default_factory=list)
    transfer_hashes: List[str] = field(default_factory=list)

    @property
    def all_deploy_hashes(self) -> List[str]:
        return list(self.deploy_hashes) + list(self.transfer_hashes)

    def to_mapping(self) -> dict:
        return {
            "height": self.height,
            "hash": self.hash,
            "timestamp": self.timestamp,
            "era_id": self.era_id,
            "parent_hash": self.parent_hash,
            "state_root_hash": self.state_root_hash,
            "proposer": self.proposer,
            "protocol_version": self.protocol_version,
            "count_deploys": len(self.deploy_hashes),
            "count_transfers": len(self.transfer_hashes),
        }


@dataclass(frozen=True)
class DeployRecord(object):
    """
    Normalized deploy, ready to be persisted.

    Note: amounts and cost are in motes
    """
    hash: str
    block_height: int
    block_hash: str
    account: str
    timestamp: datetime.datetime
    success: bool
    cost: Decimal
    error_message: Optional[str] = None
    kind: Optional[str] = None
    is_transfer: bool = False
    payment_amount: Optional[Decimal] = None
    transfer_amount: Optional[Decimal] = None
    transfer_target: Optional[str] = None
    contract_hash: Optional[str] = None
    contract_name: Optional[str] = None
    entry_point: Optional[str] = None
    chain_name: Optional[str] = None
    gas_price: Optional[int] = None
    ttl: Optional[str] = None

    def to_mapping(self) -> dict:
        return {
            "hash": self.hash,
            "block_height": self.block_height,
            "block_hash": self.block_hash,
            "account": self.account,
            "timestamp": self.timestamp,
            "success": self.success,
            "cost": self.cost,
            "error_message": self.error_message,
            "kind": self.kind,
            "is_transfer": self.is_transfer,
            "payment_amount": self.payment_amount,
            "transfer_amount": self.transfer_amount,
            "transfer_target": self.transfer_target,
            "contract_hash": self.contract_hash,
            "contract_name": self.contract_name,
            "entry_point": self.entry_point,
            "chain_name": self.chain_name,
            "gas_price": self.gas_price,
            "ttl": self.ttl,
        }


class IngestionStatus(enum.Enum):
    UNKNOWN = 0
    UP_TO_DATE = enum.auto()
    CAUGHT_UP = enum.auto()
    INTERRUPTED = enum.auto()
    ABORTED = enum.auto()


@dataclass
class IngestionResult(object):
    """
    Summary of a single pipeline run.

    Attributes:
        status: terminal status of the run
        tip_height: chain tip at the start of the run
        start_height: first height of the walk (None if there was nothing to do)
        cursor_before: resume cursor when the run started
        cursor_after: resume cursor when the run ended
        heights_processed: number of heights fetched and extracted (flushed or not)
        blocks_persisted: number of block records written
        deploys_persisted: number of deploy records written
        flushes: number of committed batches
        error: error that aborted the run
        failed_height: height being processed when the run aborted
        failed_deploy: deploy hash being processed when the run aborted
    """
    status: IngestionStatus = IngestionStatus.UNKNOWN
    tip_height: Optional[int] = None
    start_height: Optional[int] = None
    cursor_before: Optional[int] = None
    cursor_after: Optional[int] = None
    heights_processed: int = 0
    blocks_persisted: int = 0
    deploys_persisted: int = 0
    flushes: int = 0
    error: Optional[Exception] = None
    failed_height: Optional[int] = None
    failed_deploy: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (IngestionStatus.UP_TO_DATE, IngestionStatus.CAUGHT_UP, IngestionStatus.INTERRUPTED)

    @property
    def error_kind(self) -> Optional[str]:
        return type(self.error).__name__ if self.error is not None else None

    def __str__(self) -> str:
        s = (
            f"IngestionResult(status={self.status.name} tip={self.tip_height} cursor={self.cursor_before}->{self.cursor_after} "
            f"heights={self.heights_processed} blocks={self.blocks_persisted} deploys={self.deploys_persisted} flushes={self.flushes}"
        )
        if self.error is not None:
            s += f" error={self.error_kind} height={self.failed_height}"
            if self.failed_deploy is not None:
                s += f" deploy={self.failed_deploy}"
            s += f" '{self.error}'"
        return s + ")"
