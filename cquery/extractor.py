#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
)

import logging
import time

from decimal import (
    Decimal,
    InvalidOperation,
)

import cquery.cache
from cquery.exceptions import (
    DeployFetchError,
    RpcError,
)
from cquery.rpc import (
    RPCClient,
    parse_timestamp,
)
from cquery.throttle import (
    NoThrottle,
    ThrottlePolicy,
)
from cquery.types import (
    BlockRecord,
    DeployRecord,
)
from cquery.util import to_decimal

log = logging.getLogger(__name__)


def _unwrap(item: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """
    Split a single key enum value, e.g. {'Transfer': {...}} -> ('Transfer', {...})

    :param item: enum like dict
    :return:
    """
    if not isinstance(item, dict) or len(item) != 1:
        raise ValueError(f"Expected a single variant, got {item!r}")
    kind, body = next(iter(item.items()))
    return kind, body or {}


def _args(body: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map runtime arguments to their parsed values

    Example:
    [['amount', {'cl_type': 'U512', 'bytes': '0400f90295', 'parsed': '2500000000'}]] -> {'amount': '2500000000'}

    :param body: executable deploy item
    :return:
    """
    args = {}
    for entry in body.get("args") or []:
        name, value = entry
        args[name] = value.get("parsed") if isinstance(value, dict) else value
    return args


def _amount(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        return None
    try:
        return to_decimal(value)
    except InvalidOperation:
        return None


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _target(value: Any) -> Optional[str]:
    """
    Transfer target as text

    Example:
    {'Account': 'account-hash-cd..cd'} -> 'account-hash-cd..cd'

    :param value: parsed public key, account hash, uref or key
    :return:
    """
    if isinstance(value, dict) and len(value) == 1:
        value = next(iter(value.values()))
    return _text(value)


class DeployExtractor(object):
    """
    Resolves the deploys referenced by a block

    Responsible for:
    - fetch each referenced deploy (deploy hashes first, then transfer hashes)
    - normalize the deploy and its execution result into a ``DeployRecord``
    - pace requests against the node

    A block is all-or-nothing: if a single deploy cannot be resolved, the whole block fails
    with a ``DeployFetchError``.

    Normalized deploys are kept in the cache until their block has been persisted (see ``evict()``),
    so a re-run after an aborted run does not request them again.
    """

    def __init__(
        self,
        rpc: RPCClient,
        cache: Optional[cquery.cache.Cache] = None,
        throttle: Optional[ThrottlePolicy] = None,
        cache_ttl: Optional[int] = None,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        """
        :param rpc: node capability
        :param cache: cache service for normalized deploys
        :param throttle: delay policy between deploy requests
        :param cache_ttl: expiry of cached deploys in seconds
        :param sleep: sleep function (seconds)
        """
        self._rpc = rpc
        self._cache = cache if cache is not None else cquery.cache.Cache_Dummy()
        self._throttle = throttle if throttle is not None else NoThrottle()
        self._cache_ttl = cache_ttl
        self._sleep = sleep

    @staticmethod
    def _key(deploy_hash: str) -> str:
        return f"_deploy_{deploy_hash}"

    def extract(self, block: BlockRecord) -> List[DeployRecord]:
        """
        Fetch and normalize all deploys of a block

        :param block: fetched block
        :return: deploys in the order referenced by the block
        """
        deploys = []
        fetched = 0

        for deploy_hash in block.all_deploy_hashes:
            key = self._key(deploy_hash)

            record = self._cache.get(key)
            if record is not None and record.block_hash == block.hash:
                deploys.append(record)
                continue

            if fetched > 0:
                self._sleep(self._throttle.next_delay_seconds())
            fetched += 1

            try:
                raw = self._rpc.get_deploy(deploy_hash)
            except RpcError as e:
                raise DeployFetchError(
                    f"Failed to fetch deploy {deploy_hash} of block {block.height}: {e}",
                    height=block.height,
                    deploy_hash=deploy_hash,
                ) from e

            record = self.normalize(raw, block, deploy_hash)
            self._cache.set(key, record, ttl=self._cache_ttl)
            deploys.append(record)

        if fetched > 0:
            log.debug(f"Extracted {len(deploys)} deploys from block {block.height} ({fetched} requests)")

        return deploys

    def evict(self, deploys: Iterable[DeployRecord]) -> None:
        """
        Drop persisted deploys from the cache

        :param deploys: persisted deploys
        :return:
        """
        for deploy in deploys:
            self._cache.remove(self._key(deploy.hash))

    @staticmethod
    def normalize(raw: dict, block: BlockRecord, deploy_hash: str) -> DeployRecord:
        """
        Convert an ``info_get_deploy`` result into a ``DeployRecord``

        :param raw: raw deploy body
        :param block: block that includes the deploy
        :param deploy_hash: requested deploy hash
        :return:
        """
        try:
            deploy = raw["deploy"]
            header = deploy["header"]

            if deploy["hash"] != deploy_hash:
                raise DeployFetchError(
                    f"Requested deploy {deploy_hash}, but received deploy {deploy['hash']}",
                    height=block.height,
                    deploy_hash=deploy_hash,
                )

            # only the execution result of the including block is relevant
            results = raw.get("execution_results") or []
            execution = next((r for r in results if r.get("block_hash") == block.hash), None)
            if execution is None:
                raise DeployFetchError(
                    f"Deploy {deploy_hash} has no execution result for block {block.height}",
                    height=block.height,
                    deploy_hash=deploy_hash,
                )

            outcome, effect = _unwrap(execution["result"])
            success = outcome == "Success"

            kind, session = _unwrap(deploy["session"])
            session_args = _args(session)
            is_transfer = kind == "Transfer"

            _, payment = _unwrap(deploy["payment"])
            payment_args = _args(payment)

            gas_price = header.get("gas_price")

            return DeployRecord(
                hash=deploy_hash,
                block_height=block.height,
                block_hash=block.hash,
                account=header["account"],
                timestamp=parse_timestamp(header["timestamp"]),
                success=success,
                cost=to_decimal(effect["cost"]),
                error_message=None if success else _text(effect.get("error_message")),
                kind=kind,
                is_transfer=is_transfer,
                payment_amount=_amount(payment_args.get("amount")),
                transfer_amount=_amount(session_args.get("amount")) if is_transfer else None,
                transfer_target=_target(session_args.get("target")) if is_transfer else None,
                contract_hash=_text(session.get("hash")),
                contract_name=_text(session.get("name")),
                entry_point=_text(session.get("entry_point")),
                chain_name=_text(header.get("chain_name")),
                gas_price=int(gas_price) if gas_price is not None else None,
                ttl=_text(header.get("ttl")),
            )

        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise DeployFetchError(
                f"Invalid deploy {deploy_hash} of block {block.height}: {e}",
                height=block.height,
                deploy_hash=deploy_hash,
            ) from e
