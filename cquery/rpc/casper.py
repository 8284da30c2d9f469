#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import (
    Any,
    Optional,
)

import datetime
import logging
import re

from requests.exceptions import RequestException

from cquery.exceptions import (
    InvalidRpcUrlError,
    RpcNotFoundError,
    RpcTransportError,
)
from cquery.middleware import http_backoff_retry_request_middleware
from cquery.provider import CasperHTTPProvider
from cquery.types import BlockRecord
from .base import RPCClient

log = logging.getLogger(__name__)

# node error codes for unknown deploys and blocks
NOT_FOUND_CODES = frozenset([-32000, -32001])

RPC_URL_PATTERN = re.compile(r"^https?://.+")


def check_rpc_url(url: Optional[str]) -> str:
    """
    Ensure the node endpoint looks like http(s)://[url]

    :param url: rpc endpoint of the casper node
    :return:
    """
    if not url:
        raise InvalidRpcUrlError(
            "RPC url is not set. Pass --rpc or set the RPC_URL env variable, e.g. http://127.0.0.1:7777/rpc"
        )

    if not RPC_URL_PATTERN.match(url):
        raise InvalidRpcUrlError(
            f"RPC url incorrect ({url!r}). Format: http(s)://[url] this should point directly to the rpc endpoint of your casper node."
        )
    return url


def parse_timestamp(value: str) -> datetime.datetime:
    """
    Convert a node timestamp (e.g. '2021-03-31T15:00:00.000Z') to a naive UTC datetime

    :param value: RFC3339 timestamp
    :return:
    """
    t = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if t.tzinfo is not None:
        t = t.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return t


def parse_block(data: dict) -> BlockRecord:
    """
    Normalize a ``chain_get_block`` block entry

    Example (shortened):
    {
        'hash': '5c61...',
        'header': {'parent_hash': '...', 'state_root_hash': '...', 'timestamp': '2021-04-01T12:00:00.000Z',
                   'era_id': 42, 'height': 1234, 'protocol_version': '1.0.0', ...},
        'body': {'proposer': '01d9...', 'deploy_hashes': [...], 'transfer_hashes': [...]},
        'proofs': [...],
    }

    :param data: block
    :return:
    """
    header = data["header"]
    body = data["body"]

    return BlockRecord(
        height=int(header["height"]),
        hash=data["hash"],
        timestamp=parse_timestamp(header["timestamp"]),
        era_id=int(header["era_id"]),
        parent_hash=header.get("parent_hash"),
        state_root_hash=header.get("state_root_hash"),
        proposer=body.get("proposer"),
        protocol_version=header.get("protocol_version"),
        deploy_hashes=list(body.get("deploy_hashes") or []),
        transfer_hashes=list(body.get("transfer_hashes") or []),
    )


class CasperRPC(RPCClient):
    """
    Casper node JSON-RPC client

    Transient HTTP errors are retried with an exponential backoff before being reported
    as ``RpcTransportError``.
    """

    def __init__(self, provider: CasperHTTPProvider, retries: int = 5, max_delay: int = 60) -> None:
        """
        :param provider: http provider pointing to the rpc endpoint of the node
        :param retries: max number of attempts per request
        :param max_delay: max backoff delay in seconds
        """
        self._provider = provider
        self._make_request = http_backoff_retry_request_middleware(
            make_request=provider.make_request,
            retries=retries,
            max_delay=max_delay,
        )

    @classmethod
    def from_url(cls, endpoint_uri: str, timeout: int = 30, retries: int = 5, max_delay: int = 60) -> "CasperRPC":
        """
        :param endpoint_uri: rpc endpoint, e.g. http://localhost:7777/rpc
        :param timeout: per request timeout in seconds
        :param retries: max number of attempts per request
        :param max_delay: max backoff delay in seconds
        :return:
        """
        check_rpc_url(endpoint_uri)
        provider = CasperHTTPProvider(endpoint_uri=endpoint_uri, request_kwargs={"timeout": int(timeout)})
        return cls(provider=provider, retries=int(retries), max_delay=int(max_delay))

    def _request(self, method: str, params: Any, height: Optional[int] = None, deploy_hash: Optional[str] = None) -> dict:
        """
        Perform a request and unwrap the JSON-RPC envelope

        :param method: rpc endpoint
        :param params: method parameters
        :param height: block height (error reporting)
        :param deploy_hash: deploy hash (error reporting)
        :return: result
        """
        try:
            response = self._make_request(method, params)
        except RequestException as e:
            raise RpcTransportError(f"Request '{method}' failed: {e}", height=height, deploy_hash=deploy_hash) from e
        except ValueError as e:
            # includes orjson.JSONDecodeError
            raise RpcTransportError(f"Request '{method}' returned an invalid response: {e}", height=height, deploy_hash=deploy_hash) from e

        if not isinstance(response, dict):
            raise RpcTransportError(f"Request '{method}' returned an invalid response", height=height, deploy_hash=deploy_hash)

        error = response.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message") if isinstance(error, dict) else error
            if code in NOT_FOUND_CODES:
                raise RpcNotFoundError(f"Request '{method}' failed: {message} ({code})", height=height, deploy_hash=deploy_hash)
            raise RpcTransportError(f"Request '{method}' failed: {message} ({code})", height=height, deploy_hash=deploy_hash)

        result = response.get("result")
        if result is None:
            raise RpcNotFoundError(f"Request '{method}' returned no result", height=height, deploy_hash=deploy_hash)

        return result

    def get_chain_tip_height(self) -> int:
        result = self._request("chain_get_block", [])

        block = result.get("block")
        if block is None:
            raise RpcNotFoundError("Node did not return a latest block")

        try:
            return int(block["header"]["height"])
        except (KeyError, TypeError, ValueError) as e:
            raise RpcTransportError(f"Invalid latest block: {e}") from e

    def get_block(self, height: int) -> BlockRecord:
        result = self._request("chain_get_block", {"block_identifier": {"Height": height}}, height=height)

        block = result.get("block")
        if block is None:
            raise RpcNotFoundError(f"Block {height} not found", height=height)

        try:
            record = parse_block(block)
        except (KeyError, TypeError, ValueError) as e:
            raise RpcTransportError(f"Invalid block {height}: {e}", height=height) from e

        if record.height != height:
            raise RpcTransportError(f"Requested block {height}, but received block {record.height}", height=height)

        log.debug(f"Fetched block {height} ({len(record.all_deploy_hashes)} deploys)")
        return record

    def get_deploy(self, deploy_hash: str) -> dict:
        return self._request("info_get_deploy", {"deploy_hash": deploy_hash}, deploy_hash=deploy_hash)
