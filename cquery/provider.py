#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import (
    Any,
    cast,
)

import orjson

from web3 import HTTPProvider
from web3.types import (
    RPCEndpoint,
    RPCResponse,
)
from web3._utils.request import make_post_request


class CasperHTTPProvider(HTTPProvider):
    """
    JSON-RPC over HTTP provider for a Casper node.

    Casper methods (e.g. ``chain_get_block``, ``info_get_deploy``) take named parameters,
    hence ``params`` is usually a dict instead of a list.
    """

    def encode_rpc_request(self, method: RPCEndpoint, params: Any) -> bytes:
        """
        Optimised JSON-RPC encoding

        :param method: rpc endpoint
        :param params: method parameters
        :return:
        """
        return orjson.dumps({
            "jsonrpc": "2.0",
            "method": method,
            "params": params if params is not None else [],
            "id": next(self.request_counter),
        })

    def decode_rpc_response(self, raw_response: bytes) -> RPCResponse:
        """
        Optimised JSON-RPC decoding

        This greatly improves JSON-RPC API access speeds, when fetching
        multiple or large responses (e.g. blocks with many deploys).

        See: https://web3py.readthedocs.io/en/stable/troubleshooting.html#making-ethereum-json-rpc-api-access-faster

        :param raw_response: byte encoded rpc response
        :return:
        """
        decoded = orjson.loads(raw_response)
        return cast(RPCResponse, decoded)

    def make_request(self, method: RPCEndpoint, params: Any) -> RPCResponse:
        """
        Plain rpc request. Largely based on 'HTTPProvider.make_request()', without any
        of the ethereum specific retry handling (see ``cquery.middleware``).

        :param method: rpc endpoint
        :param params: method parameters
        :return:
        """
        text = self.encode_rpc_request(method, params)
        self.logger.debug(f"Making request HTTP. URI: {self.endpoint_uri}, Request: {text}")
        raw_response = make_post_request(
            endpoint_uri=self.endpoint_uri,
            data=text,
            **self.get_request_kwargs()
        )
        response = self.decode_rpc_response(raw_response)
        self.logger.debug(f"Getting response HTTP. URI: {self.endpoint_uri}, Request: {text}")
        return response
