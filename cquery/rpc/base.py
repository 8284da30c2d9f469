#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

import abc

from cquery.types import BlockRecord


class RPCClient(abc.ABC):
    """
    Chain node capability consumed by the ingestion pipeline

    Implementations are expected to:
    - raise ``RpcTransportError`` if the node cannot be reached, times out or returns garbage
    - raise ``RpcNotFoundError`` if the requested block/deploy is (not yet) known to the node
    """

    @abc.abstractmethod
    def get_chain_tip_height(self) -> int:
        """
        Height of the most recent block known to the node

        :return:
        """
        raise NotImplementedError

    @abc.abstractmethod
    def get_block(self, height: int) -> BlockRecord:
        """
        Fetch the block at ``height``

        :param height: block height
        :return:
        """
        raise NotImplementedError

    @abc.abstractmethod
    def get_deploy(self, deploy_hash: str) -> dict:
        """
        Fetch the raw deploy body (deploy and its execution results) as returned by the node

        Example (shortened):
        {
            'deploy': {
                'hash': 'a4f5...',
                'header': {'account': '01d9...', 'timestamp': '2021-04-01T12:00:00.000Z', ...},
                'payment': {'ModuleBytes': {'module_bytes': '', 'args': [['amount', {...}]]}},
                'session': {'Transfer': {'args': [['amount', {...}], ['target', {...}]]}},
                'approvals': [...],
            },
            'execution_results': [
                {'block_hash': '5c61...', 'result': {'Success': {'cost': '100000000', ...}}},
            ],
        }

        :param deploy_hash: deploy hash
        :return:
        """
        raise NotImplementedError
