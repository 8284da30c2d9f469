#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import Optional


class CQueryError(Exception):
    """
    Base class of all errors raised by CQuery
    """


class ConfigurationError(CQueryError):
    """
    Invalid or inconsistent run parameters
    """


class InvalidRpcUrlError(ConfigurationError):
    """
    Malformed node endpoint, expected format: http(s)://[url]
    """


class BatchTooLargeError(ConfigurationError):

    def __init__(self, size: int, ceiling: int) -> None:
        super().__init__(f"Batch of {size} records exceeds the bulk insert limit of {ceiling}")
        self.size = size
        self.ceiling = ceiling


class PipelineBusyError(CQueryError):
    """
    Another walk is already running on the same pipeline
    """


class IngestionError(CQueryError):
    """
    Any error that aborts an ingestion run.

    Carries the block height and/or deploy hash that was being processed, if known.
    """

    def __init__(self, message: str, height: Optional[int] = None, deploy_hash: Optional[str] = None) -> None:
        super().__init__(message)
        self.height = height
        self.deploy_hash = deploy_hash


class RpcError(IngestionError):
    pass


class RpcTransportError(RpcError):
    """
    Node unreachable, timeout, HTTP error or malformed response
    """


class RpcNotFoundError(RpcError):
    """
    Requested block or deploy is (not yet) known to the node
    """


class DeployFetchError(IngestionError):
    """
    A deploy referenced by a block could not be resolved
    """


class PersistenceError(IngestionError):
    """
    Store read/write failure
    """
