#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import (
    Any,
    Optional,
    Union,
)

import abc
import logging

log = logging.getLogger(__name__)

TKey = Union[bytes, str]


class Cache(abc.ABC):
    """
    Thin abstraction over the cache service holding already fetched node data
    (e.g. normalized deploys), so a re-run after an aborted run does not need to
    request them from the node again.
    """

    def __contains__(self, key: TKey) -> bool:
        return self.get(key) is not None

    @abc.abstractmethod
    def set(self, name: TKey, value: Any, ttl: Optional[int] = None) -> Any:
        """
        Set the value at key ``name`` to ``value``

        :param name: key
        :param value: any picklable object
        :param ttl: sets an expire flag on key ``name`` for ``ttl`` seconds
        :return:
        """
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, name: TKey) -> Any:
        """
        Return the value at key ``name``, or None if the key doesn't exist (or expired)

        :param name: key
        :return:
        """
        raise NotImplementedError

    @abc.abstractmethod
    def remove(self, name: TKey) -> Any:
        raise NotImplementedError

    @abc.abstractmethod
    def ping(self) -> Any:
        """
        Ping the underlying cache service, raises if it is unavailable

        :return:
        """
        raise NotImplementedError

    @abc.abstractmethod
    def flush(self) -> Any:
        raise NotImplementedError


class Cache_Dummy(Cache):
    """
    Cache service that never stores anything
    """

    def __init__(self, *args, **kwargs) -> None:
        pass

    def set(self, name: TKey, value: Any, ttl: Optional[int] = None) -> Any:
        return True

    def get(self, name: TKey) -> Any:
        return None

    def remove(self, name: TKey) -> Any:
        return True

    def ping(self) -> Any:
        return True

    def flush(self) -> Any:
        return True
