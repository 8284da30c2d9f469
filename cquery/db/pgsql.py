#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from . import orm

log = logging.getLogger(__name__)


class FusionSQL(object):

    def __init__(self, conn: str, verbose: bool = False):
        """
        Manages sqlalchemy engine and session factory.

        This is the store handle injected into the pipeline and the repositories.

        Note: This should only be instantiated once per process.

        :param conn: database connection string (postgres in production, sqlite for testing)
        :param verbose: enable sqlalchemy verbosity
        """
        assert isinstance(conn, str)
        assert isinstance(verbose, bool)

        self._engine = create_engine(conn, echo=False, future=True)

        if verbose:
            logging.getLogger("sqlalchemy.engine").setLevel(logging.DEBUG)

        self._session = sessionmaker(
            bind=self._engine,
            autoflush=True,
            expire_on_commit=False,
            future=True,
        )

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def dialect(self) -> str:
        """
        Name of the database dialect (e.g. 'postgresql', 'sqlite')
        """
        return self._engine.dialect.name

    @property
    def session(self):
        """
        Factory session object

        The returned object should be used in a context.

        Usage:

        # closes the session
        with FusionSQL.session() as session:
            session.add(some_object)
            session.commit()

        # auto commits the transaction (or rolls back on error), closes the session
        with FusionSQL.session.begin() as session:
            session.add(some_object)
            session.add(some_other_object)

        """
        return self._session

    @property
    def orm(self):
        """
        Convenience reference to the orm module
        """
        return orm

    def dispose(self) -> None:
        self._engine.dispose()
