#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import (
    Iterable,
    Iterator,
    Optional,
    Sequence,
    Tuple,
    Type,
    Union,
)

import contextlib
import logging

from sqlalchemy import (
    func,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cquery.exceptions import (
    BatchTooLargeError,
    PersistenceError,
)
from cquery.types import (
    BlockRecord,
    DeployRecord,
)
from . import orm
from .misc import build_insert_ignore
from .pgsql import FusionSQL

log = logging.getLogger(__name__)

STATE_INDEXER = "indexer"


@contextlib.contextmanager
def transaction(db: FusionSQL) -> Iterator[Session]:
    """
    Open a session and begin a transaction. Commits on success, rolls back on any error.

    Database errors are reported as ``PersistenceError``.

    :param db: database service
    :return:
    """
    try:
        with db.session.begin() as session:
            yield session
    except SQLAlchemyError as e:
        raise PersistenceError(f"Database transaction failed: {e}") from e


class Repository(object):
    """
    Idempotent bulk writer for one orm model

    Subclasses define the ``model`` and the unique ``keys`` used to detect existing rows.
    """

    model: Type[orm.Base] = None
    keys: Tuple[str, ...] = ()

    def __init__(self, db: FusionSQL) -> None:
        self._db = db

    def bulk_upsert(self, records: Iterable[Union[BlockRecord, DeployRecord]], ceiling: int, session: Optional[Session] = None) -> int:
        """
        Insert a batch of records, skipping records whose unique key already exists.

        If ``session`` is given, the statement joins the caller's transaction, otherwise
        the batch is committed in a transaction of its own.

        :param records: records to persist
        :param ceiling: maximum number of records accepted in one call
        :param session: optional session with an active transaction
        :return: number of records submitted
        """
        records = list(records)
        if len(records) > ceiling:
            raise BatchTooLargeError(len(records), ceiling)

        if len(records) == 0:
            return 0

        stmt = build_insert_ignore(
            dialect=self._db.dialect,
            model=self.model,
            rows=[r.to_mapping() for r in records],
            keys=self.keys,
        )

        log.debug(f"Bulk upserting {len(records)} '{self.model.__name__}' objects")

        if session is None:
            with transaction(self._db) as s:
                s.execute(stmt)
        else:
            try:
                session.execute(stmt)
            except SQLAlchemyError as e:
                raise PersistenceError(f"Failed to upsert {len(records)} '{self.model.__name__}' objects: {e}") from e

        return len(records)

    def count(self) -> int:
        with self._db.session() as session:
            return session.execute(
                select(func.count()).select_from(self.model)
            ).scalar_one()

    def highest_indexed_height(self) -> Optional[int]:
        """
        Current resume cursor: the highest block height whose block and deploys were fully persisted.

        Note: Blocks and deploys share the cursor, it is advanced in the transaction that persists both

        :return: height, or None if nothing has been indexed yet
        """
        try:
            with self._db.session() as session:
                state = session.execute(
                    select(orm.State)
                        .filter(orm.State.name == STATE_INDEXER)
                ).scalar()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load the indexer state: {e}") from e

        return state.block_number if state is not None else None


class BlockRepository(Repository):
    """
    Persists blocks and owns the resume cursor
    """

    model = orm.Block
    keys = ("height",)

    def get(self, height: int) -> Optional[orm.Block]:
        with self._db.session() as session:
            return session.execute(
                select(orm.Block)
                    .filter(orm.Block.height == height)
            ).scalar()

    def heights(self) -> Sequence[int]:
        with self._db.session() as session:
            return session.execute(
                select(orm.Block.height)
                    .order_by(orm.Block.height)
            ).scalars().all()

    def advance_cursor(self, session: Session, block: BlockRecord) -> None:
        """
        Move the resume cursor to ``block``.

        Note: Must run in the same transaction that persisted the block and its deploys

        :param session: session with an active transaction
        :param block: last block of the persisted batch
        :return:
        """
        try:
            state = session.execute(
                select(orm.State)
                    .filter(orm.State.name == STATE_INDEXER)
            ).scalar()

            if state is None:
                log.info("Creating new indexer state")
                state = orm.State(name=STATE_INDEXER)
                session.add(state)

            if state.block_number is not None and state.block_number >= block.height:
                raise PersistenceError(
                    f"Refusing to move the resume cursor from {state.block_number} back to {block.height}",
                    height=block.height,
                )

            state.block_number = block.height
            state.block_hash = block.hash
            session.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update the indexer state: {e}", height=block.height) from e


class DeployRepository(Repository):
    """
    Persists deploys
    """

    model = orm.Deploy
    keys = ("hash",)

    def get(self, deploy_hash: str) -> Optional[orm.Deploy]:
        with self._db.session() as session:
            return session.execute(
                select(orm.Deploy)
                    .filter(orm.Deploy.hash == deploy_hash)
            ).scalar()

    def hashes(self) -> Sequence[str]:
        with self._db.session() as session:
            return session.execute(
                select(orm.Deploy.hash)
                    .order_by(orm.Deploy.block_height, orm.Deploy.id)
            ).scalars().all()
