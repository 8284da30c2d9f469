#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import List

from decimal import Decimal

import pytest

from sqlalchemy import (
    inspect,
    select,
)

import cquery.db
import cquery.db.orm as orm
from cquery.db import (
    BlockRepository,
    DeployRepository,
    transaction,
)
from cquery.exceptions import (
    BatchTooLargeError,
    PersistenceError,
)
from cquery.extractor import DeployExtractor
from cquery.types import (
    BlockRecord,
    DeployRecord,
)

from .fake import FakeChain


def _records(chain: FakeChain) -> List[BlockRecord]:
    return [chain.get_block(height) for height in sorted(chain.blocks)]


def _deploys(chain: FakeChain, blocks: List[BlockRecord]) -> List[DeployRecord]:
    extractor = DeployExtractor(rpc=chain)
    return [deploy for block in blocks for deploy in extractor.extract(block)]


def test_dbm_schema(dbm: cquery.db.FusionSQL) -> None:
    inspector = inspect(dbm.engine)
    schema = orm.Base.metadata.schema

    assert set(inspector.get_table_names(schema=schema)) >= {"block", "deploy", "state"}

    indexes = {i["name"] for i in inspector.get_indexes("deploy", schema=schema)}
    assert {"ix_deploy_account", "ix_deploy_block_height"} <= indexes


def test_dbm_state(dbm: cquery.db.FusionSQL) -> None:
    with dbm.session() as session:
        state = orm.State(
            name="default",
            block_number=55,
            block_hash=None,
        )
        session.add(state)
        session.commit()

    with dbm.session() as session:
        state = session.execute(
            select(orm.State)
                .filter(orm.State.name == "default")
        ).scalar()

        assert state.block_number == 55


def test_repository_bulk_upsert(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(3, deploys=1, transfers=1)
    blocks = _records(chain)
    deploys = _deploys(chain, blocks)

    repo_blocks = BlockRepository(dbm)
    repo_deploys = DeployRepository(dbm)

    assert repo_blocks.bulk_upsert(blocks, ceiling=10) == 3
    assert repo_deploys.bulk_upsert(deploys, ceiling=10) == 6

    assert repo_blocks.heights() == [0, 1, 2]
    assert repo_deploys.hashes() == [d.hash for d in deploys]

    block = repo_blocks.get(1)
    assert block.hash == blocks[1].hash
    assert block.count_deploys == 1
    assert block.count_transfers == 1

    deploy = repo_deploys.get(deploys[1].hash)
    assert deploy.block_height == 0
    assert deploy.is_transfer is True
    assert deploy.cost == Decimal("100000000")
    assert deploy.transfer_amount == Decimal("2500000000")


def test_repository_idempotent(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(4, deploys=2)
    blocks = _records(chain)
    deploys = _deploys(chain, blocks)

    repo_blocks = BlockRepository(dbm)
    repo_deploys = DeployRepository(dbm)

    repo_blocks.bulk_upsert(blocks[:2], ceiling=10)
    repo_deploys.bulk_upsert(deploys[:4], ceiling=10)

    # re-submitting (partially) persisted records neither fails nor duplicates
    for _ in range(2):
        repo_blocks.bulk_upsert(blocks, ceiling=10)
        repo_deploys.bulk_upsert(deploys, ceiling=10)

    assert repo_blocks.count() == 4
    assert repo_deploys.count() == 8
    assert repo_blocks.heights() == [0, 1, 2, 3]


def test_repository_batch_too_large(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(3)
    blocks = _records(chain)

    repo = BlockRepository(dbm)

    with pytest.raises(BatchTooLargeError) as e:
        repo.bulk_upsert(blocks, ceiling=2)
    assert e.value.size == 3
    assert e.value.ceiling == 2

    # nothing was written
    assert repo.count() == 0

    assert repo.bulk_upsert(blocks, ceiling=3) == 3
    assert repo.bulk_upsert([], ceiling=3) == 0


def test_repository_cursor(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(3)
    blocks = _records(chain)

    repo = BlockRepository(dbm)

    # empty store
    assert repo.highest_indexed_height() is None

    with transaction(dbm) as session:
        repo.bulk_upsert(blocks[:2], ceiling=10, session=session)
        repo.advance_cursor(session, blocks[1])

    assert repo.highest_indexed_height() == 1

    # the cursor never moves backwards
    with pytest.raises(PersistenceError):
        with transaction(dbm) as session:
            repo.advance_cursor(session, blocks[0])

    assert repo.highest_indexed_height() == 1

    with transaction(dbm) as session:
        repo.bulk_upsert(blocks[2:], ceiling=10, session=session)
        repo.advance_cursor(session, blocks[2])

    assert repo.highest_indexed_height() == 2

    with dbm.session() as session:
        state = session.execute(select(orm.State)).scalar_one()
        assert state.name == "indexer"
        assert state.block_hash == blocks[2].hash


def test_repository_cursor_shared(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(2, deploys=1)
    blocks = _records(chain)
    deploys = _deploys(chain, blocks)

    repo_blocks = BlockRepository(dbm)
    repo_deploys = DeployRepository(dbm)

    assert repo_deploys.highest_indexed_height() is None

    # deploys without an advanced cursor are not resumable
    repo_deploys.bulk_upsert(deploys, ceiling=10)
    assert repo_deploys.highest_indexed_height() is None

    with transaction(dbm) as session:
        repo_blocks.bulk_upsert(blocks, ceiling=10, session=session)
        repo_blocks.advance_cursor(session, blocks[-1])

    assert repo_deploys.highest_indexed_height() == 1
    assert repo_deploys.highest_indexed_height() == repo_blocks.highest_indexed_height()


def test_repository_rollback(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(2)
    blocks = _records(chain)

    repo = BlockRepository(dbm)

    # blocks, deploys and the cursor are committed together or not at all
    with pytest.raises(RuntimeError):
        with transaction(dbm) as session:
            repo.bulk_upsert(blocks, ceiling=10, session=session)
            repo.advance_cursor(session, blocks[-1])
            raise RuntimeError("crash before commit")

    assert repo.count() == 0
    assert repo.highest_indexed_height() is None


def test_repository_persistence_error(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(1, deploys=1)
    blocks = _records(chain)
    deploys = _deploys(chain, blocks)

    # store is gone
    with dbm.engine.begin() as connection:
        connection.exec_driver_sql(f"DROP TABLE {orm.Base.metadata.schema}.deploy")

    with pytest.raises(PersistenceError):
        DeployRepository(dbm).bulk_upsert(deploys, ceiling=10)

    with pytest.raises(PersistenceError):
        with transaction(dbm) as session:
            DeployRepository(dbm).bulk_upsert(deploys, ceiling=10, session=session)
