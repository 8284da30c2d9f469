#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import List

import random

import pytest

from sqlalchemy import delete

import cquery.cache
import cquery.db
import cquery.db.orm as orm
from cquery.config import IngestionConfig
from cquery.exceptions import (
    DeployFetchError,
    PersistenceError,
    PipelineBusyError,
    RpcNotFoundError,
    RpcTransportError,
)
from cquery.extractor import DeployExtractor
from cquery.pipeline import IngestionPipeline
from cquery.throttle import (
    NoThrottle,
    RandomThrottle,
    ThrottlePolicy,
)
from cquery.types import IngestionStatus

from .fake import FakeChain


def _pipeline(
    dbm: cquery.db.FusionSQL,
    chain: FakeChain,
    ceiling: int = 100,
    throttle: ThrottlePolicy = None,
    cache: cquery.cache.Cache = None,
    sleeps: List[float] = None,
) -> IngestionPipeline:
    return IngestionPipeline(
        rpc=chain,
        db=dbm,
        extractor=DeployExtractor(rpc=chain, cache=cache),
        config=IngestionConfig(limit_bulk_insert=ceiling, base_random_throttle_number=0),
        throttle=throttle or NoThrottle(),
        sleep=sleeps.append if sleeps is not None else (lambda s: None),
    )


def test_pipeline_empty_store(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(4, deploys=1, transfers=1)
    assert chain.tip == 3

    pipeline = _pipeline(dbm, chain, ceiling=2)
    result = pipeline.run_once()

    assert result.status == IngestionStatus.CAUGHT_UP
    assert result.ok
    assert result.tip_height == 3
    assert result.start_height == 0
    assert result.cursor_before is None
    assert result.cursor_after == 3
    assert result.heights_processed == 4
    assert result.blocks_persisted == 4
    assert result.deploys_persisted == 8
    assert result.flushes == 2
    assert result.error is None

    assert pipeline.blocks.highest_indexed_height() == 3
    assert pipeline.blocks.heights() == [0, 1, 2, 3]
    assert pipeline.deploys.count() == 8


def test_pipeline_up_to_date(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(6)
    pipeline = _pipeline(dbm, chain)
    assert pipeline.run_once().cursor_after == 5

    chain.block_requests.clear()

    result = pipeline.run_once()
    assert result.status == IngestionStatus.UP_TO_DATE
    assert result.ok
    assert result.cursor_before == 5
    assert result.cursor_after == 5
    assert result.heights_processed == 0
    assert result.flushes == 0
    assert chain.block_requests == []


def test_pipeline_tip_behind_cursor(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(6)
    pipeline = _pipeline(dbm, chain)
    pipeline.run_once()

    # node resynced
    chain.tip = 3

    result = pipeline.run_once()
    assert result.status == IngestionStatus.UP_TO_DATE
    assert result.cursor_after == 5
    assert pipeline.blocks.highest_indexed_height() == 5


def test_pipeline_resume_after_failure(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(5)
    pipeline = _pipeline(dbm, chain, ceiling=2)
    assert pipeline.run_once().cursor_after == 4

    chain.grow(6)
    assert chain.tip == 10
    chain.fail_blocks[7] = RpcTransportError("connection reset", height=7)
    chain.block_requests.clear()

    result = pipeline.run_once()

    assert result.status == IngestionStatus.ABORTED
    assert not result.ok
    assert result.start_height == 5
    assert result.cursor_before == 4
    assert result.cursor_after == 6
    assert result.failed_height == 7
    assert result.error_kind == "RpcTransportError"
    assert isinstance(result.error, RpcTransportError)
    assert "height=7" in str(result)

    # never skips the failing height
    assert chain.block_requests == [5, 6, 7]
    assert pipeline.blocks.highest_indexed_height() == 6
    assert pipeline.blocks.heights() == list(range(0, 7))

    # next run resumes at the failing height
    del chain.fail_blocks[7]
    chain.block_requests.clear()

    result = pipeline.run_once()

    assert result.status == IngestionStatus.CAUGHT_UP
    assert result.start_height == 7
    assert result.cursor_after == 10
    assert chain.block_requests == [7, 8, 9, 10]
    assert pipeline.blocks.heights() == list(range(0, 11))


def test_pipeline_abort_discards_batch(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(6, deploys=1)
    chain.fail_blocks[4] = RpcNotFoundError("block not known", height=4)

    pipeline = _pipeline(dbm, chain, ceiling=3)
    result = pipeline.run_once()

    assert result.status == IngestionStatus.ABORTED
    assert result.failed_height == 4
    assert result.heights_processed == 4
    assert result.blocks_persisted == 3
    assert result.cursor_after == 2

    # block 3 was fetched, but never persisted
    assert pipeline.blocks.heights() == [0, 1, 2]
    assert pipeline.blocks.get(3) is None
    assert pipeline.deploys.count() == 3
    assert pipeline.blocks.highest_indexed_height() == 2


def test_pipeline_abort_keeps_cursor(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(3)
    pipeline = _pipeline(dbm, chain, ceiling=100)
    pipeline.run_once()

    chain.grow(5)
    chain.fail_blocks[6] = RpcTransportError("timeout", height=6)

    # the whole walk fits into one batch, nothing is flushed
    result = pipeline.run_once()
    assert result.status == IngestionStatus.ABORTED
    assert result.cursor_before == 2
    assert result.cursor_after == 2
    assert result.flushes == 0
    assert pipeline.blocks.highest_indexed_height() == 2
    assert pipeline.blocks.heights() == [0, 1, 2]


def test_pipeline_deploy_failure(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(4, deploys=2)
    failing = chain.get_block(2).deploy_hashes[1]
    chain.fail_deploys[failing] = RpcNotFoundError("deploy not known", deploy_hash=failing)

    pipeline = _pipeline(dbm, chain, ceiling=1)
    result = pipeline.run_once()

    assert result.status == IngestionStatus.ABORTED
    assert isinstance(result.error, DeployFetchError)
    assert result.failed_height == 2
    assert result.failed_deploy == failing
    assert result.cursor_after == 1

    # the block is all-or-nothing
    assert pipeline.blocks.heights() == [0, 1]
    assert failing not in pipeline.deploys.hashes()
    assert pipeline.deploys.count() == 4


def test_pipeline_tip_failure(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(2)
    chain.fail_tip = RpcTransportError("node unreachable")

    pipeline = _pipeline(dbm, chain)
    result = pipeline.run_once()

    assert result.status == IngestionStatus.ABORTED
    assert result.error_kind == "RpcTransportError"
    assert result.failed_height is None
    assert chain.block_requests == []
    assert pipeline.blocks.highest_indexed_height() is None


def test_pipeline_persistence_failure(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(3, deploys=1)

    with dbm.engine.begin() as connection:
        connection.exec_driver_sql(f"DROP TABLE {orm.Base.metadata.schema}.deploy")

    pipeline = _pipeline(dbm, chain, ceiling=2)
    result = pipeline.run_once()

    assert result.status == IngestionStatus.ABORTED
    assert isinstance(result.error, PersistenceError)
    assert result.failed_height == 0
    assert result.cursor_after is None

    # rolled back, including the blocks of the batch
    assert pipeline.blocks.count() == 0
    assert pipeline.blocks.highest_indexed_height() is None


def test_pipeline_contiguity(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(23, deploys=1)
    pipeline = _pipeline(dbm, chain, ceiling=4)

    # the chain keeps growing between runs
    pipeline.run_once()
    chain.grow(9, transfers=2)
    pipeline.run_once()

    assert chain.block_requests == list(range(0, 32))
    assert pipeline.blocks.heights() == list(range(0, 32))
    assert pipeline.blocks.highest_indexed_height() == 31

    # every block's deploys are present
    hashes = set(pipeline.deploys.hashes())
    for height in range(0, 32):
        assert set(chain.get_block(height).all_deploy_hashes) <= hashes


def test_pipeline_idempotent(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(7, deploys=2, transfers=1)
    pipeline = _pipeline(dbm, chain, ceiling=3)
    pipeline.run_once()

    heights = pipeline.blocks.heights()
    hashes = pipeline.deploys.hashes()

    # crash after commit, before the cursor could be observed: re-ingest everything
    with dbm.session.begin() as session:
        session.execute(delete(orm.State))

    result = pipeline.run_once()

    assert result.status == IngestionStatus.CAUGHT_UP
    assert result.cursor_before is None
    assert result.cursor_after == 6
    assert pipeline.blocks.heights() == heights
    assert pipeline.deploys.hashes() == hashes
    assert pipeline.deploys.count() == 21


def test_pipeline_batch_ceiling(dbm: cquery.db.FusionSQL, chain: FakeChain, monkeypatch) -> None:
    chain.grow(7, deploys=3, transfers=2)
    pipeline = _pipeline(dbm, chain, ceiling=2)

    calls = []

    def spy(repository):
        bulk_upsert = repository.bulk_upsert

        def wrapper(records, ceiling, session=None):
            records = list(records)
            calls.append((type(repository).__name__, len(records), ceiling))
            return bulk_upsert(records, ceiling, session=session)

        monkeypatch.setattr(repository, "bulk_upsert", wrapper)

    spy(pipeline.blocks)
    spy(pipeline.deploys)

    result = pipeline.run_once()

    assert result.status == IngestionStatus.CAUGHT_UP
    assert result.flushes == 4
    assert all(0 < size <= ceiling == 2 for _, size, ceiling in calls)
    assert sum(size for name, size, _ in calls if name == "BlockRepository") == 7
    assert sum(size for name, size, _ in calls if name == "DeployRepository") == 35
    assert pipeline.deploys.count() == 35


def test_pipeline_throttle(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(10)
    sleeps = []

    pipeline = _pipeline(dbm, chain, throttle=RandomThrottle(50, rng=random.Random(11)), sleeps=sleeps)
    pipeline.run_once()

    # before each block fetch, except the first one
    assert len(sleeps) == 9
    assert all(0 <= s < 0.051 for s in sleeps)
    assert len(set(sleeps)) > 1


def test_pipeline_stop(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(6)
    pipeline = _pipeline(dbm, chain, ceiling=2)

    # request a stop while the first batch is being collected
    pipeline._sleep = lambda s: pipeline.stop()

    result = pipeline.run_once()

    assert result.status == IngestionStatus.INTERRUPTED
    assert result.ok
    assert result.flushes == 1
    assert result.cursor_after == 1
    assert chain.block_requests == [0, 1]
    assert pipeline.blocks.highest_indexed_height() == 1

    # stopping is permanent
    result = pipeline.run_once()
    assert result.status == IngestionStatus.INTERRUPTED
    assert result.cursor_after == 1


def test_pipeline_busy(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(2)
    pipeline = _pipeline(dbm, chain)

    pipeline._lock.acquire()
    try:
        with pytest.raises(PipelineBusyError):
            pipeline.run_once()
    finally:
        pipeline._lock.release()

    assert chain.block_requests == []
    assert pipeline.run_once().status == IngestionStatus.CAUGHT_UP


def test_pipeline_cache_eviction(dbm: cquery.db.FusionSQL, chain: FakeChain) -> None:
    chain.grow(5, deploys=2)
    chain.fail_blocks[4] = RpcTransportError("timeout", height=4)

    cache = cquery.cache.Cache_Memory()
    pipeline = _pipeline(dbm, chain, ceiling=3, cache=cache)

    result = pipeline.run_once()
    assert result.status == IngestionStatus.ABORTED
    assert result.cursor_after == 2

    # deploys of the discarded block 3 are kept, flushed ones evicted
    assert len(cache) == 2

    del chain.fail_blocks[4]
    chain.deploy_requests.clear()

    result = pipeline.run_once()
    assert result.status == IngestionStatus.CAUGHT_UP
    assert len(chain.deploy_requests) == 2
    assert len(cache) == 0
