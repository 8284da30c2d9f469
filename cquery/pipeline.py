#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import (
    Any,
    Callable,
    List,
    Optional,
    Tuple,
)

import logging
import threading
import time

import cquery.db
from cquery.config import IngestionConfig
from cquery.db import (
    BlockRepository,
    DeployRepository,
    transaction,
)
from cquery.exceptions import (
    CQueryError,
    PersistenceError,
    PipelineBusyError,
)
from cquery.extractor import DeployExtractor
from cquery.rpc import RPCClient
from cquery.throttle import (
    RandomThrottle,
    ThrottlePolicy,
)
from cquery.types import (
    BlockRecord,
    DeployRecord,
    IngestionResult,
    IngestionStatus,
)
from cquery.util import (
    batched,
    timeit,
)

log = logging.getLogger(__name__)

TBatch = List[Tuple[BlockRecord, List[DeployRecord]]]


class IngestionPipeline(object):
    """
    Walks the chain from the resume cursor up to the current tip:
    1) determine the range of missing heights (resume cursor + 1 to chain tip)
    2) fetch each block in strictly increasing order
    3) resolve the block's deploys (DeployExtractor)
    4) collect blocks and deploys in a batch of up to ``limit_bulk_insert`` blocks
    5) flush the batch: blocks, deploys and the resume cursor are committed in one transaction
    6) throttle before the next block request

    Rules:
    - a height is never skipped, any failure aborts the run (the next run resumes after the cursor)
    - blocks that were fetched, but not yet flushed, are discarded when a run aborts
    - a stop request is only honoured between batches

    Note: Only one run may walk the chain at a time
    """

    def __init__(
        self,
        rpc: RPCClient,
        db: cquery.db.FusionSQL,
        extractor: DeployExtractor,
        config: Optional[IngestionConfig] = None,
        throttle: Optional[ThrottlePolicy] = None,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        """
        :param rpc: node capability
        :param db: database service (schema has to be up-to-date)
        :param extractor: deploy extractor
        :param config: run parameters
        :param throttle: delay policy between block requests, defaults to a ``RandomThrottle``
        :param sleep: sleep function (seconds)
        """
        self._rpc = rpc
        self._db = db
        self._extractor = extractor
        self._config = config if config is not None else IngestionConfig()
        self._throttle = throttle if throttle is not None else RandomThrottle(self._config.base_random_throttle_number)
        self._sleep = sleep

        self._blocks = BlockRepository(db)
        self._deploys = DeployRepository(db)

        self._lock = threading.Lock()
        self._terminating = threading.Event()

    @property
    def config(self) -> IngestionConfig:
        return self._config

    @property
    def blocks(self) -> BlockRepository:
        return self._blocks

    @property
    def deploys(self) -> DeployRepository:
        return self._deploys

    def stop(self) -> None:
        """
        Request the pipeline to stop after the current batch has been flushed

        Note: Permanent, subsequent runs return immediately

        :return:
        """
        log.info("Stopping ingestion pipeline")
        self._terminating.set()

    @timeit
    def run_once(self) -> IngestionResult:
        """
        Index all blocks between the resume cursor and the current chain tip.

        Errors are not raised, but reported in the returned result (status ``ABORTED``).

        :return: run summary
        """
        if not self._lock.acquire(blocking=False):
            raise PipelineBusyError("An ingestion run is already in progress")

        try:
            result = self._run()
        finally:
            self._lock.release()

        log.info(f"Finished ingestion: {result}")
        return result

    def _run(self) -> IngestionResult:
        result = IngestionResult()

        try:
            tip = self._rpc.get_chain_tip_height()
            cursor = self._blocks.highest_indexed_height()
        except CQueryError as e:
            return self._abort(result, e, None)

        result.tip_height = tip
        result.cursor_before = cursor
        result.cursor_after = cursor

        # we are already done
        if cursor is not None and tip <= cursor:
            if tip < cursor:
                # Note: reorganisations are not handled, the node most likely resynced
                log.warning(f"Chain tip {tip} is behind the indexed height {cursor}")
            log.info(f"Skipping up-to-date ingestion (cursor {cursor}, tip {tip})")
            result.status = IngestionStatus.UP_TO_DATE
            return result

        start = 0 if cursor is None else cursor + 1
        result.start_height = start
        ceiling = self._config.limit_bulk_insert

        log.info(f"Starting ingestion ({start} to {tip}, {ceiling} blocks per batch)")

        batch: TBatch = []
        height = start
        try:
            for height in range(start, tip + 1):
                # only stop on batch boundaries
                if len(batch) == 0 and self._terminating.is_set():
                    log.info(f"Interrupted ingestion before block {height}")
                    break

                if height > start:
                    self._sleep(self._throttle.next_delay_seconds())

                block = self._rpc.get_block(height)
                deploys = self._extractor.extract(block)

                batch.append((block, deploys))
                result.heights_processed += 1

                if len(batch) >= ceiling or height == tip:
                    self._flush(batch, result)
                    batch = []

        except CQueryError as e:
            if len(batch) > 0:
                log.warning(f"Discarding {len(batch)} unflushed blocks ({batch[0][0].height} to {batch[-1][0].height})")
            return self._abort(result, e, height)

        if result.cursor_after == tip:
            result.status = IngestionStatus.CAUGHT_UP
        else:
            result.status = IngestionStatus.INTERRUPTED

        return result

    def _flush(self, batch: TBatch, result: IngestionResult) -> None:
        """
        Persist a batch and advance the resume cursor to its last block ("atomically").

        Each bulk insert is limited to ``limit_bulk_insert`` records.

        :param batch: consecutive blocks and their deploys
        :param result: run summary to update
        :return:
        """
        ceiling = self._config.limit_bulk_insert

        blocks = [block for block, _ in batch]
        deploys = [deploy for _, block_deploys in batch for deploy in block_deploys]

        # sanity check: strictly consecutive heights, directly following the cursor
        expected = blocks[0].height if result.cursor_after is None else result.cursor_after + 1
        assert [block.height for block in blocks] == list(range(expected, expected + len(blocks)))

        try:
            with transaction(self._db) as session:
                for chunk in batched(blocks, size=ceiling):
                    self._blocks.bulk_upsert(chunk, ceiling, session=session)
                for chunk in batched(deploys, size=ceiling):
                    self._deploys.bulk_upsert(chunk, ceiling, session=session)
                self._blocks.advance_cursor(session, blocks[-1])
        except PersistenceError as e:
            if e.height is None:
                e.height = blocks[0].height
            raise

        result.cursor_after = blocks[-1].height
        result.blocks_persisted += len(blocks)
        result.deploys_persisted += len(deploys)
        result.flushes += 1

        self._extractor.evict(deploys)

        log.info(f"Committed {len(blocks)} blocks and {len(deploys)} deploys up to block {blocks[-1].height}")

    @staticmethod
    def _abort(result: IngestionResult, error: CQueryError, height: Optional[int]) -> IngestionResult:
        result.status = IngestionStatus.ABORTED
        result.error = error
        result.failed_height = getattr(error, "height", None)
        if result.failed_height is None:
            result.failed_height = height
        result.failed_deploy = getattr(error, "deploy_hash", None)

        log.error(
            f"Aborted ingestion at block {result.failed_height}"
            + (f" (deploy {result.failed_deploy})" if result.failed_deploy else "")
            + f": {result.error_kind} '{error}'"
        )
        return result
