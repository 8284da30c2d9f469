#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2022-2022 Riku Block
# All rights reserved.
#
# This file is part of CQuery.

from typing import (
    List,
    Optional,
)

import argparse
import logging
import signal
import sys

import pidfile

from dotenv import load_dotenv

# Note: load the environment before the configuration is imported
load_dotenv()

import cquery.cache
import cquery.db
from cquery.config import (
    CONFIG as C,
    IngestionConfig,
)
from cquery.exceptions import ConfigurationError
from cquery.extractor import DeployExtractor
from cquery.pipeline import IngestionPipeline
from cquery.rpc import (
    CasperRPC,
    check_rpc_url,
)
from cquery.scheduler import (
    Scheduler,
    SignalContext,
)
from cquery.throttle import RandomThrottle
from cquery.util import (
    init_decimal_context,
    timeit,
)

log = logging.getLogger("main")

MIN_PYTHON = (3, 8)
if sys.version_info < MIN_PYTHON:
    sys.exit("Python {}.{} or later is required!".format(*MIN_PYTHON))


# Basic CQuery program flow
# 0) Bootstrap: parse arguments, upgrade the database schema, wire up the services
# 1) Scheduler: run the pipeline once or every N seconds
# 2) IngestionPipeline: walk from the resume cursor to the chain tip
# 3) DeployExtractor: resolve the deploys of every fetched block
# 4) Repositories: write blocks, deploys and the resume cursor ("atomically" per batch)
#
# Note: Only a single instance may index into the same database (see pidfile)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Index Casper blocks and deploys into a relational database")
    parser.add_argument("--rpc", type=str, help="Set the casper node rpc url (default: RPC_URL env variable)")
    parser.add_argument(
        "--limit-bulk-insert",
        type=int,
        help="Limit the number of entries to insert in the db at once",
    )
    parser.add_argument(
        "--base-random-throttle-number",
        type=int,
        help="Set the base random throttle number. The delay in ms will range between 0 and n+1",
    )
    parser.add_argument(
        "--loop",
        type=int,
        help="If set the program will loop and parse all blocks every x seconds",
    )
    return parser.parse_args(argv)


@timeit
def main(argv: Optional[List[str]] = None) -> int:
    """
    Index the Casper chain into the configured database.

    :return: exit code
    """
    args = parse_args(argv)

    logging.basicConfig(
        level=C["LOG_LEVEL"],
        format=C["LOG_FORMAT"],
        datefmt=C["LOG_DATE_FORMAT"],
        handlers=[
            logging.StreamHandler(),
        ]
    )

    init_decimal_context()

    try:
        rpc_url = check_rpc_url(args.rpc or C["API_URL"])
        config = IngestionConfig.from_config(
            C,
            limit_bulk_insert=args.limit_bulk_insert,
            base_random_throttle_number=args.base_random_throttle_number,
            loop=args.loop,
        )
    except ConfigurationError as e:
        log.error(e)
        return 1

    db = cquery.db.FusionSQL(
        conn=cquery.db.build_url(
            driver=C["DB_DRIVER"],
            host=C["DB_HOST"],
            port=C["DB_PORT"],
            username=C["DB_USERNAME"],
            password=C["DB_PASSWORD"],
            database=C["DB_DATABASE"],
        ),
        verbose=C["DB_DEBUG"],
    )

    # precondition of the pipeline
    cquery.db.upgrade_schema(db)

    cache = cquery.cache.build_cache(C)

    # ensure the service is running
    cache.ping()

    rpc = CasperRPC.from_url(
        endpoint_uri=rpc_url,
        timeout=C["RPC_TIMEOUT"],
        retries=C["RPC_RETRIES"],
        max_delay=C["RPC_MAX_DELAY"],
    )

    throttle = RandomThrottle(config.base_random_throttle_number)

    extractor = DeployExtractor(
        rpc=rpc,
        cache=cache,
        throttle=throttle,
        cache_ttl=int(C["CACHE_TTL"]),
    )

    pipeline = IngestionPipeline(
        rpc=rpc,
        db=db,
        extractor=extractor,
        config=config,
        throttle=throttle,
    )

    scheduler = Scheduler(pipeline)

    log.info(f"Indexing from '{rpc_url}' ({config})")

    with SignalContext([signal.SIGHUP, signal.SIGINT, signal.SIGTERM], scheduler.handle_signal):
        result = scheduler.start(interval=config.loop)

    db.dispose()

    if result is None or not result.ok:
        return 1
    return 0


if __name__ == "__main__":
    try:
        with pidfile.PIDFile(C["PID_FILE"]):
            sys.exit(main())
    except pidfile.AlreadyRunningError:
        print("Already running. Exiting.")
        sys.exit(1)
