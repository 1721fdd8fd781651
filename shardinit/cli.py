"""
Sharded Cluster Bootstrap

Initiates one replica set per shard, waits for each to elect a primary,
then registers every set as a shard with mongos.

Usage:
    shardinit
    shardinit -u "mongodb://mongos:27017" --ignore-existing
    shardinit --shard shard1ReplSet=shard1:27020 --shard shard2ReplSet=shard2:27021 --dry-run

Environment variables:
    MONGOS_URI              Router connection string (default: mongodb://localhost:27017)
    SHARDINIT_SHARDS        Shard definitions separated by ";" (default: the three-shard layout)
    SHARDINIT_WAIT_TIMEOUT  Seconds to wait for a primary or the router (default: 30)
"""

import argparse
import logging
import os
import sys

import bson.json_util as json
from pymongo.errors import PyMongoError

from shardinit.admin import ClusterAdmin, ShardInitError
from shardinit.topology import DEFAULT_SHARDS, ReplicaSet, parse_shard

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def env_shards() -> list[ReplicaSet]:
    """Shard definitions from SHARDINIT_SHARDS, or the default layout."""
    value = os.environ.get("SHARDINIT_SHARDS", "")
    shards = [parse_shard(item) for item in value.split(";") if item.strip()]
    return shards or list(DEFAULT_SHARDS)


def _shard_arg(text: str) -> ReplicaSet:
    try:
        return parse_shard(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="shardinit",
        description="Initiate shard replica sets and add them to mongos",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    shardinit -u "mongodb://mongos:27017"
    shardinit --shard rsA=hostA:27018 --shard rsB=hostB:27018 --wait-timeout 60
    shardinit --dry-run
        """,
    )
    parser.add_argument(
        "-u",
        "--uri",
        type=str,
        default=os.environ.get("MONGOS_URI", "mongodb://localhost:27017"),
        help="mongos connection string (default: $MONGOS_URI or mongodb://localhost:27017)",
    )
    parser.add_argument(
        "--shard",
        dest="shards",
        type=_shard_arg,
        action="append",
        metavar="ID=HOST:PORT[,HOST:PORT...]",
        help="Shard replica set, repeatable, in order (default: $SHARDINIT_SHARDS or shard1..3)",
    )
    parser.add_argument(
        "--wait-timeout",
        type=float,
        default=os.environ.get("SHARDINIT_WAIT_TIMEOUT", "30"),
        help="Seconds to wait for each primary and for the router (default: 30)",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=0.5,
        help="Seconds between readiness checks (default: 0.5)",
    )
    parser.add_argument(
        "--ignore-existing",
        action="store_true",
        help="Do not fail on replica sets that are already initialized",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the admin commands without running them",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    args = parser.parse_args(argv)
    if args.shards is None:
        try:
            args.shards = env_shards()
        except ValueError as e:
            parser.error(f"SHARDINIT_SHARDS: {e}")
    if args.wait_timeout <= 0:
        parser.error("--wait-timeout must be positive")
    if args.poll_interval <= 0:
        parser.error("--poll-interval must be positive")
    return args


def plan(shards) -> list[dict]:
    """The admin commands bootstrap issues, in order, as (target, command) documents."""
    steps = [{"target": rs.seed, "command": {"replSetInitiate": rs.config()}} for rs in shards]
    steps += [{"target": "mongos", "command": {"addShard": rs.connection_string}} for rs in shards]
    return steps


def bootstrap(admin: ClusterAdmin, shards, ignore_existing=False) -> list[str]:
    """Initiate every shard replica set, then add each one to the router.

    Shards are processed in the given order. The first failure aborts the sequence.
    Returns the shard names reported by the router.
    """
    for rs in shards:
        admin.initiate_replica_set(rs, ignore_existing=ignore_existing)
        admin.wait_for_primary(rs)

    admin.wait_for_router()
    return [admin.add_shard(rs) for rs in shards]


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level, format=LOG_FORMAT)

    if args.dry_run:
        for step in plan(args.shards):
            print(json.dumps(step))
        return 0

    admin = ClusterAdmin(args.uri, wait_timeout=args.wait_timeout, poll_interval=args.poll_interval)
    try:
        with admin:
            names = bootstrap(admin, args.shards, ignore_existing=args.ignore_existing)
    except (ShardInitError, PyMongoError) as e:
        logger.error("Bootstrap failed: %s", e)
        return 1

    logger.info("Cluster ready with %d shard(s): %s", len(names), ", ".join(names))
    return 0


if __name__ == "__main__":
    sys.exit(main())
