"""ClusterAdmin drives the admin commands used to bootstrap a sharded cluster."""

import logging
import time

import pymongo
from pymongo.errors import ConnectionFailure, OperationFailure

from shardinit.topology import ReplicaSet

logger = logging.getLogger(__name__)

# server error code returned by replSetInitiate on an initiated set
ALREADY_INITIALIZED = 23

# default server selection timeout (in milliseconds)
DFL_SERVER_TIMEOUT_MS = 5000


class ShardInitError(Exception):
    """Base class for errors raised while bootstrapping the cluster."""


class WaitTimeoutError(ShardInitError):
    """Exception raised when a wait operation times out."""


class ClusterAdminError(ShardInitError):
    """Exception raised when the cluster rejects an admin command."""

    def __init__(self, command: str, exc: OperationFailure):
        errmsg = (exc.details or {}).get("errmsg") or str(exc)
        super().__init__(f"{command} failed: {errmsg}")
        self.command = command
        self.code = exc.code

    def __str__(self):
        return self.args[0]


class ClusterAdmin:
    """ClusterAdmin provides methods to initiate shard replica sets and register them with mongos."""

    def __init__(
        self,
        router_uri: str,
        connect=pymongo.MongoClient,
        wait_timeout: float = 30,
        poll_interval: float = 0.5,
        server_timeout_ms: int = DFL_SERVER_TIMEOUT_MS,
    ):
        self.router_uri = router_uri
        self.wait_timeout = wait_timeout
        self.poll_interval = poll_interval
        self.server_timeout_ms = server_timeout_ms
        self._connect = connect
        self._router = None
        self._members = {}

    def __enter__(self):
        return self

    def __exit__(self, _t, _exc, _tb):
        self.close()

    @property
    def router(self):
        """Client connected to the routing coordinator (mongos)."""
        if self._router is None:
            self._router = self._connect(
                self.router_uri, serverSelectionTimeoutMS=self.server_timeout_ms
            )
        return self._router

    def member(self, host: str):
        """Client connected directly to a single replica set member."""
        client = self._members.get(host)
        if client is None:
            client = self._connect(
                f"mongodb://{host}/",
                directConnection=True,
                serverSelectionTimeoutMS=self.server_timeout_ms,
            )
            self._members[host] = client
        return client

    def close(self):
        """Close every client opened so far."""
        for client in self._members.values():
            client.close()
        self._members.clear()

        if self._router is not None:
            self._router.close()
            self._router = None

    def initiate_replica_set(self, rs: ReplicaSet, ignore_existing=False) -> bool:
        """Initiate the replica set through its seed member.

        Returns False when the set was already initiated and ``ignore_existing`` is set.
        """
        config = rs.config()
        logger.info("Initiating replica set %s on %s", rs.id, rs.seed)
        try:
            self._command(self.member(rs.seed), "replSetInitiate", config)
        except ClusterAdminError as e:
            if ignore_existing and e.code == ALREADY_INITIALIZED:
                logger.info("Replica set %s is already initialized", rs.id)
                return False
            raise

        return True

    def primary(self, rs: ReplicaSet):
        """The primary of the set as seen by its seed member, or None while there is none."""
        try:
            reply = self._command(self.member(rs.seed), "hello")
        except ConnectionFailure as e:
            logger.debug("%s is not reachable yet: %s", rs.seed, e)
            return None

        if reply.get("setName") != rs.id:
            return None
        if reply.get("isWritablePrimary"):
            return reply.get("me", rs.seed)
        # another member won the election
        return reply.get("primary")

    def wait_for_primary(self, rs: ReplicaSet) -> str:
        """Wait for the replica set to elect a primary. Returns the primary host."""
        host = self._wait(lambda: self.primary(rs), f"replica set {rs.id} primary")
        logger.info("Replica set %s has a primary on %s", rs.id, host)
        return host

    def is_router_ready(self) -> bool:
        """Check whether the router answers ping."""
        try:
            self._command(self.router, "ping")
        except ConnectionFailure as e:
            logger.debug("router is not reachable yet: %s", e)
            return False

        return True

    def wait_for_router(self):
        """Wait for the router to accept commands."""
        self._wait(self.is_router_ready, "router")

    def add_shard(self, rs: ReplicaSet) -> str:
        """Register the replica set as a shard. Returns the shard name given by the router."""
        logger.info("Adding shard %s", rs.connection_string)
        reply = self._command(self.router, "addShard", rs.connection_string)
        name = reply.get("shardAdded", rs.id)
        logger.info("Shard %s added", name)
        return name

    def list_shards(self) -> list:
        """Get the shards registered with the router."""
        return self._command(self.router, "listShards").get("shards", [])

    def _wait(self, ready, what: str):
        """Poll ready() until it returns a truthy value and return it; raise at the deadline."""
        deadline = time.monotonic() + self.wait_timeout
        while not (result := ready()):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise WaitTimeoutError(f"timed out after {self.wait_timeout}s waiting for {what}")
            time.sleep(min(self.poll_interval, remaining))

        return result

    @staticmethod
    def _command(client, command: str, *args, **kwargs) -> dict:
        try:
            return client.admin.command(command, *args, **kwargs)
        except OperationFailure as e:
            raise ClusterAdminError(command, e) from e
