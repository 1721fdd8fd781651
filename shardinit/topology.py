"""Replica set definitions for the shards of the cluster."""

from dataclasses import dataclass


def _check_host(host: str):
    name, sep, port = host.rpartition(":")
    if not sep or not name:
        raise ValueError(f"member {host!r} is not in host:port form")
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise ValueError(f"member {host!r} has an invalid port")


@dataclass(frozen=True)
class ReplicaSet:
    """ReplicaSet is a shard's replica set: its name and member hosts."""

    id: str
    members: tuple[str, ...]

    def __post_init__(self):
        if not self.id or "/" in self.id:
            raise ValueError(f"invalid replica set id {self.id!r}")
        # accept any sequence, store a tuple
        object.__setattr__(self, "members", tuple(self.members))
        if not self.members:
            raise ValueError(f"replica set {self.id!r} has no members")
        for host in self.members:
            _check_host(host)

    @property
    def seed(self) -> str:
        """The member used to reach the set before it is initiated."""
        return self.members[0]

    @property
    def connection_string(self) -> str:
        """The shard connection string expected by addShard."""
        return f"{self.id}/{','.join(self.members)}"

    def config(self) -> dict:
        """Return the replSetInitiate configuration document."""
        return {
            "_id": self.id,
            "members": [{"_id": i, "host": host} for i, host in enumerate(self.members)],
        }


DEFAULT_SHARDS = (
    ReplicaSet("shard1ReplSet", ("shard1:27020",)),
    ReplicaSet("shard2ReplSet", ("shard2:27021",)),
    ReplicaSet("shard3ReplSet", ("shard3:27022",)),
)


def parse_shard(text: str) -> ReplicaSet:
    """Parse "<id>=<host:port>[,...]" (or "<id>/<host:port>[,...]") into a ReplicaSet."""
    sep = "=" if "=" in text else "/"
    rs_id, found, hosts = text.strip().partition(sep)
    if not found:
        raise ValueError(f"shard {text!r} must look like <id>=<host:port>[,<host:port>...]")

    members = tuple(h.strip() for h in hosts.split(",") if h.strip())
    return ReplicaSet(rs_id.strip(), members)
