"""
Cluster Autodiscovery Module

Managed memcache services answer `config get cluster` with the live node
list of the cluster. The node line looks like:

    node1.cache.example.com|10.10.8.18|11211 node2.cache.example.com|10.10.8.133|11211

Each space-separated token is hostname|ip|port. Nodes are addressed by ip,
falling back to the hostname when the service leaves the ip empty.
"""

from dataclasses import dataclass
from typing import List, Optional

from ..errors import ProtocolError
from ..protocol.commands import AUTODISCOVERY_KEY


@dataclass(frozen=True)
class ClusterNode:
    """One node reported by autodiscovery."""
    hostname: str
    ip: str
    port: int

    @property
    def address(self) -> str:
        """The node as an ip:port string."""
        return f"{self.ip or self.hostname}:{self.port}"


def parse_node(token: str) -> ClusterNode:
    """
    Parse a single hostname|ip|port token.

    Raises:
        ProtocolError: If the token is not three |-separated fields with
            a numeric port
    """
    parts = token.split("|")
    if len(parts) != 3:
        raise ProtocolError(token, AUTODISCOVERY_KEY, message=f"Malformed cluster node {token!r}")

    hostname, ip, port = parts
    if not port.isdigit() or not (hostname or ip):
        raise ProtocolError(token, AUTODISCOVERY_KEY, message=f"Malformed cluster node {token!r}")

    return ClusterNode(hostname=hostname, ip=ip, port=int(port))


def parse_cluster_config(payload: Optional[str]) -> List[ClusterNode]:
    """
    Parse the node line of a `config get cluster` response.

    Args:
        payload: The node line, or None when the server sent no data

    Returns:
        Nodes in the order the server listed them
    """
    if not payload:
        return []
    return [parse_node(token) for token in payload.split()]


def parse_endpoints(payload: Optional[str]) -> List[str]:
    """
    Parse the node line into ip:port strings.

    Examples:
        >>> parse_endpoints("h1|10.0.0.1|11211 h2|10.0.0.2|11211")
        ['10.0.0.1:11211', '10.0.0.2:11211']
    """
    return [node.address for node in parse_cluster_config(payload)]
