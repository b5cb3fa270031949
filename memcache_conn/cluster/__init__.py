"""
Cluster module for memcache-conn.

Parses the node list returned by cluster autodiscovery.
"""

from .discovery import ClusterNode, parse_cluster_config, parse_endpoints, parse_node

__all__ = ['ClusterNode', 'parse_cluster_config', 'parse_endpoints', 'parse_node']
