"""
Tests for cluster autodiscovery parsing.

Run with: python -m pytest tests/test_discovery.py -v
"""

import pytest

from memcache_conn.cluster.discovery import (
    ClusterNode,
    parse_cluster_config,
    parse_endpoints,
    parse_node,
)
from memcache_conn.errors import ProtocolError


class TestParseEndpoints:
    """Test conversion of the node line into ip:port strings."""

    def test_two_nodes(self):
        """Test the documented example."""
        payload = "h1|10.0.0.1|11211 h2|10.0.0.2|11211"
        assert parse_endpoints(payload) == ["10.0.0.1:11211", "10.0.0.2:11211"]

    def test_order_is_preserved(self):
        payload = "b|10.0.0.9|1 a|10.0.0.1|2"
        assert parse_endpoints(payload) == ["10.0.0.9:1", "10.0.0.1:2"]

    def test_extra_whitespace(self):
        assert parse_endpoints("  h1|10.0.0.1|11211   ") == ["10.0.0.1:11211"]

    def test_missing_ip_falls_back_to_hostname(self):
        assert parse_endpoints("node.cache.local||11211") == ["node.cache.local:11211"]

    def test_empty_payload(self):
        assert parse_endpoints(None) == []
        assert parse_endpoints("") == []


class TestParseNode:
    """Test single node tokens."""

    def test_fields(self):
        node = parse_node("victor.cache.amazonaws.com|10.10.8.18|11211")
        assert node == ClusterNode(hostname="victor.cache.amazonaws.com", ip="10.10.8.18", port=11211)
        assert node.address == "10.10.8.18:11211"

    @pytest.mark.parametrize("token", [
        "h1|10.0.0.1",
        "h1|10.0.0.1|11211|extra",
        "h1|10.0.0.1|port",
        "||11211",
    ])
    def test_malformed(self, token):
        """Test malformed tokens raise ProtocolError."""
        with pytest.raises(ProtocolError) as exc_info:
            parse_node(token)
        assert exc_info.value.line == token

    def test_cluster_config_returns_nodes(self):
        nodes = parse_cluster_config("h1|10.0.0.1|11211")
        assert nodes == [ClusterNode("h1", "10.0.0.1", 11211)]
