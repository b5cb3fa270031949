"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests,
including an in-process fake memcache server.
"""

import asyncio
import socket
import pytest
import pytest_asyncio
from asyncio import StreamReader, StreamWriter
from contextlib import closing
from typing import AsyncGenerator, Dict, List, Optional

from memcache_conn.network.connection import Connection
from memcache_conn.protocol.pending import CommandQueue
from memcache_conn.protocol.parser import ResponseParser


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# Fake Server
# ============================================================================

class FakeMemcacheServer:
    """
    Minimal memcache server for testing a Connection end to end.

    With auto_reply enabled it implements set, get, delete and
    config get cluster against an in-memory dict. With auto_reply disabled
    it only records the lines it receives and the test pushes raw response
    bytes with send().

    Attributes:
        lines: Every line received from clients, terminators stripped
        connections: Number of client connections accepted so far
        data: The in-memory store used by auto_reply
        cluster: Node line returned for config get cluster
    """

    def __init__(self, host: str, port: int, auto_reply: bool = True, cluster: str = ""):
        self.host = host
        self.port = port
        self.auto_reply = auto_reply
        self.cluster = cluster
        self.data: Dict[str, bytes] = {}
        self.lines: List[str] = []
        self.connections = 0
        self._writers: List[StreamWriter] = []
        self._server: Optional[asyncio.Server] = None

    async def start(self) -> None:
        self._server = await asyncio.start_server(self.handle_client, self.host, self.port)

    async def stop(self) -> None:
        await self.drop_clients()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def handle_client(self, reader: StreamReader, writer: StreamWriter) -> None:
        self.connections += 1
        self._writers.append(writer)
        try:
            while True:
                data = await reader.readline()
                if not data:
                    break
                line = data.decode().rstrip('\r\n')
                self.lines.append(line)
                if self.auto_reply:
                    await self._reply(line, reader, writer)
        except (ConnectionError, asyncio.IncompleteReadError):
            pass
        finally:
            if writer in self._writers:
                self._writers.remove(writer)
            writer.close()

    async def _reply(self, line: str, reader: StreamReader, writer: StreamWriter) -> None:
        parts = line.split()

        if len(parts) == 5 and parts[0] == 'set':
            length = int(parts[4])
            value = (await reader.readexactly(length + 2))[:-2]
            self.lines.append(value.decode())
            self.data[parts[1]] = value
            response = b"STORED\r\n"

        elif len(parts) == 2 and parts[0] == 'get':
            value = self.data.get(parts[1])
            if value is None:
                response = b"END\r\n"
            else:
                header = f"VALUE {parts[1]} 0 {len(value)}\r\n".encode()
                response = header + value + b"\r\nEND\r\n"

        elif len(parts) == 2 and parts[0] == 'delete':
            response = b"DELETED\r\n" if self.data.pop(parts[1], None) is not None else b"NOT_FOUND\r\n"

        elif parts == ['config', 'get', 'cluster']:
            body = f"1\n{self.cluster}\n".encode()
            response = f"CONFIG cluster 0 {len(body)}\r\n".encode() + body + b"\r\nEND\r\n"

        else:
            response = b"ERROR\r\n"

        writer.write(response)
        await writer.drain()

    async def send(self, raw: bytes) -> None:
        """Write raw bytes to the most recent client."""
        writer = self._writers[-1]
        writer.write(raw)
        await writer.drain()

    async def drop_clients(self) -> None:
        """Close every client connection while continuing to listen."""
        for writer in list(self._writers):
            writer.close()
        self._writers.clear()
        await asyncio.sleep(0)

    async def wait_for_lines(self, count: int, timeout: float = 2.0) -> None:
        async def _wait():
            while len(self.lines) < count:
                await asyncio.sleep(0.005)
        await asyncio.wait_for(_wait(), timeout)

    async def wait_for_connections(self, count: int, timeout: float = 2.0) -> None:
        async def _wait():
            while self.connections < count:
                await asyncio.sleep(0.005)
        await asyncio.wait_for(_wait(), timeout)


# ============================================================================
# Parser Fixtures
# ============================================================================

@pytest.fixture
def queue() -> CommandQueue:
    """Create an empty CommandQueue."""
    return CommandQueue()


@pytest.fixture
def parser(queue: CommandQueue) -> ResponseParser:
    """Create a ResponseParser bound to the queue fixture."""
    return ResponseParser(queue)


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


@pytest_asyncio.fixture
async def memcache_server(server_port: int) -> AsyncGenerator[FakeMemcacheServer, None]:
    """Start a fake memcache server that answers commands itself."""
    srv = FakeMemcacheServer(
        '127.0.0.1',
        server_port,
        cluster="node1|10.0.0.1|11211 node2|10.0.0.2|11211",
    )
    await srv.start()

    yield srv

    await srv.stop()


@pytest_asyncio.fixture
async def scripted_server(server_port: int) -> AsyncGenerator[FakeMemcacheServer, None]:
    """Start a fake memcache server whose responses are sent by the test."""
    srv = FakeMemcacheServer('127.0.0.1', server_port, auto_reply=False)
    await srv.start()

    yield srv

    await srv.stop()


# ============================================================================
# Connection Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def connection(memcache_server: FakeMemcacheServer, server_port: int) -> AsyncGenerator[Connection, None]:
    """Create a ready Connection to the auto-reply server."""
    conn = Connection(host='127.0.0.1', port=server_port)
    conn.connect()
    await conn.wait_ready(timeout=2.0)

    yield conn

    await conn.close()


@pytest_asyncio.fixture
async def scripted_connection(scripted_server: FakeMemcacheServer, server_port: int) -> AsyncGenerator[Connection, None]:
    """Create a ready Connection to the scripted server."""
    conn = Connection(host='127.0.0.1', port=server_port)
    conn.connect()
    await conn.wait_ready(timeout=2.0)
    await scripted_server.wait_for_connections(1)

    yield conn

    await conn.close()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
