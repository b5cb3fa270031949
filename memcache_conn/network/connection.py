"""
Memcache Connection Module

This module implements a single pipelined connection to a memcache server.

A Connection owns one TCP socket and everything that depends on it:
- the CommandQueue of commands awaiting responses (strict FIFO)
- the WriteBuffer holding bytes that cannot be sent yet
- the ResponseParser matching inbound lines to pending commands
- the reconnect timer and its exponential Backoff

Everything runs on one asyncio event loop. Socket reads happen in a
single reader task per socket, writes happen synchronously from the
command methods or the reader task, and the reconnect timer is a loop
callback, so no state is ever mutated concurrently.

Usage:
    async with Connection(host="127.0.0.1", port=11211) as conn:
        await conn.set("greeting", "hello", ttl=60)
        value = await conn.get("greeting")      # "hello"
        removed = await conn.delete("greeting")  # True
"""

import asyncio
import contextlib
import logging
from asyncio import StreamReader, StreamWriter
from typing import Any, Callable, List, Optional, Union

from ..cluster.discovery import parse_endpoints
from ..config.settings import settings
from ..errors import ConnectionClosedError, InvalidArgumentError, UnexpectedResponseError
from ..protocol.commands import Command, CommandType
from ..protocol.parser import ResponseParser
from ..protocol.pending import CommandQueue, KeyedFuture, PendingCommand, ResultHandler, defer
from .backoff import Backoff
from .write_buffer import WriteBuffer

logger = logging.getLogger(__name__)


def _expect_stored(key: str, line: Optional[str]) -> None:
    if line != "STORED":
        raise UnexpectedResponseError(line, key, expected="STORED")


def _value(key: str, value: Optional[str]) -> Optional[str]:
    return value


def _is_deleted(key: str, line: Optional[str]) -> bool:
    return line == "DELETED"


def _endpoints(key: str, payload: Optional[str]) -> List[str]:
    return parse_endpoints(payload)


class Connection:
    """
    Pipelined connection to one memcache server with automatic reconnect.

    Commands can be issued at any time, even before the socket is up.
    Their bytes are buffered until the connection is ready and their
    futures settle in the order the commands were issued.

    When the socket is lost (and reconnect is enabled) the connection
    retries after an exponentially growing delay. Commands that were sent
    but not answered stay queued and are sent again on the new socket, so
    a lost connection costs callers latency rather than errors.

    Attributes:
        host: Server host name or address
        port: Server port
        reconnect: Whether lost connections are retried
        on_connect: Optional callable invoked after every successful
            connect, before buffered commands are flushed
        ready: True while the socket is connected and writable
        disconnecting: True once disconnect() has been called
        backoff: Reconnect delay state
        queue: Commands awaiting a response
        write_buffer: Outbound bytes not yet handed to the socket
        parser: Correlator for inbound lines
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            reconnect: bool = None,
            on_connect: Optional[Callable[[], Any]] = None,
            backoff: int = None,
    ):
        """
        Initialize the connection. Nothing is opened until connect().

        Args:
            host: Server host (default from settings)
            port: Server port (default from settings)
            reconnect: Retry lost connections (default from settings)
            on_connect: Callback run after each successful connect
            backoff: Initial reconnect delay in milliseconds (0 means the default)
        """
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.reconnect = reconnect if reconnect is not None else settings.RECONNECT
        self.on_connect = on_connect

        self.ready = False
        self.disconnecting = False
        self.backoff = Backoff(initial=backoff)

        self.queue = CommandQueue()
        self.write_buffer = WriteBuffer()
        self.parser = ResponseParser(self.queue)

        self._task: Optional[asyncio.Task] = None
        self._stopped_task: Optional[asyncio.Task] = None
        self._writer: Optional[StreamWriter] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._ready_event = asyncio.Event()
        self._connect_count = 0

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """
        Start connecting to the server.

        Must be called from a running event loop. Connection failures are
        never raised here; they are retried according to the reconnect
        policy. Calling connect() on an open connection drops the socket
        and starts a fresh attempt.
        """
        self.disconnecting = False
        self._cancel_reconnect()
        self._start()

    def disconnect(self) -> None:
        """
        Close the socket and stop reconnecting.

        Commands still waiting for a response are rejected with
        ConnectionClosedError.
        """
        self.disconnecting = True
        self._cancel_reconnect()
        self._stop_task()
        self._reset_socket()
        self.write_buffer.clear()
        self.queue.reject_all(
            ConnectionClosedError(f"Connection to {self.address} was closed")
        )
        logger.info(f"Disconnected from {self.address}")

    async def close(self) -> None:
        """Disconnect and wait for the socket to shut down."""
        writer = self._writer
        self.disconnect()
        task, self._stopped_task = self._stopped_task, None

        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        if writer is not None:
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    async def wait_ready(self, timeout: Optional[float] = None) -> None:
        """
        Wait until the connection is ready.

        Raises:
            asyncio.TimeoutError: If timeout seconds pass first
        """
        await asyncio.wait_for(self._ready_event.wait(), timeout)

    async def __aenter__(self) -> "Connection":
        self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _start(self) -> None:
        loop = asyncio.get_running_loop()
        self._stop_task()
        self._reset_socket()
        self._task = loop.create_task(self._run())

    def _stop_task(self) -> None:
        if self._task is not None:
            if not self._task.done():
                self._task.cancel()
            self._stopped_task = self._task
        self._task = None

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _reset_socket(self) -> None:
        """
        Forget the current socket and prepare to resend.

        The write buffer is rebuilt from the payloads of every command
        still in the queue, which covers both bytes that were never sent
        and requests the lost socket never answered.
        """
        self.ready = False
        self._ready_event.clear()
        self.write_buffer.detach()
        if self._writer is not None:
            self._writer.close()
            self._writer = None
        self.parser.reset()
        self.write_buffer.replace(self.queue.payloads())

    async def _run(self) -> None:
        """Open the socket and feed inbound lines to the parser until it closes."""
        logger.debug(f"Connecting to {self.address}")
        try:
            reader, writer = await asyncio.open_connection(
                self.host,
                self.port,
                limit=settings.READ_BUFFER_SIZE,
            )
        except OSError as exc:
            logger.debug(f"Connection to {self.address} failed: {exc}")
            self._handle_close(lost=False)
            return

        self._on_connected(writer)

        try:
            await self._read_lines(reader)
        except asyncio.CancelledError:
            writer.close()
            raise
        except (OSError, ValueError) as exc:
            # ValueError: a line longer than READ_BUFFER_SIZE, framing is lost
            logger.warning(f"Error reading from {self.address}: {exc}")

        writer.close()
        if self._writer is writer:
            self._handle_close(lost=True)

    async def _read_lines(self, reader: StreamReader) -> None:
        while True:
            data = await reader.readline()
            if not data:
                logger.debug(f"Server closed the connection to {self.address}")
                return
            self.parser.feed(data.decode(settings.ENCODING, errors="replace").rstrip("\r\n"))

    def _on_connected(self, writer: StreamWriter) -> None:
        self._writer = writer
        self.ready = True
        self._connect_count += 1
        self.backoff.reset()
        self.write_buffer.attach(writer)
        self._ready_event.set()
        logger.info(f"Connected to {self.address}")

        if self.on_connect is not None:
            try:
                self.on_connect()
            except Exception:
                logger.exception(f"on_connect callback for {self.address} failed")

        self.write_buffer.flush()

    def _handle_close(self, lost: bool) -> None:
        """React to a closed socket or a failed connect attempt."""
        self._reset_socket()
        if self.disconnecting:
            return

        if not self.reconnect:
            self.write_buffer.clear()
            self.queue.reject_all(
                ConnectionClosedError(f"Connection to {self.address} closed and reconnect is disabled")
            )
            return

        delay = self.backoff.next()
        if lost:
            logger.warning(f"Connection to {self.address} lost, reconnecting in {delay}ms")
        else:
            logger.debug(f"Retrying {self.address} in {delay}ms")
        self._reconnect_handle = asyncio.get_running_loop().call_later(
            delay / 1000, self._reconnect
        )

    def _reconnect(self) -> None:
        self._reconnect_handle = None
        if self.disconnecting:
            return
        logger.debug(f"Attempting to reconnect to {self.address}")
        self._start()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def set(self, key: str, value: Union[str, bytes], ttl: int = 0) -> KeyedFuture:
        """
        Store value under key.

        Args:
            key: Cache key (string, shorter than 250 characters)
            value: Value to store; str is encoded as UTF-8
            ttl: Expiration in seconds (0 = never expires)

        Returns:
            Future resolving to None once the server replies STORED.
            Any other reply rejects it with UnexpectedResponseError.

        Raises:
            InvalidArgumentError: If key, value or ttl is invalid. Nothing
                is sent in that case.
        """
        logger.debug(f"set {key}")
        self._validate_key(key)

        if isinstance(value, str):
            data = value.encode(settings.ENCODING)
        elif isinstance(value, (bytes, bytearray, memoryview)):
            data = bytes(value)
        else:
            raise InvalidArgumentError(f"Value must be str or bytes, got {type(value).__name__}")

        if isinstance(ttl, bool) or not isinstance(ttl, int) or ttl < 0:
            raise InvalidArgumentError(f"TTL must be a non-negative integer, got {ttl!r}")

        command = Command(type=CommandType.SET, key=key, value=data, ttl=ttl)
        return self._dispatch(command, _expect_stored)

    def get(self, key: str) -> KeyedFuture:
        """
        Fetch the value stored under key.

        Returns:
            Future resolving to the value as text, or None on a miss
        """
        logger.debug(f"get {key}")
        self._validate_key(key)
        return self._dispatch(Command(type=CommandType.GET, key=key), _value)

    def delete(self, key: str) -> KeyedFuture:
        """
        Delete key.

        Returns:
            Future resolving to True if the key was deleted, False otherwise
        """
        logger.debug(f"delete {key}")
        self._validate_key(key)
        return self._dispatch(Command(type=CommandType.DELETE, key=key), _is_deleted)

    def autodiscovery(self) -> KeyedFuture:
        """
        Ask the server for the nodes of its cluster.

        Returns:
            Future resolving to a list of "ip:port" strings
        """
        logger.debug("Starting autodiscovery")
        return self._dispatch(Command(type=CommandType.CONFIG_GET_CLUSTER), _endpoints)

    def _validate_key(self, key: Any) -> None:
        if not isinstance(key, str):
            raise InvalidArgumentError(f"Key must be a string, got {type(key).__name__}")
        if len(key) >= settings.MAX_KEY_LENGTH:
            raise InvalidArgumentError(
                f"Key must be less than {settings.MAX_KEY_LENGTH} characters long"
            )
        if not key or any(ch.isspace() or ord(ch) < 32 or ord(ch) == 127 for ch in key):
            raise InvalidArgumentError(
                f"Key must be non-empty without whitespace or control characters: {key!r}"
            )

    def _dispatch(self, command: Command, handler: ResultHandler) -> KeyedFuture:
        """Queue a pending command and hand its bytes to the write buffer."""
        deferred = defer(command.correlation_key)
        if self.disconnecting:
            deferred.reject(ConnectionClosedError(f"Connection to {self.address} was closed"))
            return deferred.future

        pending = PendingCommand(
            key=command.correlation_key,
            deferred=deferred,
            payload=command.encode(),
            handler=handler,
        )
        self.queue.push(pending)
        for chunk in pending.payload:
            self.write_buffer.write(chunk)
        return deferred.future

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_stats(self) -> dict:
        """
        Get connection statistics.

        Returns:
            Dictionary with the endpoint, readiness, queue and buffer
            sizes, current backoff and number of successful connects.
        """
        return {
            "host": self.host,
            "port": self.port,
            "ready": self.ready,
            "pending_commands": len(self.queue),
            "buffered_chunks": len(self.write_buffer),
            "backoff_ms": self.backoff.current,
            "total_connects": self._connect_count,
        }

    def __repr__(self) -> str:
        return f"Connection({self.address}, ready={self.ready}, pending={len(self.queue)})"
