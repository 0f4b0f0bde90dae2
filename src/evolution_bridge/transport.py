# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/evolution_bridge/transport.py

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
import os
import ssl
import struct
from enum import Enum
from typing import Callable, Optional, Tuple
from urllib.parse import urlsplit

from .config import (
    DEFAULT_LEDGER_RECONNECT_DELAY,
    DEFAULT_MAX_MESSAGE_BYTES,
    DEFAULT_MAX_RECONNECT_ATTEMPTS,
)
from .errors import DeliveryError, HandshakeError, WebSocketProtocolError

lib_logger = logging.getLogger("evolution_bridge")

WS_MAGIC = "258EAFA5-E914-47DA-95CA-C5AB0DC85B11"

OPCODE_CONTINUATION = 0x0
OPCODE_TEXT = 0x1
OPCODE_BINARY = 0x2
OPCODE_CLOSE = 0x8
OPCODE_PING = 0x9
OPCODE_PONG = 0xA

MessageHandler = Callable[[str], None]


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


def websocket_accept_value(client_key: str) -> str:
    accept_seed = client_key + WS_MAGIC
    digest = hashlib.sha1(accept_seed.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def websocket_frame(
    opcode: int, payload: bytes = b"", mask_key: Optional[bytes] = None
) -> bytes:
    data = bytes(payload)
    length = len(data)
    mask_bit = 0x80 if mask_key is not None else 0x00
    header = bytearray([0x80 | (opcode & 0x0F)])
    if length <= 125:
        header.append(mask_bit | length)
    elif length < 65536:
        header.append(mask_bit | 126)
        header.extend(struct.pack("!H", length))
    else:
        header.append(mask_bit | 127)
        header.extend(struct.pack("!Q", length))

    if mask_key is None:
        return bytes(header) + data

    header.extend(mask_key)
    masked = bytes(byte ^ mask_key[index % 4] for index, byte in enumerate(data))
    return bytes(header) + masked


def websocket_client_frame(opcode: int, payload: bytes = b"") -> bytes:
    """Client-to-server frames must always be masked."""
    return websocket_frame(opcode, payload, mask_key=os.urandom(4))


async def read_ws_frame(
    reader: asyncio.StreamReader,
    *,
    max_payload: int = DEFAULT_MAX_MESSAGE_BYTES,
) -> Tuple[bool, int, bytes]:
    """
    Read one frame from the server.

    Returns ``(fin, opcode, payload)``. Raises asyncio.IncompleteReadError
    when the peer closes mid-frame and WebSocketProtocolError for frames
    larger than ``max_payload``.
    """
    first, second = await reader.readexactly(2)
    fin = bool(first & 0x80)
    opcode = first & 0x0F
    masked = bool(second & 0x80)
    payload_len = second & 0x7F

    if payload_len == 126:
        payload_len = struct.unpack("!H", await reader.readexactly(2))[0]
    elif payload_len == 127:
        payload_len = struct.unpack("!Q", await reader.readexactly(8))[0]

    if payload_len > max_payload:
        raise WebSocketProtocolError(
            f"Frame of {payload_len} bytes exceeds limit of {max_payload}"
        )

    mask_key = await reader.readexactly(4) if masked else None
    payload = await reader.readexactly(payload_len) if payload_len else b""

    if mask_key is not None and payload:
        payload = bytes(
            byte ^ mask_key[index % 4] for index, byte in enumerate(payload)
        )

    return fin, opcode, payload


async def open_websocket(
    url: str,
) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open a TCP (or TLS) stream and perform the client opening handshake."""
    parts = urlsplit(url)
    if parts.scheme not in ("ws", "wss") or not parts.hostname:
        raise HandshakeError(f"Unsupported WebSocket URL '{url}'")

    secure = parts.scheme == "wss"
    port = parts.port or (443 if secure else 80)
    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    host_header = parts.hostname if parts.port is None else f"{parts.hostname}:{port}"
    ssl_context = ssl.create_default_context() if secure else None

    reader, writer = await asyncio.open_connection(
        parts.hostname, port, ssl=ssl_context
    )
    try:
        key = base64.b64encode(os.urandom(16)).decode("ascii")
        request = (
            f"GET {path} HTTP/1.1\r\n"
            f"Host: {host_header}\r\n"
            "Upgrade: websocket\r\n"
            "Connection: Upgrade\r\n"
            f"Sec-WebSocket-Key: {key}\r\n"
            "Sec-WebSocket-Version: 13\r\n"
            "\r\n"
        )
        writer.write(request.encode("ascii"))
        await writer.drain()

        try:
            raw = await reader.readuntil(b"\r\n\r\n")
        except (asyncio.IncompleteReadError, asyncio.LimitOverrunError) as e:
            raise HandshakeError(f"Handshake with {url} was cut short") from e

        status_line, *header_lines = raw.decode("latin-1").split("\r\n")
        status_parts = status_line.split(" ", 2)
        if len(status_parts) < 2 or status_parts[1] != "101":
            raise HandshakeError(f"Server refused upgrade: '{status_line}'")

        headers = {}
        for line in header_lines:
            if ":" in line:
                name, value = line.split(":", 1)
                headers[name.strip().lower()] = value.strip()

        if headers.get("sec-websocket-accept") != websocket_accept_value(key):
            raise HandshakeError("Server sent an invalid Sec-WebSocket-Accept")
    except BaseException:
        writer.close()
        raise

    return reader, writer


class WebSocketConnection:
    """
    One persistent WebSocket connection to a single endpoint.

    A single supervisor task drives the state machine
    CONNECTING -> OPEN -> CLOSED -> (fixed delay) -> CONNECTING. There is no
    backoff: after every loss the supervisor waits ``reconnect_delay`` and
    tries again, forever unless ``max_reconnect_attempts`` is set.

    Inbound text messages are handed to the registered handler in receipt
    order. A handler that raises is logged and the message is dropped; the
    connection stays up.
    """

    def __init__(
        self,
        url: str,
        *,
        name: str = "ws",
        reconnect_delay: float = DEFAULT_LEDGER_RECONNECT_DELAY,
        max_reconnect_attempts: Optional[int] = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        max_message_bytes: int = DEFAULT_MAX_MESSAGE_BYTES,
    ):
        self.url = url
        self.name = name
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_attempts = max_reconnect_attempts
        self.max_message_bytes = max_message_bytes
        self._state = ConnectionState.CLOSED
        self._handler: Optional[MessageHandler] = None
        self._task: Optional[asyncio.Task] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._write_lock = asyncio.Lock()
        self._open_event = asyncio.Event()
        self.connect_count = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.OPEN

    def set_message_handler(self, handler: Optional[MessageHandler]) -> None:
        self._handler = handler

    def start(self) -> None:
        """Starts the supervisor task."""
        if self._task is None:
            self._task = asyncio.create_task(self._run())
            lib_logger.info(f"[{self.name}] connecting to {self.url}")

    async def stop(self) -> None:
        """Stops the supervisor and closes the connection."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self._close_writer()
        self._set_state(ConnectionState.CLOSED)
        lib_logger.info(f"[{self.name}] connection stopped")

    async def wait_open(self, timeout: Optional[float] = None) -> None:
        await asyncio.wait_for(self._open_event.wait(), timeout)

    async def send(self, message: str) -> None:
        """Send one text message. Raises DeliveryError if not open."""
        writer = self._writer
        if not self.connected or writer is None or writer.is_closing():
            raise DeliveryError(f"{self.name} connection is not open")
        try:
            await self._write_frame(writer, OPCODE_TEXT, message.encode("utf-8"))
        except (ConnectionError, OSError) as e:
            raise DeliveryError(f"{self.name} send failed: {e}") from e

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state
        if state is ConnectionState.OPEN:
            self._open_event.set()
        else:
            self._open_event.clear()

    async def _write_frame(
        self, writer: asyncio.StreamWriter, opcode: int, payload: bytes
    ) -> None:
        async with self._write_lock:
            writer.write(websocket_client_frame(opcode, payload))
            await writer.drain()

    async def _close_writer(self) -> None:
        writer, self._writer = self._writer, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except (ConnectionError, OSError):
            pass

    async def _run(self) -> None:
        failures = 0
        while True:
            self._set_state(ConnectionState.CONNECTING)
            try:
                reader, self._writer = await open_websocket(self.url)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                lib_logger.warning(f"[{self.name}] connect to {self.url} failed: {e}")
            else:
                failures = 0
                self.connect_count += 1
                self._set_state(ConnectionState.OPEN)
                lib_logger.info(f"[{self.name}] connected")
                try:
                    await self._read_loop(reader)
                except asyncio.IncompleteReadError:
                    pass
                except Exception as e:
                    lib_logger.warning(f"[{self.name}] connection error: {e}")
                finally:
                    self._set_state(ConnectionState.CLOSED)
                    await self._close_writer()

            self._set_state(ConnectionState.CLOSED)
            failures += 1
            if (
                self.max_reconnect_attempts is not None
                and failures > self.max_reconnect_attempts
            ):
                lib_logger.error(
                    f"[{self.name}] giving up after {self.max_reconnect_attempts} reconnect attempts"
                )
                return
            lib_logger.info(
                f"[{self.name}] connection closed, retrying in {self.reconnect_delay}s"
            )
            await asyncio.sleep(self.reconnect_delay)

    async def _read_loop(self, reader: asyncio.StreamReader) -> None:
        fragments = bytearray()
        fragment_opcode: Optional[int] = None

        while True:
            fin, opcode, payload = await read_ws_frame(
                reader, max_payload=self.max_message_bytes
            )

            if opcode == OPCODE_CLOSE:
                writer = self._writer
                if writer is not None and not writer.is_closing():
                    try:
                        await self._write_frame(writer, OPCODE_CLOSE, payload[:125])
                    except (ConnectionError, OSError):
                        pass
                return

            if opcode == OPCODE_PING:
                if self._writer is not None:
                    await self._write_frame(self._writer, OPCODE_PONG, payload[:125])
                continue

            if opcode == OPCODE_PONG:
                continue

            if opcode in (OPCODE_TEXT, OPCODE_BINARY):
                if fragment_opcode is not None:
                    raise WebSocketProtocolError("New message inside a fragmented one")
                if fin:
                    self._dispatch(payload)
                else:
                    fragments = bytearray(payload)
                    fragment_opcode = opcode
                continue

            if opcode == OPCODE_CONTINUATION:
                if fragment_opcode is None:
                    raise WebSocketProtocolError("Continuation without a message")
                fragments.extend(payload)
                if len(fragments) > self.max_message_bytes:
                    raise WebSocketProtocolError("Fragmented message exceeds limit")
                if fin:
                    self._dispatch(bytes(fragments))
                    fragments = bytearray()
                    fragment_opcode = None
                continue

            raise WebSocketProtocolError(f"Unsupported opcode {opcode:#x}")

    def _dispatch(self, payload: bytes) -> None:
        try:
            message = payload.decode("utf-8")
        except UnicodeDecodeError:
            lib_logger.warning(f"[{self.name}] dropped non UTF-8 message")
            return

        if self._handler is None:
            lib_logger.debug(f"[{self.name}] no handler, dropped message")
            return

        try:
            self._handler(message)
        except Exception as e:
            lib_logger.warning(f"[{self.name}] invalid message dropped: {e}")
