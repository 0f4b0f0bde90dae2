# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/evolution_bridge/ledger_rpc.py

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from pydantic import ValidationError

from .config import DEFAULT_LEDGER_CALL_TIMEOUT
from .errors import (
    DeliveryError,
    RpcDeliveryError,
    RpcNotConnectedError,
    RpcRemoteError,
    RpcTimeoutError,
)
from .models import RpcRequest, RpcResponse

lib_logger = logging.getLogger("evolution_bridge")


class RpcTransport(Protocol):
    """What the RPC layer needs from a connection."""

    @property
    def connected(self) -> bool: ...

    def set_message_handler(self, handler: Any) -> None: ...

    async def send(self, message: str) -> None: ...


@dataclass
class PendingCall:
    id: int
    method: str
    future: "asyncio.Future[Any]"


class LedgerRpcClient:
    """
    JSON-RPC 2.0 client multiplexing concurrent calls over one transport.

    Every call gets the next integer id and a PendingCall entry. The entry is
    removed exactly once: when a response with the same id arrives, when the
    transport fails to send the request, or (only with ``call_timeout`` set)
    when the caller's timeout expires. Calls still pending when the
    connection drops stay pending across the reconnect.
    """

    def __init__(
        self,
        transport: RpcTransport,
        call_timeout: Optional[float] = DEFAULT_LEDGER_CALL_TIMEOUT,
    ):
        self._transport = transport
        self.call_timeout = call_timeout
        self._pending: Dict[int, PendingCall] = {}
        self._next_id = 1
        transport.set_message_handler(self.handle_message)

    @property
    def connected(self) -> bool:
        return self._transport.connected

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def pending_ids(self) -> list:
        return sorted(self._pending)

    async def call(self, method: str, params: Any = None) -> Any:
        """
        Send a request and wait for its response.

        Returns the remote ``result``. Raises RpcNotConnectedError when the
        transport is down (nothing is registered), RpcDeliveryError when the
        send fails, RpcRemoteError with the remote ``error`` payload, and
        RpcTimeoutError if a call timeout is configured and expires.
        """
        if not self._transport.connected:
            raise RpcNotConnectedError("Ledger RPC not connected", method=method)

        request_id = self._next_id
        self._next_id += 1

        envelope = RpcRequest(id=request_id, method=method, params=params)
        raw = envelope.model_dump_json()

        future: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()
        self._pending[request_id] = PendingCall(
            id=request_id, method=method, future=future
        )

        try:
            await self._transport.send(raw)
        except DeliveryError as e:
            self._pending.pop(request_id, None)
            raise RpcDeliveryError(str(e), method=method) from e

        lib_logger.debug(f"RPC #{request_id} {method} sent")

        if self.call_timeout is None:
            return await future

        try:
            return await asyncio.wait_for(future, self.call_timeout)
        except asyncio.TimeoutError:
            self._pending.pop(request_id, None)
            raise RpcTimeoutError(
                f"No response to #{request_id} within {self.call_timeout}s",
                method=method,
            ) from None

    def handle_message(self, raw: str) -> None:
        """Settle the pending call matching an inbound response, if any."""
        try:
            message = json.loads(raw)
        except json.JSONDecodeError as e:
            lib_logger.warning(f"Ledger sent malformed JSON, dropped: {e}")
            return

        if not isinstance(message, dict):
            lib_logger.debug("Ledger sent a non-object message, ignored")
            return

        try:
            response = RpcResponse.model_validate(message)
        except ValidationError:
            lib_logger.debug(f"Ledger response with malformed id ignored: {message.get('id')!r}")
            return

        if response.id is None:
            return

        pending = self._pending.pop(response.id, None)
        if pending is None:
            lib_logger.debug(f"Response for unknown RPC #{response.id} ignored")
            return

        if pending.future.done():
            # Caller stopped waiting (cancelled); nothing left to settle.
            return

        if response.is_error:
            lib_logger.debug(f"RPC #{pending.id} {pending.method} rejected by ledger")
            pending.future.set_exception(
                RpcRemoteError(response.error, method=pending.method)
            )
        else:
            lib_logger.debug(f"RPC #{pending.id} {pending.method} resolved")
            pending.future.set_result(response.result)
