# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/evolution_bridge/errors.py

from typing import Any, Optional


class BridgeError(Exception):
    """Base class for all errors raised by the evolution bridge."""


class DeliveryError(BridgeError):
    """A message could not be handed to the underlying connection."""


class HandshakeError(DeliveryError):
    """The WebSocket opening handshake was refused or malformed."""


class RpcError(BridgeError):
    """Base class for failed ledger RPC calls."""

    def __init__(self, message: str, method: Optional[str] = None):
        super().__init__(message)
        self.method = method


class RpcNotConnectedError(RpcError):
    """Raised before a call is registered because the transport is down."""


class RpcDeliveryError(RpcError):
    """The request was registered but the transport failed to send it."""


class RpcTimeoutError(RpcError):
    """No response arrived within the configured call timeout."""


class RpcRemoteError(RpcError):
    """
    The ledger answered with an ``error`` member.

    The remote payload is kept verbatim in ``error`` so callers can inspect
    codes and data exactly as the ledger sent them.
    """

    def __init__(self, error: Any, method: Optional[str] = None):
        message = "Ledger returned an error"
        if isinstance(error, dict) and error.get("message"):
            message = f"Ledger returned an error: {error['message']}"
        super().__init__(message, method=method)
        self.error = error


class WebSocketProtocolError(DeliveryError):
    """The peer sent a frame the connection cannot accept."""
