# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from typing import TYPE_CHECKING

from .config import BridgeSettings
from .dispatcher import EvolutionDispatcher
from .errors import (
    BridgeError,
    DeliveryError,
    RpcDeliveryError,
    RpcError,
    RpcNotConnectedError,
    RpcRemoteError,
    RpcTimeoutError,
)
from .lane_context import LaneContext
from .ledger_rpc import LedgerRpcClient
from .models import ContextSnapshot, EvolutionFrame, EvolutionVerdict, SafetyState
from .runtime import LaneBridge
from .transport import ConnectionState, WebSocketConnection
from .turn_runner import EvolutionTurnRunner, TurnControls, TurnReport

# For type checkers, import the reference collaborators statically
# At runtime, they are lazy-loaded via __getattr__
if TYPE_CHECKING:
    from . import reference

__all__ = [
    "BridgeError",
    "BridgeSettings",
    "ConnectionState",
    "ContextSnapshot",
    "DeliveryError",
    "EvolutionDispatcher",
    "EvolutionFrame",
    "EvolutionTurnRunner",
    "EvolutionVerdict",
    "LaneBridge",
    "LaneContext",
    "LedgerRpcClient",
    "RpcDeliveryError",
    "RpcError",
    "RpcNotConnectedError",
    "RpcRemoteError",
    "RpcTimeoutError",
    "SafetyState",
    "TurnControls",
    "TurnReport",
    "WebSocketConnection",
    "reference",
]


def __getattr__(name):
    """Lazy-load the reference collaborators."""
    if name == "reference":
        from . import reference

        return reference
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
