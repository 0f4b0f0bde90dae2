# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Pydantic models for the ledger JSON-RPC channel and the context socket.

These models define the envelopes exchanged with the inner ledger, the
evolution frame submitted for a verdict, and the low-dimensional navigation
context that every evolution turn works from.
"""

import math
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, StrictInt

JSONRPC_VERSION = "2.0"


class SafetyState(str, Enum):
    """Safety state derived from subjective and physiological signals."""

    GREEN = "Green"
    YELLOW = "Yellow"
    RED = "Red"


class EvolutionVerdict(str, Enum):
    SAFE = "Safe"
    DEFER = "Defer"
    DENY_HARD_STOP = "DenyHardStop"


class EvolutionPlane(str, Enum):
    SOFTWARE_ONLY = "SoftwareOnly"
    NEUROMORPH_ADAPTER = "NeuromorphAdapter"
    ORGANIC_CPU_TILE = "OrganicCpuTile"


class EvolutionScope(str, Enum):
    WEIGHTS = "Weights"
    ROUTING = "Routing"
    IO_ADAPTER = "IoAdapter"
    SCHEDULER_HINT = "SchedulerHint"


# --- JSON-RPC envelopes ---
class RpcRequest(BaseModel):
    """JSON-RPC 2.0 request envelope."""

    jsonrpc: str = JSONRPC_VERSION
    id: int
    method: str
    params: Any = None


class RpcResponse(BaseModel):
    """
    JSON-RPC 2.0 response envelope.

    ``id`` is strict so that booleans, strings and floats never match a
    pending call. Extra members are tolerated.
    """

    model_config = ConfigDict(extra="allow")

    jsonrpc: Optional[str] = None
    id: Optional[StrictInt] = None
    result: Any = None
    error: Any = None

    @property
    def is_error(self) -> bool:
        return "error" in self.model_fields_set and self.error is not None


# --- Navigation context ---
def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def normalize_heading(degrees: float) -> float:
    value = degrees % 360.0
    if value < 0:
        value += 360.0
    # Tiny negative inputs round up to exactly 360.0
    if value >= 360.0:
        value = 0.0
    return value


def _summary_field(message: Mapping[str, Any], name: str) -> float:
    value = message.get(name)
    if value is None:
        return 0.0
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{name} is not a finite number: {value!r}")
    return number


class ContextSnapshot(BaseModel):
    """High-level environmental summary. Deliberately low-dimensional."""

    model_config = ConfigDict(frozen=True)

    obstacle_density: float = 0.0
    ambient_noise: float = 0.0
    crowd_pressure: float = 0.0
    requested_heading_deg: float = 0.0

    @classmethod
    def from_summary(cls, message: Mapping[str, Any]) -> "ContextSnapshot":
        """
        Build a snapshot from an ``env_summary`` message.

        Ratios are clamped into [0, 1], the heading is normalized into
        [0, 360) and missing or null fields default to 0.0. Raises
        ValueError/TypeError for values that are not finite numbers.
        """
        return cls(
            obstacle_density=clamp01(_summary_field(message, "obstacle_density")),
            ambient_noise=clamp01(_summary_field(message, "ambient_noise")),
            crowd_pressure=clamp01(_summary_field(message, "crowd_pressure")),
            requested_heading_deg=normalize_heading(
                _summary_field(message, "requested_heading_deg")
            ),
        )


# --- Evolution frames ---
class EvolutionCost(BaseModel):
    model_config = ConfigDict(frozen=True)

    flop_budget: int
    nJ_budget: int
    eco_intent: Any = None


class ExpectedEffect(BaseModel):
    model_config = ConfigDict(frozen=True)

    latency_band: int
    error_band: int
    eco_impact_band: Any = None


class GuardsSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    lifeforce_band: Any = None
    safety_wave: Any = None
    daily_turn_seq: int = 0


class EvolutionFrame(BaseModel):
    """
    Typed evolution frame submitted to ``ledger.applyEvolutionFrame``.

    Immutable once built. ``frame_id`` correlates downstream UI notifications
    and is independent of the JSON-RPC request id.
    """

    model_config = ConfigDict(frozen=True)

    host: str
    frame_id: str
    plane: EvolutionPlane
    scope: EvolutionScope
    cost: EvolutionCost
    expected_effect: ExpectedEffect
    guards_snapshot: GuardsSnapshot

    def to_params(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class EvolutionDecision(BaseModel):
    """Verdict returned by the inner ledger for one frame."""

    model_config = ConfigDict(extra="allow")

    frame_id: Any = None
    verdict: Optional[str] = None
    applied_deltas: Any = None
