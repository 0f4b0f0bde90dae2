# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/evolution_bridge/reference/traits.py

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..models import EvolutionPlane, EvolutionScope, SafetyState

# Length of one evolution window in seconds
EVOLUTION_WINDOW_SECONDS: float = 180.0

# Largest expected effect admitted per safety state (Red admits nothing)
SAFETY_EFFECT_LIMITS = {
    SafetyState.GREEN: 0.5,
    SafetyState.YELLOW: 0.25,
}


class TraitKind(str, Enum):
    """High-level neuromorphic function class."""

    NAVIGATION = "Navigation"
    SAFETY_ALERT = "SafetyAlert"
    COMMUNICATION_ASSIST = "CommunicationAssist"
    SENSORY_FILTER = "SensoryFilter"
    ATTENTION_MODULATOR = "AttentionModulator"


class ConsentScope(str, Enum):
    NONE = "None"
    READ_ONLY = "ReadOnly"  # only summaries/features may be computed
    CONSERVATIVE_TUNING = "ConservativeTuning"  # small, reversible tweaks
    FULL_TUNING = "FullTuning"  # within pre-defined safe ranges


@dataclass(frozen=True)
class TraitId:
    kind: TraitKind
    version: int


@dataclass(frozen=True)
class BudgetBands:
    """Relative lifeforce/eco budgets, each in [0, 1]."""

    lifeforce_band: float
    eco_band: float

    @classmethod
    def conservative(cls) -> "BudgetBands":
        return cls(lifeforce_band=0.25, eco_band=0.25)


@dataclass(frozen=True)
class ConsentState:
    """Live consent for one trait category."""

    trait_kind: TraitKind
    scope: ConsentScope
    granted_at: float
    expires_at: Optional[float] = None
    user_descriptor: str = ""

    def is_active(self, now: float) -> bool:
        if self.scope is ConsentScope.NONE:
            return False
        return self.expires_at is None or now < self.expires_at

    def allows_evolution(self) -> bool:
        return self.scope in (ConsentScope.CONSERVATIVE_TUNING, ConsentScope.FULL_TUNING)


@dataclass(frozen=True)
class EvolutionToken:
    """Per-turn proposal describing one reversible micro-change."""

    trait_id: TraitId
    delta_label: str  # e.g. "nav.sensitivity+0.05"
    cost_bands: BudgetBands = field(default_factory=BudgetBands.conservative)
    expected_effect_band: float = 0.0
    reversible: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def navigation_delta(
        cls, version: int, label: str, effect_band: float
    ) -> "EvolutionToken":
        return cls(
            trait_id=TraitId(kind=TraitKind.NAVIGATION, version=version),
            delta_label=label,
            expected_effect_band=min(1.0, max(0.0, effect_band)),
        )


@dataclass(frozen=True)
class LaneProfile:
    """
    Per-lane budget: which traits may evolve and how many tokens per turn.

    The frame fields (plane through eco_impact_band) describe the evolution
    frame submitted when the host switches into this lane.
    """

    name: str
    active_traits: List[TraitKind]
    max_tokens_per_turn: int
    budget_bands: BudgetBands = field(default_factory=BudgetBands.conservative)
    plane: EvolutionPlane = EvolutionPlane.SOFTWARE_ONLY
    scope: EvolutionScope = EvolutionScope.SCHEDULER_HINT
    flop_budget: int = 1_000_000
    nJ_budget: int = 250
    eco_intent: Optional[str] = None
    latency_band: int = 1
    error_band: int = 1
    eco_impact_band: Optional[int] = None

    @classmethod
    def navigation_default(cls) -> "LaneProfile":
        return cls(
            name="navigation",
            active_traits=[TraitKind.NAVIGATION, TraitKind.SAFETY_ALERT],
            max_tokens_per_turn=4,
            plane=EvolutionPlane.NEUROMORPH_ADAPTER,
            scope=EvolutionScope.ROUTING,
            flop_budget=2_000_000,
            nJ_budget=500,
        )


@dataclass
class EvolutionWindow:
    lane_profile: LaneProfile
    safety_state: SafetyState
    opened_at: float = field(default_factory=time.time)
    duration: float = EVOLUTION_WINDOW_SECONDS
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def is_active(self, now: float) -> bool:
        elapsed = now - self.opened_at
        return 0 <= elapsed <= self.duration

    def can_accept_token(
        self,
        now: float,
        consent: Optional[ConsentState],
        applied_tokens: int,
        token: EvolutionToken,
    ) -> bool:
        """Evaluates whether a token may be applied under current safety + consent."""
        if not self.is_active(now):
            return False

        if consent is None or not consent.is_active(now) or not consent.allows_evolution():
            return False

        if token.trait_id.kind not in self.lane_profile.active_traits:
            return False

        if applied_tokens >= self.lane_profile.max_tokens_per_turn:
            return False

        limit = SAFETY_EFFECT_LIMITS.get(self.safety_state)
        if limit is None:
            return False
        return token.expected_effect_band <= limit
