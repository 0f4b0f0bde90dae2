# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/evolution_bridge/reference/navigation.py

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List

from ..interfaces import ApplyResult, NavAdapterInterface
from ..models import ContextSnapshot
from .traits import EvolutionToken, TraitId, TraitKind

lib_logger = logging.getLogger("evolution_bridge")

# Context level above which the adapter proposes a compensating token
PRESSURE_THRESHOLD = 0.6

# Delta label -> (parameter, step)
DELTA_GRAMMAR = {
    "nav.sensitivity+0.05": ("sensitivity_band", 0.05),
    "nav.sensitivity-0.05": ("sensitivity_band", -0.05),
    "nav.suppression+0.05": ("suppression_band", 0.05),
    "nav.suppression-0.05": ("suppression_band", -0.05),
}


@dataclass
class NavigationParams:
    spike_rate_hz: float = 20.0
    sensitivity_band: float = 0.5  # sensitivity to obstacles
    suppression_band: float = 0.2  # suppression of non-critical stimuli

    def clamp(self) -> None:
        self.spike_rate_hz = min(200.0, max(0.0, self.spike_rate_hz))
        self.sensitivity_band = min(1.0, max(0.0, self.sensitivity_band))
        self.suppression_band = min(1.0, max(0.0, self.suppression_band))


class LocalNavigationAdapter(NavAdapterInterface):
    """
    Reference adapter keeping navigation parameters in local fields.

    Tokens use a minimal, auditable delta grammar (see DELTA_GRAMMAR);
    anything else is refused.
    """

    def __init__(self, version: int = 1):
        self.trait_id = TraitId(kind=TraitKind.NAVIGATION, version=version)
        self.params = NavigationParams()

    def read_params(self) -> Dict[str, float]:
        return asdict(self.params)

    def propose_tokens(
        self, now: float, context: ContextSnapshot, max_tokens: int
    ) -> List[EvolutionToken]:
        tokens: List[EvolutionToken] = []
        if max_tokens <= 0:
            return tokens

        if context.obstacle_density > PRESSURE_THRESHOLD:
            tokens.append(self._token("nav.sensitivity+0.05", 0.15))

        if (
            context.ambient_noise > PRESSURE_THRESHOLD
            or context.crowd_pressure > PRESSURE_THRESHOLD
        ):
            tokens.append(self._token("nav.suppression+0.05", 0.15))

        return tokens[:max_tokens]

    def apply_token(self, token: Any) -> ApplyResult:
        label = getattr(token, "delta_label", None)
        rule = DELTA_GRAMMAR.get(label)
        if rule is None:
            return ApplyResult(ok=False, err=f"unsupported delta_label: {label}")

        name, step = rule
        setattr(self.params, name, getattr(self.params, name) + step)
        self.params.clamp()
        return ApplyResult(ok=True)

    def _token(self, label: str, effect_band: float) -> EvolutionToken:
        return EvolutionToken.navigation_delta(self.trait_id.version, label, effect_band)
