# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/evolution_bridge/reference/scheduler.py

import logging
import time
from typing import Any, Callable, Optional

from ..interfaces import ContextEvent, SchedulerInterface
from ..models import SafetyState
from .traits import (
    ConsentState,
    EvolutionToken,
    EvolutionWindow,
    LaneProfile,
    TraitKind,
)

lib_logger = logging.getLogger("evolution_bridge")


class TurnScheduler(SchedulerInterface):
    """
    Host-side scheduler for 3-minute evolution windows.

    Context events can only suggest a lane; the window rotation and the
    per-token admission decision stay local.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.default_lane = LaneProfile.navigation_default()
        self.window = EvolutionWindow(
            lane_profile=self.default_lane,
            safety_state=SafetyState.GREEN,
            opened_at=clock(),
        )
        self.applied_tokens = 0

    def maybe_rotate_turn(self, now: float) -> bool:
        if self.window.is_active(now):
            return False
        self.window = EvolutionWindow(
            lane_profile=self.default_lane,
            safety_state=self.window.safety_state,
            opened_at=now,
        )
        self.applied_tokens = 0
        lib_logger.debug(f"Opened evolution window {self.window.id} ({self.default_lane.name})")
        return True

    def set_safety_state(self, state: Any) -> None:
        self.window.safety_state = SafetyState(state)

    def handle_context_event(self, event: ContextEvent) -> Optional[LaneProfile]:
        if not event.signature_valid:
            lib_logger.debug(f"Unsigned context event from {event.issued_by} ignored")
            return None

        bands = self.default_lane.budget_bands
        if event.kind == "NavigationSuggested":
            lane = LaneProfile.navigation_default()
        elif event.kind == "SafetyHighPriority":
            lane = LaneProfile(
                name="safety",
                active_traits=[TraitKind.SAFETY_ALERT],
                max_tokens_per_turn=6,
                budget_bands=bands,
            )
        elif event.kind == "CommunicationAssist":
            lane = LaneProfile(
                name="communication",
                active_traits=[TraitKind.COMMUNICATION_ASSIST],
                max_tokens_per_turn=3,
                budget_bands=bands,
            )
        else:
            lib_logger.debug(f"Unknown context event kind {event.kind!r} ignored")
            return None

        # Takes effect at the next window rotation.
        self.default_lane = lane
        return lane

    def try_apply_token(
        self, now: float, consent: Optional[ConsentState], token: EvolutionToken
    ) -> bool:
        if not self.window.can_accept_token(now, consent, self.applied_tokens, token):
            return False
        self.applied_tokens += 1
        return True
