# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/evolution_bridge/dispatcher.py
"""
Evolution decision dispatch.

Builds EvolutionFrame payloads, submits them to the inner ledger over the
RPC channel, interprets the EvolutionDecision verdict, and triggers the
downstream UI and haptic cues.
"""

import logging
import uuid
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError

from .interfaces import HapticSinkInterface, UiSinkInterface
from .ledger_rpc import LedgerRpcClient
from .models import (
    EvolutionCost,
    EvolutionDecision,
    EvolutionFrame,
    EvolutionVerdict,
    ExpectedEffect,
    GuardsSnapshot,
)
from .utils import maybe_await

lib_logger = logging.getLogger("evolution_bridge")

APPLY_EVOLUTION_FRAME = "ledger.applyEvolutionFrame"


def _field(source: Any, name: str, default: Any = None) -> Any:
    if isinstance(source, Mapping):
        return source.get(name, default)
    return getattr(source, name, default)


class EvolutionDispatcher:
    """
    Submits evolution frames to the ledger and routes the verdict.

    Both sinks are optional. A missing or failing sink never affects the
    other sink or the decision returned to the caller.
    """

    def __init__(
        self,
        rpc: LedgerRpcClient,
        host_id: str,
        ui_sink: Optional[UiSinkInterface] = None,
        haptic_sink: Optional[HapticSinkInterface] = None,
    ):
        self.rpc = rpc
        self.host_id = host_id
        self.ui_sink = ui_sink
        self.haptic_sink = haptic_sink

    def build_evolution_frame(
        self,
        *,
        plane: str,
        scope: str,
        flop_budget: int,
        nJ_budget: int,
        eco_intent: Any = None,
        latency_band: int = 0,
        error_band: int = 0,
        eco_impact_band: Any = None,
        lifeforce_band: Any = None,
        safety_wave: Any = None,
        daily_turn_seq: int = 0,
    ) -> EvolutionFrame:
        """Build a typed EvolutionFrame with a fresh frame id."""
        return EvolutionFrame(
            host=self.host_id,
            frame_id=str(uuid.uuid4()),
            plane=plane,
            scope=scope,
            cost=EvolutionCost(
                flop_budget=flop_budget,
                nJ_budget=nJ_budget,
                eco_intent=eco_intent,
            ),
            expected_effect=ExpectedEffect(
                latency_band=latency_band,
                error_band=error_band,
                eco_impact_band=eco_impact_band,
            ),
            guards_snapshot=GuardsSnapshot(
                lifeforce_band=lifeforce_band,
                safety_wave=safety_wave,
                daily_turn_seq=daily_turn_seq,
            ),
        )

    async def submit_frame(self, frame: Union[EvolutionFrame, Dict[str, Any]]) -> Any:
        """
        Submit a frame and handle the EvolutionDecision.

        Returns the decision exactly as the ledger sent it. RPC failures
        propagate to the caller.
        """
        params = frame.to_params() if isinstance(frame, EvolutionFrame) else frame
        frame_id = params.get("frame_id") if isinstance(params, Mapping) else None

        decision = await self.rpc.call(APPLY_EVOLUTION_FRAME, params)

        verdict = self._verdict_of(decision)
        if verdict is EvolutionVerdict.SAFE:
            await self._on_safe(frame_id, decision)
        elif verdict is EvolutionVerdict.DEFER:
            await self._on_defer(frame_id)
        elif verdict is EvolutionVerdict.DENY_HARD_STOP:
            await self._on_deny_hard_stop(frame_id)
        else:
            lib_logger.debug(f"Frame {frame_id}: no handler for verdict, ignored")

        return decision

    async def suggest_lane_switch(self, lane_profile: Any, context_event: Any) -> Any:
        """
        High-level lane switch helper.

        Budgets and bands come from the lane profile; guard bands come from
        the context event that triggered the switch.
        """
        frame = self.build_evolution_frame(
            plane=_field(lane_profile, "plane"),
            scope=_field(lane_profile, "scope"),
            flop_budget=_field(lane_profile, "flop_budget", 0),
            nJ_budget=_field(lane_profile, "nJ_budget", 0),
            eco_intent=_field(lane_profile, "eco_intent"),
            latency_band=_field(lane_profile, "latency_band", 0),
            error_band=_field(lane_profile, "error_band", 0),
            eco_impact_band=_field(lane_profile, "eco_impact_band"),
            lifeforce_band=_field(context_event, "lifeforce_band"),
            safety_wave=_field(context_event, "safety_wave"),
            daily_turn_seq=_field(context_event, "daily_turn_seq", 0),
        )
        return await self.submit_frame(frame)

    @staticmethod
    def _verdict_of(decision: Any) -> Optional[EvolutionVerdict]:
        if not isinstance(decision, Mapping):
            return None
        try:
            parsed = EvolutionDecision.model_validate(decision)
        except ValidationError:
            return None
        try:
            return EvolutionVerdict(parsed.verdict)
        except ValueError:
            return None

    async def _on_safe(self, frame_id: Any, decision: Mapping[str, Any]) -> None:
        await self._notify(
            {
                "type": "evolution_safe",
                "frame_id": frame_id,
                "applied_deltas": decision.get("applied_deltas"),
            }
        )
        await self._pulse("success")

    async def _on_defer(self, frame_id: Any) -> None:
        await self._notify({"type": "evolution_defer", "frame_id": frame_id})
        await self._pulse("neutral")

    async def _on_deny_hard_stop(self, frame_id: Any) -> None:
        await self._notify({"type": "evolution_denied", "frame_id": frame_id})
        await self._pulse("alert")

    async def _notify(self, event: Dict[str, Any]) -> None:
        if self.ui_sink is None:
            return
        try:
            await maybe_await(self.ui_sink.notify(event))
        except Exception as e:
            lib_logger.error(f"UI sink failed for {event['type']}: {e}")

    async def _pulse(self, kind: str) -> None:
        if self.haptic_sink is None:
            return
        try:
            await maybe_await(self.haptic_sink.pulse(kind))
        except Exception as e:
            lib_logger.error(f"Haptic sink failed for '{kind}' pulse: {e}")
