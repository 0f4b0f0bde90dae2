# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/evolution_bridge/runtime.py

import logging
from typing import Optional

from .config import BridgeSettings
from .dispatcher import EvolutionDispatcher
from .interfaces import (
    ConsentProviderInterface,
    HapticSinkInterface,
    NavAdapterInterface,
    SchedulerInterface,
    UiSinkInterface,
)
from .lane_context import LaneContext
from .ledger_rpc import LedgerRpcClient
from .models import SafetyState
from .turn_runner import EvolutionTurnRunner, TurnControls
from .transport import WebSocketConnection

lib_logger = logging.getLogger("evolution_bridge")


class LaneBridge:
    """
    Wires the ledger channel, the context socket and the evolution turn loop.

    The two connections and the turn loop are independent: losing either
    socket never pauses the loop, it only makes ledger calls fail until the
    ledger connection is back.
    """

    def __init__(
        self,
        settings: BridgeSettings,
        scheduler: SchedulerInterface,
        nav_adapter: NavAdapterInterface,
        consent_provider: ConsentProviderInterface,
        ui_sink: Optional[UiSinkInterface] = None,
        haptic_sink: Optional[HapticSinkInterface] = None,
    ):
        self.settings = settings
        self.consent_provider = consent_provider

        self.ledger_connection = WebSocketConnection(
            settings.ledger_url,
            name="ledger",
            reconnect_delay=settings.ledger_reconnect_delay,
        )
        self.context_connection = WebSocketConnection(
            settings.context_socket_url,
            name="lanes",
            reconnect_delay=settings.context_reconnect_delay,
        )

        self.rpc = LedgerRpcClient(
            self.ledger_connection, call_timeout=settings.ledger_call_timeout
        )
        self.context = LaneContext(scheduler)
        self.context_connection.set_message_handler(self.context.handle_message)

        self.controls = TurnControls(
            consent=consent_provider.default_consent(settings.consent_scope),
            safety_state=SafetyState.GREEN,
        )
        self.turn_runner = EvolutionTurnRunner(
            scheduler,
            nav_adapter,
            self.context,
            self.controls,
            turn_period=settings.turn_period,
            max_tokens=settings.max_tokens_per_turn,
            run_on_start=settings.run_turn_on_start,
        )
        self.dispatcher = EvolutionDispatcher(
            self.rpc,
            settings.host_id,
            ui_sink=ui_sink,
            haptic_sink=haptic_sink,
        )

    def update_consent(self, scope: str) -> None:
        """Replace the live consent, e.g. after the user changed it in the UI."""
        self.controls.consent = self.consent_provider.default_consent(scope)
        lib_logger.info(f"Navigation consent set to {scope}")

    def set_safety_state(self, state: SafetyState) -> None:
        self.controls.safety_state = SafetyState(state)

    async def start(self) -> None:
        self.ledger_connection.start()
        self.context_connection.start()
        self.turn_runner.start()

    async def stop(self) -> None:
        await self.turn_runner.stop()
        await self.context_connection.stop()
        await self.context.drain()
        await self.ledger_connection.stop()
