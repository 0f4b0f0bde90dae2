# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/evolution_bridge/turn_runner.py

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from .config import (
    DEFAULT_MAX_TOKENS_PER_TURN,
    DEFAULT_RUN_TURN_ON_START,
    DEFAULT_TURN_PERIOD_SECONDS,
)
from .interfaces import (
    ApplyResult,
    NavAdapterInterface,
    SchedulerInterface,
    token_label,
)
from .lane_context import LaneContext
from .models import ContextSnapshot, SafetyState
from .utils import maybe_await

lib_logger = logging.getLogger("evolution_bridge")


@dataclass
class TurnControls:
    """
    Live consent and safety state shared with the UI and telemetry.

    Writers replace the fields at any time; the turn loop reads them without
    a lock, so a change can be seen by a later token in the same turn.
    """

    consent: Any = None
    safety_state: SafetyState = SafetyState.GREEN


@dataclass
class TurnReport:
    turn_seq: int
    started_at: float
    context: ContextSnapshot
    proposed: List[str] = field(default_factory=list)
    applied: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    params_before: Any = None
    params_after: Any = None
    finished_at: Optional[float] = None


class EvolutionTurnRunner:
    """
    Runs one evolution turn per fixed period.

    Each turn rotates the scheduler window, pushes the safety state,
    snapshots the navigation context, asks the nav adapter for candidate
    tokens, and applies only the tokens the scheduler admits. Tokens are
    processed strictly in proposal order; a denied or failed token never
    stops the remaining ones.

    The loop sleeps for the period and then awaits the whole turn, so a slow
    turn delays the next one instead of overlapping it.
    """

    def __init__(
        self,
        scheduler: SchedulerInterface,
        nav_adapter: NavAdapterInterface,
        context: LaneContext,
        controls: TurnControls,
        turn_period: float = DEFAULT_TURN_PERIOD_SECONDS,
        max_tokens: int = DEFAULT_MAX_TOKENS_PER_TURN,
        run_on_start: bool = DEFAULT_RUN_TURN_ON_START,
        clock: Callable[[], float] = time.time,
    ):
        self._scheduler = scheduler
        self._nav_adapter = nav_adapter
        self._context = context
        self.controls = controls
        self.turn_period = turn_period
        self.max_tokens = max_tokens
        self.run_on_start = run_on_start
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self.turn_seq = 0
        self.last_report: Optional[TurnReport] = None

    def start(self):
        """Starts the periodic turn loop."""
        if self._task is None:
            self._task = asyncio.create_task(self._run())
            lib_logger.info(
                f"Evolution turn loop started. Period: {self.turn_period} seconds, "
                f"max tokens per turn: {self.max_tokens}."
            )

    async def stop(self):
        """Stops the turn loop. A turn in progress is cancelled."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            lib_logger.info("Evolution turn loop stopped.")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_turn(self) -> TurnReport:
        """Run a single evolution turn and return what happened."""
        now = self._clock()
        self.turn_seq += 1

        await maybe_await(self._scheduler.maybe_rotate_turn(now))
        await maybe_await(self._scheduler.set_safety_state(self.controls.safety_state))

        context = self._context.snapshot()
        report = TurnReport(turn_seq=self.turn_seq, started_at=now, context=context)

        report.params_before = await maybe_await(self._nav_adapter.read_params())
        lib_logger.info(f"[lanes] nav params before turn: {report.params_before}")

        tokens = await maybe_await(
            self._nav_adapter.propose_tokens(now, context, self.max_tokens)
        )
        tokens = list(tokens or [])
        report.proposed = [token_label(token) for token in tokens]

        for token in tokens:
            label = token_label(token)

            allowed = await maybe_await(
                self._scheduler.try_apply_token(now, self.controls.consent, token)
            )
            if not allowed:
                lib_logger.info(f"[lanes] token rejected by scheduler: {label}")
                report.rejected.append(label)
                continue

            result = await self._apply(token, label)
            if not result.ok:
                lib_logger.warning(f"[lanes] failed to apply token: {label} {result.err}")
                report.failed.append(label)
                continue

            lib_logger.info(f"[lanes] applied token: {label}")
            report.applied.append(label)

        report.params_after = await maybe_await(self._nav_adapter.read_params())
        lib_logger.info(f"[lanes] nav params after turn: {report.params_after}")

        report.finished_at = self._clock()
        self.last_report = report
        return report

    async def _apply(self, token: Any, label: str) -> ApplyResult:
        try:
            result = await maybe_await(self._nav_adapter.apply_token(token))
        except Exception as e:
            return ApplyResult(ok=False, err=str(e))

        if isinstance(result, ApplyResult):
            return result
        if isinstance(result, dict):
            return ApplyResult(ok=bool(result.get("ok")), err=result.get("err"))
        lib_logger.debug(f"[lanes] apply_token returned {result!r} for {label}")
        return ApplyResult(ok=bool(result))

    async def _run(self):
        """The main loop: one turn per period, never overlapping."""
        if self.run_on_start:
            await self._run_turn_logged()

        while True:
            try:
                await asyncio.sleep(self.turn_period)
                await self.run_turn()
            except asyncio.CancelledError:
                break
            except Exception as e:
                lib_logger.error(f"Unexpected error in evolution turn {self.turn_seq}: {e}")

    async def _run_turn_logged(self):
        try:
            await self.run_turn()
        except Exception as e:
            lib_logger.error(f"Error in evolution turn {self.turn_seq} (initial run): {e}")
