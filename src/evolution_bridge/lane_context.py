# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/evolution_bridge/lane_context.py

import asyncio
import inspect
import json
import logging
import time
from typing import Any, Callable, Mapping, Set

from .interfaces import ContextEvent, SchedulerInterface
from .models import ContextSnapshot

lib_logger = logging.getLogger("evolution_bridge")

LANE_SUGGESTION = "lane_suggestion"
ENV_SUMMARY = "env_summary"


class LaneContext:
    """
    Maps raw context-socket messages into scheduler events and the current
    navigation context.

    ``lane_suggestion`` messages are forwarded to the scheduler straight
    away, stamped with the local receipt time. ``env_summary`` messages
    replace the single current ContextSnapshot wholesale. Nothing else is
    buffered.
    """

    def __init__(
        self,
        scheduler: SchedulerInterface,
        clock: Callable[[], float] = time.time,
    ):
        self._scheduler = scheduler
        self._clock = clock
        self._snapshot = ContextSnapshot()
        self.events_forwarded = 0
        self._event_tasks: Set[asyncio.Future] = set()

    def snapshot(self) -> ContextSnapshot:
        """Current navigation context. The model is immutable, so this is a safe copy."""
        return self._snapshot

    def handle_message(self, raw: str) -> None:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError as e:
            lib_logger.warning(f"[lanes] invalid context message: {e}")
            return
        self.handle_context_message(message)

    def handle_context_message(self, message: Any) -> None:
        if not isinstance(message, Mapping):
            lib_logger.warning("[lanes] invalid context message: not an object")
            return

        kind = message.get("type")
        if kind == LANE_SUGGESTION:
            self._forward_event(message)
        elif kind == ENV_SUMMARY:
            self._replace_snapshot(message)
        else:
            lib_logger.debug(f"[lanes] ignoring context message type {kind!r}")

    def _forward_event(self, message: Mapping[str, Any]) -> None:
        event = ContextEvent(
            kind=str(message.get("kind")),
            issued_by=str(message.get("issuer") or "unknown"),
            signature_valid=bool(message.get("signature_valid")),
            received_at=self._clock(),
        )
        result = self._scheduler.handle_context_event(event)
        if inspect.isawaitable(result):
            # Started in receipt order; completion order is up to the scheduler.
            task = asyncio.ensure_future(result)
            self._event_tasks.add(task)
            task.add_done_callback(self._on_event_handled)
        self.events_forwarded += 1
        lib_logger.debug(
            f"[lanes] context event {event.kind} from {event.issued_by} "
            f"(signed={event.signature_valid})"
        )

    def _on_event_handled(self, task: asyncio.Future) -> None:
        self._event_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            lib_logger.error(f"[lanes] scheduler failed to handle context event: {error}")

    async def drain(self) -> None:
        """Wait for context events still being handled by an async scheduler."""
        if self._event_tasks:
            await asyncio.gather(*list(self._event_tasks), return_exceptions=True)

    def _replace_snapshot(self, message: Mapping[str, Any]) -> None:
        try:
            snapshot = ContextSnapshot.from_summary(message)
        except (TypeError, ValueError) as e:
            lib_logger.warning(f"[lanes] invalid env_summary dropped: {e}")
            return
        self._snapshot = snapshot
