# SPDX-License-Identifier: MIT

from __future__ import annotations

import asyncio
import json
import logging

from evolution_bridge.interfaces import ContextEvent
from evolution_bridge.lane_context import LaneContext
from evolution_bridge.models import ContextSnapshot, normalize_heading


class _RecordingScheduler:
    def __init__(self) -> None:
        self.events: list[ContextEvent] = []

    def maybe_rotate_turn(self, now):
        pass

    def set_safety_state(self, state):
        pass

    def handle_context_event(self, event):
        self.events.append(event)

    def try_apply_token(self, now, consent, token):
        return True


def _context(clock_value: float = 1000.0) -> tuple[LaneContext, _RecordingScheduler]:
    scheduler = _RecordingScheduler()
    return LaneContext(scheduler, clock=lambda: clock_value), scheduler


def test_env_summary_clamps_ratios_and_normalizes_heading() -> None:
    context, _ = _context()
    context.handle_message(
        json.dumps(
            {
                "type": "env_summary",
                "obstacle_density": 1.5,
                "ambient_noise": -0.2,
                "crowd_pressure": 0.4,
                "requested_heading_deg": -30,
            }
        )
    )

    snapshot = context.snapshot()
    assert snapshot.obstacle_density == 1.0
    assert snapshot.ambient_noise == 0.0
    assert snapshot.crowd_pressure == 0.4
    assert snapshot.requested_heading_deg == 330.0


def test_env_summary_heading_wraps_above_full_turn() -> None:
    context, _ = _context()
    context.handle_context_message(
        {"type": "env_summary", "requested_heading_deg": 725}
    )
    assert context.snapshot().requested_heading_deg == 5.0


def test_normalize_heading_stays_below_360() -> None:
    assert normalize_heading(360.0) == 0.0
    assert normalize_heading(-360.0) == 0.0
    assert 0.0 <= normalize_heading(-1e-20) < 360.0


def test_env_summary_missing_and_null_fields_default_to_zero() -> None:
    context, _ = _context()
    context.handle_context_message(
        {"type": "env_summary", "obstacle_density": None, "crowd_pressure": 0.7}
    )

    assert context.snapshot() == ContextSnapshot(
        obstacle_density=0.0,
        ambient_noise=0.0,
        crowd_pressure=0.7,
        requested_heading_deg=0.0,
    )


def test_env_summary_replaces_snapshot_wholesale() -> None:
    context, _ = _context()
    context.handle_context_message(
        {
            "type": "env_summary",
            "obstacle_density": 0.9,
            "ambient_noise": 0.8,
            "crowd_pressure": 0.7,
            "requested_heading_deg": 90,
        }
    )
    context.handle_context_message({"type": "env_summary", "ambient_noise": 0.1})

    snapshot = context.snapshot()
    assert snapshot.obstacle_density == 0.0
    assert snapshot.ambient_noise == 0.1
    assert snapshot.crowd_pressure == 0.0
    assert snapshot.requested_heading_deg == 0.0


def test_snapshot_handed_out_is_not_changed_by_later_summaries() -> None:
    context, _ = _context()
    context.handle_context_message({"type": "env_summary", "obstacle_density": 0.3})
    taken = context.snapshot()

    context.handle_context_message({"type": "env_summary", "obstacle_density": 0.9})

    assert taken.obstacle_density == 0.3
    assert context.snapshot().obstacle_density == 0.9


def test_non_numeric_env_summary_is_dropped_and_previous_snapshot_kept() -> None:
    context, _ = _context()
    context.handle_context_message({"type": "env_summary", "obstacle_density": 0.5})
    context.handle_context_message(
        {"type": "env_summary", "obstacle_density": "very dense"}
    )
    assert context.snapshot().obstacle_density == 0.5


def test_lane_suggestion_is_forwarded_with_local_receipt_time() -> None:
    context, scheduler = _context(clock_value=4242.0)
    context.handle_message(
        json.dumps(
            {
                "type": "lane_suggestion",
                "kind": "NavigationSuggested",
                "issuer": "city-grid-7",
                "signature_valid": True,
                "received_at": 1.0,
            }
        )
    )

    assert scheduler.events == [
        ContextEvent(
            kind="NavigationSuggested",
            issued_by="city-grid-7",
            signature_valid=True,
            received_at=4242.0,
        )
    ]
    assert context.events_forwarded == 1


def test_lane_suggestion_defaults_issuer_and_signature() -> None:
    context, scheduler = _context()
    context.handle_context_message({"type": "lane_suggestion", "kind": "SafetyHighPriority"})

    event = scheduler.events[0]
    assert event.issued_by == "unknown"
    assert event.signature_valid is False


def test_lane_suggestion_does_not_touch_snapshot() -> None:
    context, _ = _context()
    context.handle_context_message({"type": "env_summary", "crowd_pressure": 0.6})
    context.handle_context_message({"type": "lane_suggestion", "kind": "CommunicationAssist"})
    assert context.snapshot().crowd_pressure == 0.6


def test_unknown_types_and_invalid_payloads_are_ignored() -> None:
    context, scheduler = _context()
    context.handle_message("{broken json")
    context.handle_message(json.dumps(["env_summary"]))
    context.handle_context_message({"type": "weather", "obstacle_density": 1.0})
    context.handle_context_message({"obstacle_density": 1.0})

    assert scheduler.events == []
    assert context.snapshot() == ContextSnapshot()


def test_non_finite_env_summary_is_dropped() -> None:
    context, _ = _context()
    context.handle_context_message({"type": "env_summary", "obstacle_density": 0.5})

    context.handle_message('{"type": "env_summary", "requested_heading_deg": Infinity}')
    context.handle_message('{"type": "env_summary", "obstacle_density": NaN}')

    assert context.snapshot() == ContextSnapshot(obstacle_density=0.5)


class _AsyncScheduler(_RecordingScheduler):
    def __init__(self, fail: bool = False) -> None:
        super().__init__()
        self.fail = fail

    async def handle_context_event(self, event):
        await asyncio.sleep(0)
        if self.fail:
            raise RuntimeError("scheduler down")
        self.events.append(event)


def test_async_scheduler_receives_events_in_order() -> None:
    async def scenario():
        scheduler = _AsyncScheduler()
        context = LaneContext(scheduler, clock=lambda: 7.0)
        for kind in ("NavigationSuggested", "SafetyHighPriority"):
            context.handle_context_message(
                {"type": "lane_suggestion", "kind": kind, "signature_valid": True}
            )
        await context.drain()
        return scheduler.events, context

    events, context = asyncio.run(scenario())
    assert [event.kind for event in events] == ["NavigationSuggested", "SafetyHighPriority"]
    assert context._event_tasks == set()


def test_async_scheduler_failure_is_logged(caplog) -> None:
    async def scenario():
        context = LaneContext(_AsyncScheduler(fail=True), clock=lambda: 7.0)
        context.handle_context_message({"type": "lane_suggestion", "kind": "NavigationSuggested"})
        await context.drain()
        return context

    with caplog.at_level(logging.ERROR, logger="evolution_bridge"):
        context = asyncio.run(scenario())

    assert "scheduler down" in caplog.text
    assert context._event_tasks == set()
