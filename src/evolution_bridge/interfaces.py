# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/evolution_bridge/interfaces.py
"""
Capability interfaces for the collaborators the bridge drives.

The bridge never looks inside these collaborators; it only sequences calls
through the contracts below. Every method may be implemented either as a
plain function or as a coroutine function - the bridge awaits results that
are awaitable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .models import ContextSnapshot, SafetyState


@dataclass(frozen=True)
class ContextEvent:
    """
    Discrete context event forwarded to the scheduler.

    ``received_at`` is the local receipt time (epoch seconds), never the
    sender's clock.
    """

    kind: str
    issued_by: str
    signature_valid: bool
    received_at: float


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of applying one token to the device."""

    ok: bool
    err: Optional[str] = None


def token_label(token: Any) -> str:
    """Human-readable label of an opaque token."""
    label = getattr(token, "delta_label", None)
    if label is None and isinstance(token, dict):
        label = token.get("delta_label")
    return str(label) if label is not None else repr(token)


class SchedulerInterface(ABC):
    """Decides whether a token may be applied in the current turn window."""

    @abstractmethod
    def maybe_rotate_turn(self, now: float) -> Any:
        """Open a new turn window if the current one has expired."""

    @abstractmethod
    def set_safety_state(self, state: SafetyState) -> Any:
        pass

    @abstractmethod
    def handle_context_event(self, event: ContextEvent) -> Any:
        pass

    @abstractmethod
    def try_apply_token(self, now: float, consent: Any, token: Any) -> Any:
        """Return True (or an awaitable of True) if the token is admitted."""


class NavAdapterInterface(ABC):
    """Proposes tokens from context and applies admitted ones to the device."""

    @abstractmethod
    def read_params(self) -> Any:
        pass

    @abstractmethod
    def propose_tokens(
        self, now: float, context: ContextSnapshot, max_tokens: int
    ) -> Any:
        """Return at most ``max_tokens`` tokens (or an awaitable of them)."""

    @abstractmethod
    def apply_token(self, token: Any) -> Any:
        """Return an ApplyResult (or an awaitable of one)."""


class ConsentProviderInterface(ABC):
    @abstractmethod
    def default_consent(self, scope: str) -> Any:
        pass


class UiSinkInterface(ABC):
    @abstractmethod
    def notify(self, event: Dict[str, Any]) -> Any:
        pass


class HapticSinkInterface(ABC):
    @abstractmethod
    def pulse(self, kind: str) -> Any:
        pass


__all__: List[str] = [
    "ApplyResult",
    "ConsentProviderInterface",
    "ContextEvent",
    "HapticSinkInterface",
    "NavAdapterInterface",
    "SchedulerInterface",
    "UiSinkInterface",
    "token_label",
]
