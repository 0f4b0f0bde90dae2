# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/evolution_bridge/config/settings.py

import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Optional

from .defaults import (
    DEFAULT_CONSENT_SCOPE,
    DEFAULT_CONTEXT_RECONNECT_DELAY,
    DEFAULT_CONTEXT_SOCKET_URL,
    DEFAULT_HOST_ID,
    DEFAULT_LEDGER_CALL_TIMEOUT,
    DEFAULT_LEDGER_RECONNECT_DELAY,
    DEFAULT_LEDGER_URL,
    DEFAULT_MAX_TOKENS_PER_TURN,
    DEFAULT_RUN_TURN_ON_START,
    DEFAULT_TURN_PERIOD_SECONDS,
)

lib_logger = logging.getLogger("evolution_bridge")

CONSENT_SCOPES = ("None", "ReadOnly", "ConservativeTuning", "FullTuning")


def _positive_float(raw: str) -> float:
    value = float(raw)
    if value <= 0:
        raise ValueError("must be > 0")
    return value


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value <= 0:
        raise ValueError("must be > 0")
    return value


def _optional_timeout(raw: str) -> Optional[float]:
    if raw.strip().lower() in ("", "none", "0"):
        return None
    return _positive_float(raw)


def _consent_scope(raw: str) -> str:
    if raw not in CONSENT_SCOPES:
        raise ValueError(f"expected one of {', '.join(CONSENT_SCOPES)}")
    return raw


def _read_env(
    env: Mapping[str, str],
    name: str,
    parse: Callable[[str], Any],
    default: Any,
) -> Any:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return parse(raw)
    except ValueError:
        lib_logger.warning(f"Invalid {name} '{raw}'. Falling back to {default}.")
        return default


@dataclass(frozen=True)
class BridgeSettings:
    """Plain initialization parameters for a LaneBridge."""

    ledger_url: str = DEFAULT_LEDGER_URL
    context_socket_url: str = DEFAULT_CONTEXT_SOCKET_URL
    host_id: str = DEFAULT_HOST_ID
    turn_period: float = DEFAULT_TURN_PERIOD_SECONDS
    max_tokens_per_turn: int = DEFAULT_MAX_TOKENS_PER_TURN
    run_turn_on_start: bool = DEFAULT_RUN_TURN_ON_START
    ledger_reconnect_delay: float = DEFAULT_LEDGER_RECONNECT_DELAY
    context_reconnect_delay: float = DEFAULT_CONTEXT_RECONNECT_DELAY
    ledger_call_timeout: Optional[float] = DEFAULT_LEDGER_CALL_TIMEOUT
    consent_scope: str = DEFAULT_CONSENT_SCOPE
    ui_webhook_url: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "BridgeSettings":
        """
        Build settings from environment variables.

        Unset variables keep their defaults; invalid values log a warning and
        fall back to the default instead of failing startup.
        """
        env = os.environ if env is None else env
        return cls(
            ledger_url=env.get("LEDGER_URL", DEFAULT_LEDGER_URL),
            context_socket_url=env.get(
                "CONTEXT_SOCKET_URL", DEFAULT_CONTEXT_SOCKET_URL
            ),
            host_id=env.get("HOST_ID", DEFAULT_HOST_ID),
            turn_period=_read_env(
                env, "TURN_PERIOD_SECONDS", _positive_float, DEFAULT_TURN_PERIOD_SECONDS
            ),
            max_tokens_per_turn=_read_env(
                env, "MAX_TOKENS_PER_TURN", _positive_int, DEFAULT_MAX_TOKENS_PER_TURN
            ),
            ledger_reconnect_delay=_read_env(
                env,
                "LEDGER_RECONNECT_DELAY",
                _positive_float,
                DEFAULT_LEDGER_RECONNECT_DELAY,
            ),
            context_reconnect_delay=_read_env(
                env,
                "CONTEXT_RECONNECT_DELAY",
                _positive_float,
                DEFAULT_CONTEXT_RECONNECT_DELAY,
            ),
            ledger_call_timeout=_read_env(
                env,
                "LEDGER_CALL_TIMEOUT",
                _optional_timeout,
                DEFAULT_LEDGER_CALL_TIMEOUT,
            ),
            consent_scope=_read_env(
                env, "CONSENT_SCOPE", _consent_scope, DEFAULT_CONSENT_SCOPE
            ),
            ui_webhook_url=env.get("UI_WEBHOOK_URL") or None,
        )

    def with_overrides(self, **overrides: Any) -> "BridgeSettings":
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)
