# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .defaults import (
    DEFAULT_CONSENT_SCOPE,
    DEFAULT_CONTEXT_RECONNECT_DELAY,
    DEFAULT_CONTEXT_SOCKET_URL,
    DEFAULT_HOST_ID,
    DEFAULT_LEDGER_CALL_TIMEOUT,
    DEFAULT_LEDGER_RECONNECT_DELAY,
    DEFAULT_LEDGER_URL,
    DEFAULT_MAX_MESSAGE_BYTES,
    DEFAULT_MAX_RECONNECT_ATTEMPTS,
    DEFAULT_MAX_TOKENS_PER_TURN,
    DEFAULT_RUN_TURN_ON_START,
    DEFAULT_TURN_PERIOD_SECONDS,
    DEFAULT_UI_WEBHOOK_TIMEOUT,
)
from .settings import CONSENT_SCOPES, BridgeSettings

__all__ = [
    "BridgeSettings",
    "CONSENT_SCOPES",
    "DEFAULT_CONSENT_SCOPE",
    "DEFAULT_CONTEXT_RECONNECT_DELAY",
    "DEFAULT_CONTEXT_SOCKET_URL",
    "DEFAULT_HOST_ID",
    "DEFAULT_LEDGER_CALL_TIMEOUT",
    "DEFAULT_LEDGER_RECONNECT_DELAY",
    "DEFAULT_LEDGER_URL",
    "DEFAULT_MAX_MESSAGE_BYTES",
    "DEFAULT_MAX_RECONNECT_ATTEMPTS",
    "DEFAULT_MAX_TOKENS_PER_TURN",
    "DEFAULT_RUN_TURN_ON_START",
    "DEFAULT_TURN_PERIOD_SECONDS",
    "DEFAULT_UI_WEBHOOK_TIMEOUT",
]
