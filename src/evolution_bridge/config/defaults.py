# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Centralized defaults for the evolution bridge.

This file contains all tunable default values for:
- The evolution turn loop (period, token budget per turn)
- The ledger RPC channel and the context channel (reconnect timing)
- Consent and host identity used when nothing else is configured

Environment variables can override these at runtime through
BridgeSettings.from_env(); CLI flags override the environment.
"""

from typing import Optional

# =============================================================================
# EVOLUTION TURN DEFAULTS
# =============================================================================

# Length of one evolution turn in seconds (a turn runs once per period)
# Override: TURN_PERIOD_SECONDS=<seconds>
DEFAULT_TURN_PERIOD_SECONDS: float = 180.0  # 3 minutes

# Maximum number of candidate tokens requested from the nav adapter per turn
# Override: MAX_TOKENS_PER_TURN=<count>
DEFAULT_MAX_TOKENS_PER_TURN: int = 4

# Whether the turn loop runs a turn immediately on start (before first period)
DEFAULT_RUN_TURN_ON_START: bool = False

# =============================================================================
# CONNECTION DEFAULTS
# =============================================================================

# Ledger JSON-RPC endpoint
# Override: LEDGER_URL=<ws url>
DEFAULT_LEDGER_URL: str = "ws://127.0.0.1:9944/ledger"

# Public-space context socket
# Override: CONTEXT_SOCKET_URL=<ws url>
DEFAULT_CONTEXT_SOCKET_URL: str = "ws://127.0.0.1:9945/context"

# Fixed delay before reconnecting after the ledger connection drops (seconds)
# Override: LEDGER_RECONNECT_DELAY=<seconds>
DEFAULT_LEDGER_RECONNECT_DELAY: float = 3.0

# Fixed delay before reconnecting after the context socket drops (seconds)
# Override: CONTEXT_RECONNECT_DELAY=<seconds>
DEFAULT_CONTEXT_RECONNECT_DELAY: float = 5.0

# Reconnect attempts before giving up. None = retry forever.
DEFAULT_MAX_RECONNECT_ATTEMPTS: Optional[int] = None

# Largest inbound message accepted by the transport (bytes)
DEFAULT_MAX_MESSAGE_BYTES: int = 1_048_576

# Timeout applied to each ledger call in seconds. None = wait forever.
# Override: LEDGER_CALL_TIMEOUT=<seconds>  (0 or "none" disables)
DEFAULT_LEDGER_CALL_TIMEOUT: Optional[float] = None

# =============================================================================
# IDENTITY & CONSENT DEFAULTS
# =============================================================================

# Host identifier stamped into every evolution frame
# Override: HOST_ID=<id>
DEFAULT_HOST_ID: str = "local-host"

# Consent scope granted for navigation at startup
# Options: "None" | "ReadOnly" | "ConservativeTuning" | "FullTuning"
# Override: CONSENT_SCOPE=<scope>
DEFAULT_CONSENT_SCOPE: str = "ConservativeTuning"

# Timeout for UI webhook posts (seconds)
DEFAULT_UI_WEBHOOK_TIMEOUT: float = 5.0
