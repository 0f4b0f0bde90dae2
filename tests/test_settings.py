# SPDX-License-Identifier: MIT

import logging

from evolution_bridge.config import (
    DEFAULT_LEDGER_URL,
    DEFAULT_MAX_TOKENS_PER_TURN,
    DEFAULT_TURN_PERIOD_SECONDS,
    BridgeSettings,
)


def test_defaults_without_environment() -> None:
    settings = BridgeSettings.from_env({})
    assert settings.ledger_url == DEFAULT_LEDGER_URL
    assert settings.turn_period == DEFAULT_TURN_PERIOD_SECONDS == 180.0
    assert settings.max_tokens_per_turn == DEFAULT_MAX_TOKENS_PER_TURN == 4
    assert settings.ledger_call_timeout is None
    assert settings.ui_webhook_url is None
    assert settings.run_turn_on_start is False


def test_environment_overrides() -> None:
    settings = BridgeSettings.from_env(
        {
            "LEDGER_URL": "wss://ledger.example/rpc",
            "CONTEXT_SOCKET_URL": "ws://grid.local/ctx",
            "HOST_ID": "host-7",
            "TURN_PERIOD_SECONDS": "30",
            "MAX_TOKENS_PER_TURN": "2",
            "LEDGER_RECONNECT_DELAY": "1.5",
            "CONTEXT_RECONNECT_DELAY": "7",
            "LEDGER_CALL_TIMEOUT": "12.5",
            "CONSENT_SCOPE": "FullTuning",
            "UI_WEBHOOK_URL": "http://ui.local/events",
        }
    )
    assert settings.ledger_url == "wss://ledger.example/rpc"
    assert settings.context_socket_url == "ws://grid.local/ctx"
    assert settings.host_id == "host-7"
    assert settings.turn_period == 30.0
    assert settings.max_tokens_per_turn == 2
    assert settings.ledger_reconnect_delay == 1.5
    assert settings.context_reconnect_delay == 7.0
    assert settings.ledger_call_timeout == 12.5
    assert settings.consent_scope == "FullTuning"
    assert settings.ui_webhook_url == "http://ui.local/events"


def test_invalid_values_fall_back_with_warning(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="evolution_bridge"):
        settings = BridgeSettings.from_env(
            {
                "TURN_PERIOD_SECONDS": "soon",
                "MAX_TOKENS_PER_TURN": "-1",
                "CONSENT_SCOPE": "Everything",
            }
        )

    assert settings.turn_period == DEFAULT_TURN_PERIOD_SECONDS
    assert settings.max_tokens_per_turn == DEFAULT_MAX_TOKENS_PER_TURN
    assert settings.consent_scope == "ConservativeTuning"
    assert "Invalid TURN_PERIOD_SECONDS 'soon'" in caplog.text
    assert "Invalid CONSENT_SCOPE 'Everything'" in caplog.text


def test_call_timeout_can_be_disabled() -> None:
    for raw in ("none", "0", ""):
        assert BridgeSettings.from_env({"LEDGER_CALL_TIMEOUT": raw}).ledger_call_timeout is None


def test_with_overrides_ignores_none() -> None:
    base = BridgeSettings(host_id="a")
    updated = base.with_overrides(host_id=None, turn_period=5.0, run_turn_on_start=True)

    assert updated.host_id == "a"
    assert updated.turn_period == 5.0
    assert updated.run_turn_on_start is True
    assert base.turn_period == DEFAULT_TURN_PERIOD_SECONDS
