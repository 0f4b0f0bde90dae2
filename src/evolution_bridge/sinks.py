# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/evolution_bridge/sinks.py

import logging
from typing import Any, Dict, Optional

import httpx

from .config import DEFAULT_UI_WEBHOOK_TIMEOUT
from .interfaces import HapticSinkInterface, UiSinkInterface

lib_logger = logging.getLogger("evolution_bridge")


class WebhookUiSink(UiSinkInterface):
    """Posts each UI event as JSON to a webhook."""

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_UI_WEBHOOK_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def notify(self, event: Dict[str, Any]) -> None:
        response = await self._client.post(self.url, json=event)
        response.raise_for_status()
        lib_logger.debug(f"UI event {event.get('type')} delivered to {self.url}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class LoggingHapticSink(HapticSinkInterface):
    """Haptic sink for hosts without an actuator: records cues in the log."""

    def __init__(self):
        self.pulses = []

    def pulse(self, kind: str) -> None:
        self.pulses.append(kind)
        lib_logger.info(f"[haptic] {kind} pulse")
