# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/evolution_bridge/reference/consent.py

import time
from typing import Callable, Optional

from ..interfaces import ConsentProviderInterface
from .traits import ConsentScope, ConsentState, TraitKind


class ReferenceConsentProvider(ConsentProviderInterface):
    """Builds navigation consent states for a scope chosen by the user."""

    def __init__(
        self,
        trait_kind: TraitKind = TraitKind.NAVIGATION,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.trait_kind = trait_kind
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def default_consent(self, scope: str) -> ConsentState:
        now = self._clock()
        resolved = ConsentScope(scope)
        return ConsentState(
            trait_kind=self.trait_kind,
            scope=resolved,
            granted_at=now,
            expires_at=None if self.ttl_seconds is None else now + self.ttl_seconds,
            user_descriptor=f"{self.trait_kind.value}:{resolved.value}",
        )
