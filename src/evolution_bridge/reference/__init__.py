# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/evolution_bridge/reference/__init__.py

from .consent import ReferenceConsentProvider
from .navigation import LocalNavigationAdapter, NavigationParams
from .scheduler import TurnScheduler
from .traits import (
    BudgetBands,
    ConsentScope,
    ConsentState,
    EvolutionToken,
    EvolutionWindow,
    LaneProfile,
    TraitId,
    TraitKind,
)

__all__ = [
    "BudgetBands",
    "ConsentScope",
    "ConsentState",
    "EvolutionToken",
    "EvolutionWindow",
    "LaneProfile",
    "LocalNavigationAdapter",
    "NavigationParams",
    "ReferenceConsentProvider",
    "TraitId",
    "TraitKind",
    "TurnScheduler",
]
