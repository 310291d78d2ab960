"""
Intelligence Package.

============================================================
PURPOSE
============================================================

The single downstream operation of the engine:

    snapshot = await orchestrator.assess(customer)

Fans out to providers through the gateway, classifies news text,
scores customer health and returns an immutable snapshot. Provider
failures degrade the snapshot; they never raise.

============================================================
"""

from .config import EngineConfig
from .logging_setup import JsonFormatter, setup_logging
from .models import (
    VALID_TRANSITIONS,
    AssessmentState,
    Customer,
    CustomerTier,
    FetchStatus,
    IntelligenceSnapshot,
    InvalidCustomerError,
    InvalidTransitionError,
    ProviderFetchResult,
)
from .orchestrator import (
    AssessmentAbortedError,
    AssessmentHandle,
    IntelligenceOrchestrator,
)
from .sources import DataSource, ScoringInput, default_sources


__all__ = [
    # Orchestrator
    "IntelligenceOrchestrator",
    "AssessmentHandle",
    "AssessmentAbortedError",
    # Models
    "AssessmentState",
    "VALID_TRANSITIONS",
    "InvalidTransitionError",
    "FetchStatus",
    "ProviderFetchResult",
    "IntelligenceSnapshot",
    "Customer",
    "CustomerTier",
    "InvalidCustomerError",
    # Sources
    "DataSource",
    "ScoringInput",
    "default_sources",
    # Config / logging
    "EngineConfig",
    "setup_logging",
    "JsonFormatter",
]
