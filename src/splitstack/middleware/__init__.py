"""
=============================================================================
PIPELINE STAGES
=============================================================================

Stages run in a fixed order. Each either continues or answers:

    ┌────────────────────────────┬───────┬───────────────────────────────┐
    │ Stage                      │ Order │ Terminal when                 │
    ├────────────────────────────┼───────┼───────────────────────────────┤
    │ SecurityHeadersStage       │  10   │ never                         │
    │ OriginPolicyStage          │  20   │ origin rejected, preflight    │
    │ AdmissionControlStage      │  30   │ over the window limit (429)   │
    │ AccessLogStage             │  40   │ never (logs on completion)    │
    │ BodyParserStage            │  50   │ too large (413), malformed    │
    │ RouteDispatchStage         │  60   │ route or bundle matched       │
    │ ErrorTranslationStage      │  70   │ catch-all for handler errors  │
    │ NotFoundStage              │  80   │ always (404)                  │
    └────────────────────────────┴───────┴───────────────────────────────┘
=============================================================================
"""

from .base import (
    CONTINUE,
    CatchAllStage,
    Continue,
    Outcome,
    Stage,
    StageOrder,
    StagePipeline,
    Terminal,
)
from .body import BodyParserStage
from .cors import CORSConfig, OriginPolicyStage
from .dispatch import NotFoundStage, RouteDispatchStage
from .error_handler import ErrorTranslationStage
from .logging import AccessLogStage, RequestLog
from .rate_limit import AdmissionControlStage, InMemoryWindowStore, WindowState, WindowStore
from .security import DEFAULT_SECURITY_HEADERS, SecurityHeadersStage

__all__ = [
    # Contract
    "CONTINUE",
    "CatchAllStage",
    "Continue",
    "Outcome",
    "Stage",
    "StageOrder",
    "StagePipeline",
    "Terminal",

    # Stages
    "SecurityHeadersStage",
    "DEFAULT_SECURITY_HEADERS",
    "OriginPolicyStage",
    "CORSConfig",
    "AdmissionControlStage",
    "AccessLogStage",
    "RequestLog",
    "BodyParserStage",
    "RouteDispatchStage",
    "ErrorTranslationStage",
    "NotFoundStage",

    # Rate-limit state
    "WindowStore",
    "WindowState",
    "InMemoryWindowStore",
]
