"""
Services Module - Response resolution service
=============================================

This module provides the resolver that sequences the lexical and
semantic tiers and the general fallback.
"""

from .resolver import (
    ResponseResolver,
    ResolutionResult,
    ResponderResult,
    EngineState,
)

__all__ = [
    "ResponseResolver",
    "ResolutionResult",
    "ResponderResult",
    "EngineState",
]
