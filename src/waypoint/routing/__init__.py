"""Routing — compiled route table with specificity-ordered matching.

Routes are registered during setup, compiled into regular expressions
once at registration, and frozen before the first request.
"""

from waypoint.routing.route import (
    CompiledRoute,
    Matched,
    MatchResult,
    MethodNotAllowed,
    NotFound,
    PatternPart,
    Route,
)
from waypoint.routing.router import Router, parse_pattern

__all__ = [
    "CompiledRoute",
    "MatchResult",
    "Matched",
    "MethodNotAllowed",
    "NotFound",
    "PatternPart",
    "Route",
    "Router",
    "parse_pattern",
]
