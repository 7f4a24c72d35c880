"""Shared type aliases used across waypoint modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Route handler: user-defined function with variable signature
Handler: TypeAlias = Callable[..., Any]

# Error responder: receives (request, error?) and returns a response value
ErrorResponder: TypeAlias = Callable[..., Any]
