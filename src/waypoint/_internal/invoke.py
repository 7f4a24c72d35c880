"""Invoke helper — call sync or async callables uniformly.

Handlers, verifiers, and error responders can be ``def`` or
``async def``. This module keeps the sync/async check in one place::

    result = await invoke(handler, *args, **kwargs)
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it's awaitable."""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
