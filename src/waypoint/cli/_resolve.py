"""Resolve ``"module:attribute"`` strings to the App they name."""

import importlib

from waypoint.app import App

DEFAULT_ATTRIBUTE = "app"


def resolve_app(import_string: str) -> App:
    """Import *import_string* and return the waypoint App it points at.

    ``"pkg.module"`` means ``"pkg.module:app"``. The attribute may also be
    a zero-argument factory returning an App.

    Raises:
        ModuleNotFoundError: If the module cannot be imported.
        AttributeError: If the attribute does not exist on the module.
        TypeError: If the target is not an ``App`` and does not build one.
    """
    module_path, _, attr_name = import_string.partition(":")
    target = getattr(importlib.import_module(module_path), attr_name or DEFAULT_ATTRIBUTE)

    if isinstance(target, App):
        return target
    if callable(target):
        try:
            target = target()
        except Exception as exc:
            msg = f"Factory function {import_string!r} raised an error: {exc}"
            raise TypeError(msg) from exc
        if isinstance(target, App):
            return target

    msg = f"{import_string!r} resolved to {type(target).__name__}, not a waypoint.App instance"
    raise TypeError(msg)
