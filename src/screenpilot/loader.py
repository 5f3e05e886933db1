"""Device entrypoint loading from ``module:attr`` references."""

from __future__ import annotations

import importlib
import inspect

from loguru import logger

from screenpilot.config import Settings
from screenpilot.device import Device
from screenpilot.errors import EntrypointError


def load_entrypoint(reference: str) -> object:
    """Import the attribute named by ``module:attr`` (dotted attribute paths allowed)."""
    module_name, sep, attr_path = reference.partition(":")
    if not sep or not module_name.strip() or not attr_path.strip():
        raise EntrypointError(f"Invalid entrypoint {reference!r}, expected 'module:attr'")

    try:
        module = importlib.import_module(module_name.strip())
    except ImportError as exc:
        raise EntrypointError(f"{reference}: cannot import module {module_name!r}: {exc}") from exc

    target: object = module
    for part in attr_path.strip().split("."):
        if not hasattr(target, part):
            raise EntrypointError(f"{reference}: missing attribute {part!r}")
        target = getattr(target, part)
    if target is None:
        raise EntrypointError(f"{reference}: exported attribute must not be None")
    return target


def _accepts_argument(factory: object) -> bool:
    try:
        signature = inspect.signature(factory)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return False
    for parameter in signature.parameters.values():
        if parameter.kind in (parameter.VAR_POSITIONAL, parameter.POSITIONAL_ONLY, parameter.POSITIONAL_OR_KEYWORD):
            return True
    return False


def build_device(reference: str, settings: Settings) -> Device:
    """Instantiate the device factory at ``reference``; factories taking an argument receive the settings."""
    factory = load_entrypoint(reference)
    if not inspect.isclass(factory) and isinstance(factory, Device):
        device: object = factory
    elif callable(factory):
        try:
            device = factory(settings) if _accepts_argument(factory) else factory()
        except Exception as exc:
            raise EntrypointError(f"{reference}: device factory failed: {exc}") from exc
    else:
        raise EntrypointError(f"{reference}: expected a device or a device factory")

    if not isinstance(device, Device):
        raise EntrypointError(f"{reference}: {type(device).__name__} does not implement the device interface")
    logger.info("device.loaded entrypoint={} type={}", reference, type(device).__name__)
    return device
