"""
Backend factory for the prescription proof pipeline.

Backends are registered by dotted import path and loaded on demand, so the
snarkjs backend's toolchain is only touched when it is selected.
"""

from __future__ import annotations

import importlib
from typing import Any, Final

from .exceptions import ConfigurationError
from .feature_flags import get_backend_type
from .interfaces import ProofBackend

BACKEND_REGISTRY: Final[dict[str, str]] = {
    "reference": "prescription_zk.circuit.backends.reference.ReferenceBackend",
    "snarkjs": "prescription_zk.circuit.backends.snarkjs.SnarkjsBackend",
}


def _format_valid_options() -> str:
    return ", ".join(sorted(BACKEND_REGISTRY.keys()))


def _load_backend_class(backend_name: str) -> type[ProofBackend]:
    import_path = BACKEND_REGISTRY[backend_name]
    module_path, _, class_name = import_path.rpartition(".")

    try:
        module = importlib.import_module(module_path)
    except ModuleNotFoundError as exc:
        raise ImportError(
            f"Unable to import backend module {module_path!r} for {backend_name!r}"
        ) from exc

    try:
        backend_cls = getattr(module, class_name)
    except AttributeError as exc:
        raise ImportError(
            f"Backend class {class_name!r} not found in module {module_path!r}"
        ) from exc

    if not isinstance(backend_cls, type) or not issubclass(backend_cls, ProofBackend):
        raise TypeError(
            f"Backend reference {import_path!r} does not implement ProofBackend"
        )

    return backend_cls


def resolve_backend_name(*, prefer: str | None = None) -> str:
    """
    Raises:
        ConfigurationError: If the resolved name is not registered.
    """
    name = get_backend_type(prefer)
    if name not in BACKEND_REGISTRY:
        raise ConfigurationError(
            f"Backend {name!r} is not registered. Valid options: {_format_valid_options()}"
        )
    return name


def get_proof_backend(*, prefer: str | None = None, **kwargs: Any) -> ProofBackend:
    """
    Return a new proof backend instance based on feature flags.

    Args:
        prefer: Optional backend name, takes precedence over flags.
        **kwargs: Forwarded to the backend constructor.

    Raises:
        ConfigurationError: If a backend name is invalid.
        ImportError: If the backend class cannot be imported.
        TypeError: If the backend class does not implement ProofBackend.
    """
    backend_cls = _load_backend_class(resolve_backend_name(prefer=prefer))
    return backend_cls(**kwargs)
