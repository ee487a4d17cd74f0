"""
Adapter registry: automatic discovery of source adapters.

Every module in the ``sources`` package (names starting with ``_`` skipped)
is imported and each module-level :class:`SourceAdapter` instance is
registered under its ``source_id``. Sources declared as selector profiles in
the config are registered on top with :func:`register_profiles`.
"""

import importlib
import inspect
import logging
import pkgutil
from typing import Dict, Iterable, List, Optional

from .adapter import SelectorAdapter, SelectorProfile, SourceAdapter
from .errors import UnknownSourceError

logger = logging.getLogger(__name__)

SOURCES_PACKAGE = "sources"

# Global registry of discovered adapters
_REGISTRY: Dict[str, SourceAdapter] = {}


def _register(adapter: SourceAdapter) -> None:
    key = adapter.source_id.lower()
    if key in _REGISTRY and _REGISTRY[key] is not adapter:
        logger.warning(f"Adapter for '{key}' replaced by {adapter!r}")
    _REGISTRY[key] = adapter
    logger.debug(f"Registered adapter: {key}")


def refresh_registry(package: str = SOURCES_PACKAGE) -> None:
    """Scan ``package`` and register every adapter instance found."""
    _REGISTRY.clear()

    try:
        pkg = importlib.import_module(package)
    except ImportError as e:
        logger.warning(f"Sources package '{package}' could not be imported: {e}")
        return

    module_count = 0
    for info in pkgutil.iter_modules(pkg.__path__):
        if info.name.startswith("_"):
            continue

        full_name = f"{package}.{info.name}"
        try:
            mod = importlib.import_module(full_name)
        except Exception as e:
            logger.error(f"Failed to load module {full_name}: {e}")
            continue
        module_count += 1

        for _, obj in inspect.getmembers(mod, lambda o: isinstance(o, SourceAdapter)):
            _register(obj)

    logger.info(f"Source discovery complete: {module_count} modules, {len(_REGISTRY)} adapters")


def register_profiles(profiles: Iterable[SelectorProfile]) -> List[str]:
    """Register a :class:`SelectorAdapter` per profile; returns their ids."""
    if not _REGISTRY:
        refresh_registry()
    ids = []
    for profile in profiles:
        adapter = SelectorAdapter(profile)
        _register(adapter)
        ids.append(adapter.source_id)
    return ids


def get(source_id: str) -> SourceAdapter:
    """Get an adapter by source id (case-insensitive).

    Raises:
        UnknownSourceError: If no adapter is registered under that id
    """
    if not _REGISTRY:
        refresh_registry()

    key = source_id.strip().lower()
    if key not in _REGISTRY:
        raise UnknownSourceError(source_id, available=sorted(_REGISTRY))
    return _REGISTRY[key]


def select(source_ids: Optional[Iterable[str]] = None) -> List[SourceAdapter]:
    """Adapters for ``source_ids`` in the given order, or all of them."""
    if source_ids is None:
        return list(list_available().values())
    return [get(s) for s in source_ids]


def list_available() -> Dict[str, SourceAdapter]:
    """Get a copy of all registered adapters, sorted by id."""
    if not _REGISTRY:
        refresh_registry()
    return dict(sorted(_REGISTRY.items()))
