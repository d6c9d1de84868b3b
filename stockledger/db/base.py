# stockledger/db/base.py
from __future__ import annotations

import importlib
import logging
import pkgutil
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Set

from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("stockledger.models")


class Base(DeclarativeBase):
    """Single ORM Base for the whole package."""

    pass


_INITIALIZED: bool = False


def _iter_model_modules(pkg_name: str = "stockledger.models") -> Iterator[str]:
    """Discover stockledger.models.* modules (skips private `_x` modules)."""
    pkg = importlib.import_module(pkg_name)
    for _, name, _ in pkgutil.walk_packages(list(getattr(pkg, "__path__", [])), prefix=pkg_name + "."):
        if name.rsplit(".", 1)[-1].startswith("_"):
            continue
        yield name


def init_models(
    *,
    extra_modules: Iterable[str] | None = None,
    exclude: Iterable[str] | None = None,
    force: bool = False,
) -> None:
    """
    Import every model module and configure mappers once:
      1) the explicit chain first so string relationship targets are registered
      2) then anything else under stockledger.models
      3) configure_mappers()
    """
    global _INITIALIZED
    if _INITIALIZED and not force:
        return

    ex: Set[str] = set(exclude or [])
    loaded: List[str] = []

    explicit_chain = [
        "stockledger.models.master_data",
        "stockledger.models.stock_level",
        "stockledger.models.stock_movement",
        "stockledger.models.receipt",
        "stockledger.models.delivery",
        "stockledger.models.requisition",
        "stockledger.models.transfer",
        "stockledger.models.adjustment",
        "stockledger.models.doc_sequence",
    ]
    for mod in [m for m in explicit_chain if m not in ex]:
        importlib.import_module(mod)
        loaded.append(mod)

    for mod in list(_iter_model_modules()) + list(extra_modules or []):
        if mod in ex or mod in loaded:
            continue
        importlib.import_module(mod)
        loaded.append(mod)

    configure_mappers()
    _INITIALIZED = True
    log.info("ORM models initialized & mappers configured (loaded %d modules)", len(loaded))


def utcnow() -> datetime:
    """Python-side timestamp default (keeps async instances loaded after flush)."""
    return datetime.now(timezone.utc)
