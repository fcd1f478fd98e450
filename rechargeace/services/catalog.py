# =============================================
# File: rechargeace/services/catalog.py
# Purpose: Read-only plan catalog indexed by lower-cased provider name
# =============================================
from __future__ import annotations

import hashlib
import json
import os
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger
from pydantic import ValidationError

from rechargeace.services.models import Plan

_DEFAULT_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "plans.json")


class CatalogError(RuntimeError):
    """Catalog source missing, unreadable, or holding invalid/duplicate records."""


def _norm_provider(provider: str) -> str:
    return (provider or "").strip().lower()


class PlanCatalog:
    """
    Immutable collection of plans, loaded once and queried by provider.
    - plans_for_provider: case-insensitive exact match; unknown provider -> ()
    - no mutation API: refreshing the data means building a new catalog
    """

    def __init__(self, plans: Iterable[Plan]) -> None:
        index: Dict[str, List[Plan]] = {}
        names: Dict[str, str] = {}
        seen = set()
        for p in plans:
            if p.key in seen:
                raise CatalogError(f"Duplicate plan {p.name!r} for provider {p.provider!r}")
            seen.add(p.key)
            pk = _norm_provider(p.provider)
            index.setdefault(pk, []).append(p)
            names.setdefault(pk, p.provider.strip())
        self._index: Dict[str, Tuple[Plan, ...]] = {k: tuple(v) for k, v in index.items()}
        self._names = names
        self._size = len(seen)
        # Content fingerprint; response caches key on it
        digest = hashlib.sha256()
        for pk in sorted(self._index):
            for p in self._index[pk]:
                digest.update(p.model_dump_json().encode("utf-8"))
        self.version = digest.hexdigest()[:12]

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "PlanCatalog":
        plans: List[Plan] = []
        for i, rec in enumerate(records):
            try:
                plans.append(Plan.model_validate(rec))
            except ValidationError as e:
                raise CatalogError(f"Invalid plan record #{i}: {e}") from e
        return cls(plans)

    @classmethod
    def from_json(cls, path: str) -> "PlanCatalog":
        try:
            with open(path, "r", encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogError(f"Cannot load catalog from {path}: {e}") from e
        if not isinstance(records, list):
            raise CatalogError(f"Catalog {path} must hold a JSON array of plans")
        catalog = cls.from_records(records)
        logger.info(f"[catalog] loaded {len(catalog)} plans for {len(catalog.providers())} providers from {path}")
        return catalog

    def plans_for_provider(self, provider: str) -> Tuple[Plan, ...]:
        return self._index.get(_norm_provider(provider), ())

    def providers(self) -> List[str]:
        return sorted(self._names.values())

    def __len__(self) -> int:
        return self._size


_lock = threading.Lock()
_catalog: Optional[PlanCatalog] = None


def catalog_path() -> str:
    return os.getenv("CATALOG_PATH") or _DEFAULT_PATH


def get_catalog() -> PlanCatalog:
    """Process-wide catalog; loaded on first use and kept for the process lifetime."""
    global _catalog
    if _catalog is None:
        with _lock:
            if _catalog is None:
                _catalog = PlanCatalog.from_json(catalog_path())
    return _catalog


def reset_catalog() -> None:
    """For tests: forget the loaded catalog so CATALOG_PATH is read again."""
    global _catalog
    with _lock:
        _catalog = None
