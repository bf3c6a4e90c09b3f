"""Merging a run's stage results into a product's existing assets."""

from __future__ import annotations

from typing import Any

from productkit.schemas.models import GeneratedAssets, MarketingCopy


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, MarketingCopy):
        return not value.is_empty()
    if isinstance(value, (list, dict, str)):
        return len(value) > 0
    return True


def merge_assets(existing: GeneratedAssets | None, **results: Any) -> GeneratedAssets:
    """Return ``existing`` with every non-empty result applied on top.

    Keyword names are ``GeneratedAssets`` fields. Absent or empty results leave
    the previous value in place. ``technical_specs`` is merged key by key.
    """
    base = existing.model_copy(deep=True) if existing else GeneratedAssets()
    unknown = set(results) - set(GeneratedAssets.model_fields)
    if unknown:
        raise TypeError(f"Unknown asset fields: {', '.join(sorted(unknown))}")

    changes: dict[str, Any] = {}
    for name, value in results.items():
        if not _has_value(value):
            continue
        if name == "technical_specs":
            value = {**base.technical_specs, **value}
        changes[name] = value
    return base.model_copy(update=changes)
