"""
Snapshot cache key helpers.

The engine keeps no memoised state; callers that cache snapshots key them with
``snapshot_cache_key`` so equal requests always map to the same key regardless
of argument order or spelling of "no constraint".
"""

from datetime import date, datetime
import hashlib
import json
from typing import Any, Dict, Optional

from dispatch_analytics.models.schemas import FilterSpec, SnapshotOptions

CACHE_PREFIX = "snapshot"

EMPTY_VALUES = (None, "", [], {})


def _normalize_cache_value(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, list):
        return sorted(_normalize_cache_value(v) for v in value)
    if isinstance(value, dict):
        return {k: _normalize_cache_value(v) for k, v in sorted(value.items())}
    return value


def normalize_cache_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize params for cache keys.

    - Skips empty and "all" values
    - Sorts keys and list members for stability
    - Normalizes dates to ISO strings
    """
    filtered: Dict[str, Any] = {}
    for key, value in params.items():
        if isinstance(value, str) and value.strip().lower() == "all":
            continue
        if value in EMPTY_VALUES:
            continue
        filtered[key] = _normalize_cache_value(value)
    return {k: filtered[k] for k in sorted(filtered)}


def snapshot_cache_key(
    filters: FilterSpec,
    options: Optional[SnapshotOptions] = None,
    data_version: Optional[str] = None,
) -> str:
    """
    Build a stable cache key for a snapshot request.

    Args:
        filters: Record filter
        options: Snapshot options (defaults applied when None)
        data_version: Caller-owned version of the underlying data, so new data
            never hits a stale entry

    Returns:
        'snapshot:' followed by the SHA-256 of the canonical JSON payload
    """
    options = options or SnapshotOptions()
    payload = {
        "filters": normalize_cache_params(filters.model_dump(mode="json")),
        "options": normalize_cache_params(options.model_dump(mode="json")),
        "version": data_version,
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{CACHE_PREFIX}:{digest}"
