from .store import (
    MANAGED_FIELDS,
    TABLE_UNIQUE_KEYS,
    MetricsStore,
    StoreError,
    StoreUnavailableError,
    strip_managed,
    unique_key,
)

__all__ = [
    "MANAGED_FIELDS",
    "TABLE_UNIQUE_KEYS",
    "MetricsStore",
    "StoreError",
    "StoreUnavailableError",
    "strip_managed",
    "unique_key",
]
