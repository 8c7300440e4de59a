"""
Route handlers.

    HealthHandler        GET  /api/health
    DataHandler          GET  /api/data, POST /api/data
    ClientBundleHandler  production fallback for non-API paths
"""

from .data import DataHandler, DataStore
from .health import HealthHandler, iso_timestamp
from .static import ClientBundleHandler

__all__ = [
    "ClientBundleHandler",
    "DataHandler",
    "DataStore",
    "HealthHandler",
    "iso_timestamp",
]
