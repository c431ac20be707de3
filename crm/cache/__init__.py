"""
In-process caching of domain reads for interactive clients.
"""

from crm.cache.entities import (
    CRMCache,
    client_key,
    client_projects_key,
    clients_key,
    communications_key,
    project_key,
    projects_key,
)
from crm.cache.fetcher import CRMFetcher, ServiceFetcher
from crm.cache.query_cache import (
    CacheEntry,
    QueryCache,
    QueryObserver,
    QueryResult,
    QueryStatus,
)

__all__ = [
    "CRMCache",
    "CRMFetcher",
    "ServiceFetcher",
    "QueryCache",
    "QueryObserver",
    "QueryResult",
    "QueryStatus",
    "CacheEntry",
    "clients_key",
    "client_key",
    "communications_key",
    "client_projects_key",
    "projects_key",
    "project_key",
]
