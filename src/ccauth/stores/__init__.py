"""Async stores behind the login flow.

Each store is an :class:`~ccauth.stores.base.AsyncStore` with a
single-flight load and synchronous observers:

- :class:`ConfigStore` -- instance capability descriptor.
- :class:`BasicAuthStore` -- username/password login.
- :class:`SsoStore` -- two-phase OAuth2 authorization-code login.
- :class:`ClusterDataStore` -- cluster inventory for a signed-in session.
"""

from ccauth.stores.base import AsyncStore, StoreState
from ccauth.stores.basic_auth import BasicAuthStore
from ccauth.stores.cluster_data import ClusterDataStore
from ccauth.stores.config_store import ConfigStore
from ccauth.stores.sso import SsoStore

__all__ = [
    "AsyncStore",
    "BasicAuthStore",
    "ClusterDataStore",
    "ConfigStore",
    "SsoStore",
    "StoreState",
]
