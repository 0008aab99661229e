"""Clients for external collaborators."""

from recurring_accounts.clients.backing_store import (
    BackingStore,
    BackingStoreError,
    BackingStoreUnavailable,
    ConflictError,
    RestStoreClient,
)

__all__ = [
    "BackingStore",
    "BackingStoreError",
    "BackingStoreUnavailable",
    "ConflictError",
    "RestStoreClient",
]
