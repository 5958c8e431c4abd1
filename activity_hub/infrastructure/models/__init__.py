"""ORM models used by the infrastructure layer."""

from .client_storage import ClientStorageModel

__all__ = ["ClientStorageModel"]
