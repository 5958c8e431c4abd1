"""Repository implementations for the infrastructure layer."""

from .read_state_repository import (
    InMemoryReadStateRepository,
    ReadState,
    ReadStateRepository,
    ReadStateStore,
    read_state_key,
)

__all__ = [
    "InMemoryReadStateRepository",
    "ReadState",
    "ReadStateRepository",
    "ReadStateStore",
    "read_state_key",
]
