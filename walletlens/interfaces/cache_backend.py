"""Cache backend protocol: a byte store addressed by hashed key."""
from typing import Protocol


class CacheBackend(Protocol):
    """Key-value byte store addressed by a hashed string key."""

    def read(self, name: str) -> bytes | None: ...

    def write(self, name: str, payload: bytes) -> None: ...

    def delete(self, name: str) -> None: ...

    def names(self) -> list[str]: ...
