"""
Keyed storage backends

The cache and the conversation store keep their state behind this interface
so a persistent key-value backend can replace the in-process dict without
changing their call contracts. Methods are synchronous and never await, which
keeps every read-modify-write atomic on the event loop.
"""

from abc import ABC, abstractmethod
from typing import Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

V = TypeVar("V")


class KeyValueStore(ABC, Generic[V]):
    """Minimal keyed store used by the cache and conversation memory"""

    @abstractmethod
    def get(self, key: str) -> Optional[V]:
        ...

    @abstractmethod
    def set(self, key: str, value: V):
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    def clear(self):
        ...

    @abstractmethod
    def items(self) -> List[Tuple[str, V]]:
        """Snapshot of all entries; safe to mutate the store while iterating"""

    @abstractmethod
    def __len__(self) -> int:
        ...

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def values(self) -> Iterator[V]:
        for _, value in self.items():
            yield value


class InMemoryStore(KeyValueStore[V]):
    """Process-local dict backend"""

    def __init__(self):
        self._data: Dict[str, V] = {}

    def get(self, key: str) -> Optional[V]:
        return self._data.get(key)

    def set(self, key: str, value: V):
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def clear(self):
        self._data.clear()

    def items(self) -> List[Tuple[str, V]]:
        return list(self._data.items())

    def __len__(self) -> int:
        return len(self._data)
