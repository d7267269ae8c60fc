from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class StoredFile:
    reference: str  # durable URL-like path, e.g. /uploads/1700000000-ab12cd.png
    size_bytes: int


class ProofStorage(ABC):
    @abstractmethod
    def save(self, filename: str, content: bytes, subdir: str = "") -> StoredFile:...

    @abstractmethod
    def discard(self, reference: str) -> None:...
