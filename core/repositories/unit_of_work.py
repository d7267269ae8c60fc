from abc import ABC, abstractmethod
from typing import ContextManager


class UnitOfWork(ABC):
    @abstractmethod
    def atomic(self) -> ContextManager[None]:
        """Everything inside commits together or not at all. Nested calls join
        the outer unit."""
