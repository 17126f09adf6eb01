"""Abstract base for text-feature engines."""

from abc import ABC, abstractmethod
from typing import List


class TextEngine(ABC):
    """Abstract text-feature engine interface."""

    @abstractmethod
    def tokenize(self, text: str) -> List[str]:
        """Split text into tokens."""
        ...

    @abstractmethod
    def sentencize(self, text: str) -> List[str]:
        """Split text into sentences."""
        ...

    @abstractmethod
    def name(self) -> str:
        """Return the engine identifier."""
        ...
