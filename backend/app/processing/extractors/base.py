"""
Abstract base class for all extractors.
"""

from abc import ABC, abstractmethod
from typing import Any


class BaseExtractor(ABC):
    """Base interface for workbook extractors."""

    @abstractmethod
    def extract(self, filepath: str) -> dict[str, list[dict[str, Any]]]:
        """Flatten a stored file into {sheet_name: [row_dict, ...]} in sheet order."""
        ...

    @abstractmethod
    def supports_mime(self, mime: str) -> bool:
        """Return True if this extractor handles the given MIME type."""
        ...
