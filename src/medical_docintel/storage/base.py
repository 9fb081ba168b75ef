# ============================================================================
# src/medical_docintel/storage/base.py
# ============================================================================
"""
Base Storage Interface

Source documents are stored as opaque bytes under a string key.
"""

from abc import ABC, abstractmethod
import logging


class BaseStorage(ABC):
    """Abstract byte store for uploaded documents."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Short backend identifier ("local", "s3")."""
        pass

    @abstractmethod
    async def upload(self, content: bytes, key: str, content_type: str = "application/octet-stream") -> str:
        """Store content under key and return the key."""
        pass

    @abstractmethod
    async def download(self, key: str) -> bytes:
        """
        Fetch content for key.

        Raises:
            StorageObjectNotFoundError: key does not exist
            StorageError: backend failure
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key. Missing keys are not an error."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(backend={self.backend_name})"
