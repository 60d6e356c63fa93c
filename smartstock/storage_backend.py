"""
Storage backend abstraction for user portfolio documents.

Supports multiple backends: local files, GCP Cloud Storage, etc.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
import logging
import re

logger = logging.getLogger(__name__)

USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


class StorageError(Exception):
    """Raised when a stored document could not be read (as opposed to not existing)."""


def validate_user_id(user_id: str) -> str:
    """
    Ensure a user id is safe to embed in file and blob names.

    Raises:
        ValueError: If the id is empty or contains other characters
    """
    if not user_id or not USER_ID_PATTERN.match(user_id):
        raise ValueError(
            f"Invalid user id {user_id!r}: use 1-128 letters, digits, '_' or '-'"
        )
    return user_id


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod
    def save_user_document(self, user_id: str, document: Dict[str, Any]) -> bool:
        """
        Save a user's document, replacing any previous version.

        Args:
            user_id: Opaque user/session identifier
            document: Full user document

        Returns:
            bool: True if save successful, False otherwise
        """
        pass

    @abstractmethod
    def load_user_document(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Load a user's document.

        Returns:
            dict: Stored document or None if none exists or it is unreadable
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """
        Check if backend is currently available.

        Returns:
            bool: True if backend is reachable
        """
        pass
