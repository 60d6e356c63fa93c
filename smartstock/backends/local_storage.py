"""
Local file-based storage backend.

Uses one JSON file per user with atomic writes, backups, and validation.
"""

import json
import os
import shutil
from typing import Dict, Optional, Any
import logging

from ..storage_backend import StorageBackend, validate_user_id

logger = logging.getLogger(__name__)

USERS_DIR = "users"
BACKUP_DIR = "backup"


class LocalFileBackend(StorageBackend):
    """Local JSON file storage backend with safety features."""

    def __init__(self, data_dir: str = "."):
        """
        Initialize local file backend.

        Args:
            data_dir: Directory to store files (default: current directory)
        """
        self.data_dir = data_dir
        self.users_dir = os.path.join(data_dir, USERS_DIR)
        self.backup_dir = os.path.join(data_dir, BACKUP_DIR)

        os.makedirs(self.users_dir, exist_ok=True)
        os.makedirs(self.backup_dir, exist_ok=True)

        logger.debug(f"LocalFileBackend initialized: {self.users_dir}, backup_dir: {self.backup_dir}")

    def document_path(self, user_id: str) -> str:
        return os.path.join(self.users_dir, f"{validate_user_id(user_id)}.json")

    def backup_path(self, user_id: str) -> str:
        return os.path.join(self.backup_dir, f"{validate_user_id(user_id)}.json.bak")

    def _temp_path(self, user_id: str) -> str:
        return self.document_path(user_id) + ".tmp"

    def save_user_document(self, user_id: str, document: Dict[str, Any]) -> bool:
        """
        Save user document to local file with atomic write and backup.

        Safety features:
        - Refuses to overwrite an existing file that holds invalid JSON
        - Creates .bak backup before overwriting
        - Uses atomic write (temp file + rename)

        Args:
            user_id: User identifier
            document: Full user document

        Returns:
            bool: True if save successful, False otherwise
        """
        try:
            path = self.document_path(user_id)
            backup_path = self.backup_path(user_id)
            temp_path = self._temp_path(user_id)

            # Step 1: Fail fast on a corrupted existing file
            if os.path.exists(path):
                try:
                    with open(path, "r") as f:
                        content = f.read().strip()
                    if content:
                        json.loads(content)
                except json.JSONDecodeError as e:
                    logger.error(
                        f"CRITICAL: {path} contains invalid JSON and will NOT be overwritten.\n"
                        f"JSON Error: {e}\n"
                        f"Fix the file manually or restore from backup: {os.path.abspath(backup_path)}"
                    )
                    return False

                # Step 2: Create backup of existing file
                try:
                    shutil.copy2(path, backup_path)
                    logger.debug(f"Backup created: {path} -> {backup_path}")
                except IOError as e:
                    logger.error(f"Failed to create backup file {backup_path}: {e}")
                    return False

            # Step 3: Validate that data can be serialized to JSON
            try:
                json_content = json.dumps(document, indent=2, ensure_ascii=False)
            except (TypeError, ValueError) as e:
                logger.error(f"Failed to serialize document to JSON: {e}")
                return False

            # Step 4: Atomic write using temp file + rename
            try:
                with open(temp_path, "w", encoding="utf-8") as f:
                    f.write(json_content)
                    f.flush()
                    os.fsync(f.fileno())

                os.replace(temp_path, path)

                record_count = len(document.get("portfolio", []))
                logger.info(
                    f"LocalFileBackend: Saved document for {user_id} to {path} ({record_count} records)"
                )
                return True

            except IOError as e:
                logger.error(f"Failed to write document file: {e}")
                if os.path.exists(temp_path):
                    try:
                        os.remove(temp_path)
                        logger.debug(f"Cleaned up temporary file {temp_path}")
                    except OSError:
                        pass
                return False

        except ValueError as e:
            logger.error(f"LocalFileBackend: {e}")
            return False
        except Exception as e:
            logger.error(f"LocalFileBackend: Failed to save document: {e}", exc_info=True)
            return False

    def load_user_document(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Load user document from local file.

        Returns:
            dict: Document or None if the file doesn't exist or is unreadable
        """
        try:
            path = self.document_path(user_id)
            if not os.path.exists(path):
                logger.debug(f"Document file {path} does not exist")
                return None

            with open(path, "r", encoding="utf-8") as f:
                content = f.read().strip()
                if not content:
                    logger.warning(f"Document file {path} is empty")
                    return None

                data = json.loads(content)

            if not isinstance(data, dict):
                logger.warning(f"Document file {path} has invalid format: expected object")
                return None

            logger.debug(
                f"LocalFileBackend: Loaded document for {user_id} "
                f"({len(data.get('portfolio', []))} records)"
            )
            return data

        except json.JSONDecodeError as e:
            logger.error(f"LocalFileBackend: Document file contains invalid JSON: {e}")
            return None
        except IOError as e:
            logger.error(f"LocalFileBackend: Failed to read document file: {e}")
            return None
        except ValueError as e:
            logger.error(f"LocalFileBackend: {e}")
            return None

    def delete_user_document(self, user_id: str) -> bool:
        """
        Delete a user's document, keeping a backup copy.

        Returns:
            bool: True if deleted or already absent, False on error
        """
        try:
            path = self.document_path(user_id)
            if not os.path.exists(path):
                return True
            shutil.copy2(path, self.backup_path(user_id))
            os.remove(path)
            logger.info(f"LocalFileBackend: Deleted document for {user_id}")
            return True
        except (IOError, OSError, ValueError) as e:
            logger.error(f"LocalFileBackend: Failed to delete document: {e}")
            return False

    def is_available(self) -> bool:
        """
        Check if local storage is available.

        Returns:
            bool: Always True (local storage is always available)
        """
        return True
