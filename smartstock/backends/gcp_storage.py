"""
Google Cloud Storage backend for user portfolio documents.

Stores one JSON blob per user so the ledger follows the user across machines.
"""

import json
from typing import Dict, Optional, Any
import logging

from google.cloud import storage
from google.api_core import exceptions as gcp_exceptions

from ..storage_backend import StorageBackend, validate_user_id

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "users"


class GCPStorageBackend(StorageBackend):
    """Google Cloud Storage backend."""

    def __init__(
        self,
        bucket_name: str,
        credentials_dict: Optional[Dict[str, Any]] = None,
        prefix: str = DEFAULT_PREFIX,
        client: Optional[storage.Client] = None,
    ):
        """
        Initialize GCP storage backend.

        Args:
            bucket_name: GCS bucket name (e.g., "smartstock_ledger")
            credentials_dict: Service account credentials; application default
                credentials are used when omitted
            prefix: Blob name prefix for user documents
            client: Pre-built storage client
        """
        self.bucket_name = bucket_name
        self.prefix = prefix.strip("/")

        try:
            if client is not None:
                self.client = client
            elif credentials_dict:
                from google.oauth2 import service_account

                credentials = service_account.Credentials.from_service_account_info(
                    credentials_dict
                )
                self.client = storage.Client(credentials=credentials)
            else:
                self.client = storage.Client()

            self.bucket = self.client.bucket(bucket_name)
            logger.info(f"GCPStorageBackend initialized for bucket: {bucket_name}")

        except Exception as e:
            logger.error(f"Failed to initialize GCP storage: {e}")
            raise

    def blob_name(self, user_id: str) -> str:
        return f"{self.prefix}/{validate_user_id(user_id)}.json"

    def save_user_document(self, user_id: str, document: Dict[str, Any]) -> bool:
        """
        Upload a user's document to GCS.

        Returns:
            bool: True if save successful, False otherwise
        """
        try:
            blob_name = self.blob_name(user_id)
            json_content = json.dumps(document, indent=2, ensure_ascii=False)

            blob = self.bucket.blob(blob_name)
            blob.upload_from_string(json_content, content_type="application/json")

            logger.info(f"GCPStorageBackend: Document saved to gs://{self.bucket_name}/{blob_name}")
            return True

        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"GCPStorageBackend: GCP API error saving document: {e}")
            return False
        except Exception as e:
            logger.error(f"GCPStorageBackend: Failed to save document to GCS: {e}")
            return False

    def load_user_document(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Download a user's document from GCS.

        Returns:
            dict: Document or None if absent

        Raises:
            Exception: If download fails for reasons other than a missing blob
        """
        try:
            blob = self.bucket.blob(self.blob_name(user_id))

            if not blob.exists():
                logger.debug(f"No document in GCS for {user_id} yet")
                return None

            content = blob.download_as_text()
            if not content.strip():
                logger.debug(f"Document in GCS for {user_id} is empty")
                return None

            data = json.loads(content)
            if not isinstance(data, dict):
                logger.error("Document in GCS has invalid format (not an object)")
                return None

            return data

        except gcp_exceptions.NotFound:
            logger.debug(f"Document not found in GCS for {user_id}")
            return None
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in GCS document: {e}")
            return None
        except Exception as e:
            logger.error(f"Failed to download document from GCS: {e}")
            raise

    def delete_user_document(self, user_id: str) -> bool:
        """
        Delete a user's document from GCS.

        Returns:
            bool: True if deletion succeeded or blob didn't exist, False on error
        """
        try:
            blob = self.bucket.blob(self.blob_name(user_id))
            if not blob.exists():
                return True
            blob.delete()
            logger.info(f"GCPStorageBackend: Deleted document for {user_id}")
            return True
        except gcp_exceptions.NotFound:
            return True
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"GCPStorageBackend: GCP API error deleting document: {e}")
            return False

    def is_available(self) -> bool:
        """
        Check if GCS is available.

        Returns:
            bool: True if GCS is reachable
        """
        try:
            self.bucket.exists()
            return True
        except Exception as e:
            logger.warning(f"GCPStorageBackend: GCS unavailable: {e}")
            return False
