"""
Hybrid storage backend with fallback support.

Uses GCP as primary, local file as fallback for offline scenarios.
Automatically retries failed GCP uploads when connectivity is restored.
"""

from typing import Dict, Optional, Any
import logging

from ..storage_backend import StorageBackend

logger = logging.getLogger(__name__)


class HybridStorageBackend(StorageBackend):
    """
    Hybrid storage with primary and fallback backends.

    Strategy:
    - Loads from primary (remote takes precedence), mirroring into fallback
    - Falls back to secondary (local file) if primary unavailable or empty
    - Dual-write when both available for redundancy
    - Queues retry for failed primary writes (latest document per user)
    """

    def __init__(self, primary: StorageBackend, fallback: StorageBackend):
        """
        Initialize hybrid backend.

        Args:
            primary: Primary storage backend (e.g., GCP)
            fallback: Fallback storage backend (e.g., local file)
        """
        self.primary = primary
        self.fallback = fallback
        self.pending_sync: Dict[str, Dict[str, Any]] = {}

        logger.info("HybridStorageBackend initialized with primary and fallback")

    def save_user_document(self, user_id: str, document: Dict[str, Any]) -> bool:
        """
        Save document to storage with fallback.

        Strategy:
        1. Retry any pending syncs first
        2. Try primary (GCP)
        3. Always write to fallback (local) as backup
        4. If primary fails, queue for retry

        Returns:
            bool: True if at least one backend succeeded
        """
        primary_success = False

        self._retry_pending_syncs()

        if self.primary.is_available():
            primary_success = self.primary.save_user_document(user_id, document)
            if primary_success:
                logger.info("HybridStorageBackend: Document saved to primary storage (GCP)")
                self.pending_sync.pop(user_id, None)
            else:
                logger.warning("HybridStorageBackend: Primary storage write failed, queuing for retry")
                self.pending_sync[user_id] = document
        else:
            logger.warning("HybridStorageBackend: Primary storage unavailable, using fallback only")
            self.pending_sync[user_id] = document

        fallback_success = self.fallback.save_user_document(user_id, document)
        if fallback_success:
            logger.info("HybridStorageBackend: Document saved to fallback storage (local)")
        else:
            logger.error("HybridStorageBackend: CRITICAL: Fallback storage write failed!")

        success = primary_success or fallback_success
        if not success:
            logger.error("HybridStorageBackend: Both primary and fallback storage failed!")

        return success

    def load_user_document(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Load document, preferring primary.

        A document found in primary is mirrored into fallback so the local
        cache follows the remote copy.

        Returns:
            Document from primary, or fallback if primary unavailable or empty
        """
        if self.primary.is_available():
            try:
                data = self.primary.load_user_document(user_id)
                if data:
                    logger.debug("HybridStorageBackend: Loaded document from primary storage")
                    if not self.fallback.save_user_document(user_id, data):
                        logger.warning("HybridStorageBackend: Failed to mirror primary document to fallback")
                    return data
                logger.debug("HybridStorageBackend: No document in primary, trying fallback")
            except Exception as e:
                logger.warning(f"HybridStorageBackend: Primary backend failed to load document: {e}")
        else:
            logger.debug("HybridStorageBackend: Primary unavailable, using fallback")

        try:
            data = self.fallback.load_user_document(user_id)
            if data:
                logger.debug("HybridStorageBackend: Loaded document from fallback storage")
            return data
        except Exception as e:
            logger.error(f"HybridStorageBackend: Fallback backend failed to load document: {e}")
            return None

    def is_available(self) -> bool:
        """
        Hybrid storage is available if either backend is available.

        Returns:
            bool: True if at least one backend is available
        """
        return self.primary.is_available() or self.fallback.is_available()

    def _retry_pending_syncs(self):
        """Retry any pending syncs to primary storage."""
        if not self.pending_sync:
            return

        if not self.primary.is_available():
            logger.debug(f"HybridStorageBackend: {len(self.pending_sync)} pending syncs waiting for primary availability")
            return

        logger.info(f"HybridStorageBackend: Retrying {len(self.pending_sync)} pending syncs to primary storage")

        retry_queue = dict(self.pending_sync)
        self.pending_sync = {}

        for user_id, document in retry_queue.items():
            if self.primary.save_user_document(user_id, document):
                logger.info("HybridStorageBackend: Pending sync succeeded")
            else:
                logger.warning("HybridStorageBackend: Pending sync failed, re-queuing")
                self.pending_sync[user_id] = document

        if not self.pending_sync:
            logger.info("HybridStorageBackend: All pending syncs completed successfully")
        else:
            logger.warning(f"HybridStorageBackend: {len(self.pending_sync)} pending syncs still queued")

    def get_sync_status(self) -> Dict[str, Any]:
        """
        Get sync status information.

        Returns:
            dict: Sync status with pending count and availability
        """
        return {
            "primary_available": self.primary.is_available(),
            "fallback_available": self.fallback.is_available(),
            "pending_syncs": len(self.pending_sync),
            "fully_synced": len(self.pending_sync) == 0 and self.primary.is_available()
        }
