"""
Storage backends for user portfolio documents.

Available backends:
- LocalFileBackend: Local JSON file storage
- GCPStorageBackend: Google Cloud Storage
- HybridStorageBackend: Primary + fallback with automatic retry
"""

from .local_storage import LocalFileBackend
from .gcp_storage import GCPStorageBackend
from .hybrid_storage import HybridStorageBackend

__all__ = ["LocalFileBackend", "GCPStorageBackend", "HybridStorageBackend"]
