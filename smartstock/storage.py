"""
Data Persistence Layer

Public interface for loading and saving a user's portfolio document
through pluggable backends (local files, GCP, hybrid). Record lists are
hashed so unchanged portfolios are not rewritten.
"""

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from . import config
from .storage_backend import StorageBackend, StorageError, validate_user_id
from .backends.local_storage import LocalFileBackend
from .backends.gcp_storage import GCPStorageBackend
from .backends.hybrid_storage import HybridStorageBackend
from .ledger import LotLedger
from .transaction_models import TransactionRecord, ValuationOverlay

logger = logging.getLogger(__name__)

# Global storage backend instance
_storage_backend: Optional[StorageBackend] = None


def _empty_document() -> Dict[str, Any]:
    return {
        "portfolio": [],
        "portfolio_prompt": None,
        "portfolio_model": None,
        "valuations": {},
        "last_synced": None,
        "metadata": {},
    }


def _build_gcp_backend(cfg) -> GCPStorageBackend:
    credentials_dict = None
    if cfg.storage.gcp.credentials_file:
        with open(cfg.storage.gcp.credentials_file, "r") as f:
            credentials_dict = json.load(f)
        logger.info("GCP credentials loaded from file")

    return GCPStorageBackend(
        bucket_name=cfg.storage.gcp.bucket_name,
        credentials_dict=credentials_dict,
        prefix=cfg.storage.gcp.prefix,
    )


def _get_storage_backend() -> StorageBackend:
    """
    Get or initialize the storage backend.

    Lazy initialization on first use, driven by `storage.backend` in config:
    - local: local files only
    - gcp: GCP Cloud Storage only
    - hybrid: GCP primary with local fallback (local only if GCP fails to start)

    Returns:
        StorageBackend: Configured storage backend
    """
    global _storage_backend

    if _storage_backend is None:
        cfg = config.get_config()
        backend_type = config.get_storage_backend()

        local_backend = LocalFileBackend(data_dir=cfg.storage.local.data_dir)

        if backend_type == "local":
            _storage_backend = local_backend
            logger.info("Storage initialized: local files")
        elif backend_type == "gcp":
            _storage_backend = _build_gcp_backend(cfg)
            logger.info("Storage initialized: GCP only")
        else:
            try:
                _storage_backend = HybridStorageBackend(
                    primary=_build_gcp_backend(cfg),
                    fallback=local_backend,
                )
                logger.info("Storage initialized: GCP primary + local fallback")
            except Exception as e:
                logger.warning(f"GCP storage unavailable, using local only: {e}")
                _storage_backend = local_backend

    return _storage_backend


def set_storage_backend(backend: Optional[StorageBackend]) -> None:
    """Install a backend explicitly (None resets to config-driven lazy init)."""
    global _storage_backend
    _storage_backend = backend


def compute_records_hash(records: Iterable[TransactionRecord]) -> str:
    """
    Compute SHA-256 hash of a record list for change detection.

    List order is part of the hash: it breaks FIFO ties between lots
    bought on the same date.

    Returns:
        str: SHA-256 hash as hex string with 'sha256:' prefix
    """
    documents = [record.to_document() for record in records]
    json_str = json.dumps(documents, sort_keys=True, ensure_ascii=False)
    return f"sha256:{hashlib.sha256(json_str.encode('utf-8')).hexdigest()}"


def load_user_document(user_id: str) -> Dict[str, Any]:
    """
    Load a user's document from storage.

    Returns:
        dict: Stored document merged over an empty structure

    Raises:
        StorageError: If the backend failed to read the document. Callers
            must not write back in that case: the stored copy is the only one.
    """
    validate_user_id(user_id)

    try:
        data = _get_storage_backend().load_user_document(user_id)
    except Exception as e:
        logger.error(f"Failed to load document for {user_id}: {e}", exc_info=True)
        raise StorageError(f"Could not load portfolio for {user_id}: {e}") from e

    document = _empty_document()
    if data is None:
        logger.info(f"No stored document for {user_id}, returning empty structure")
        return document

    document.update(data)
    if not isinstance(document.get("portfolio"), list):
        logger.error(f"Document for {user_id} has invalid 'portfolio' (not a list), ignoring it")
        document["portfolio"] = []
    return document


def load_records(user_id: str) -> List[TransactionRecord]:
    """
    Load a user's transaction records.

    Documents that fail validation are logged and skipped.

    Returns:
        list: TransactionRecord objects in stored order

    Raises:
        StorageError: If the stored document could not be read
    """
    document = load_user_document(user_id)

    records = []
    for index, item in enumerate(document["portfolio"]):
        try:
            records.append(TransactionRecord.model_validate(item))
        except PydanticValidationError as e:
            logger.error(f"Skipping invalid record #{index} for {user_id}: {e}")

    logger.info(f"Loaded {len(records)} records for {user_id}")
    return records


def load_ledger(user_id: str) -> LotLedger:
    """Build a ledger from the user's stored records."""
    return LotLedger(load_records(user_id))


def save_records(user_id: str, records: Iterable[TransactionRecord]) -> bool:
    """
    Save a user's records if they have changed.

    The rest of the stored document (settings) is preserved.

    Returns:
        bool: True if the records were written or already up to date,
            False if the backend failed
    """
    records = list(records)
    records_hash = compute_records_hash(records)

    try:
        document = load_user_document(user_id)

        if document.get("metadata", {}).get("records_hash") == records_hash:
            logger.info(f"Records for {user_id} unchanged, skipping save")
            return True

        document["portfolio"] = [record.to_document() for record in records]
        document["last_synced"] = datetime.now(timezone.utc).isoformat()
        document["metadata"] = {
            "record_count": len(records),
            "records_hash": records_hash,
        }

        success = _get_storage_backend().save_user_document(user_id, document)
        if success:
            logger.info(f"Saved {len(records)} records for {user_id}")
        else:
            logger.error(f"Failed to save records for {user_id}")
        return success

    except StorageError as e:
        logger.error(f"Not saving records for {user_id}: stored document could not be read ({e})")
        return False
    except Exception as e:
        logger.error(f"Failed to save records for {user_id}: {e}", exc_info=True)
        return False


def load_portfolio_settings(user_id: str) -> Dict[str, Optional[str]]:
    """
    Load the user's saved analysis prompt and model.

    Returns:
        dict: {"prompt": str|None, "model": str|None}
    """
    document = load_user_document(user_id)
    return {
        "prompt": document.get("portfolio_prompt"),
        "model": document.get("portfolio_model"),
    }


def save_portfolio_settings(user_id: str, prompt: Optional[str], model: Optional[str]) -> bool:
    """
    Save the user's analysis prompt and model, keeping the records intact.

    Returns:
        bool: True if save successful
    """
    try:
        document = load_user_document(user_id)
        document["portfolio_prompt"] = prompt
        document["portfolio_model"] = model
        document["last_synced"] = datetime.now(timezone.utc).isoformat()

        success = _get_storage_backend().save_user_document(user_id, document)
        if success:
            logger.info(f"Saved portfolio settings for {user_id}")
        return success

    except StorageError as e:
        logger.error(f"Not saving portfolio settings for {user_id}: stored document could not be read ({e})")
        return False
    except Exception as e:
        logger.error(f"Failed to save portfolio settings for {user_id}: {e}", exc_info=True)
        return False


def load_valuation_overlays(user_id: str) -> List[ValuationOverlay]:
    """
    Load the AI valuation estimates stored beside the portfolio.

    Returns:
        list: ValuationOverlay objects (invalid entries skipped)
    """
    document = load_user_document(user_id)
    raw = document.get("valuations") or {}
    if not isinstance(raw, dict):
        logger.error(f"Document for {user_id} has invalid 'valuations' (not an object), ignoring it")
        return []

    overlays = []
    for ticker, values in raw.items():
        try:
            overlays.append(ValuationOverlay.model_validate({**(values or {}), "ticker": ticker}))
        except PydanticValidationError as e:
            logger.warning(f"Skipping invalid valuation for {ticker}: {e}")
    return overlays


def save_valuation_overlay(user_id: str, overlay: ValuationOverlay) -> bool:
    """
    Store or replace one ticker's AI valuation estimate.

    Returns:
        bool: True if save successful
    """
    try:
        document = load_user_document(user_id)
        valuations = document.get("valuations")
        if not isinstance(valuations, dict):
            valuations = {}

        valuations[overlay.ticker] = overlay.model_dump(exclude={"ticker"})
        document["valuations"] = valuations
        document["last_synced"] = datetime.now(timezone.utc).isoformat()

        success = _get_storage_backend().save_user_document(user_id, document)
        if success:
            logger.info(f"Saved valuation overlay for {overlay.ticker}")
        return success

    except StorageError as e:
        logger.error(f"Not saving valuation for {user_id}: stored document could not be read ({e})")
        return False
    except Exception as e:
        logger.error(f"Failed to save valuation overlay for {user_id}: {e}", exc_info=True)
        return False


def get_storage_status() -> Dict[str, Any]:
    """
    Get current storage backend status.

    Returns:
        dict: Storage status information
    """
    try:
        backend = _get_storage_backend()

        status = {
            "backend_type": backend.__class__.__name__,
            "available": backend.is_available()
        }

        if isinstance(backend, HybridStorageBackend):
            status.update(backend.get_sync_status())

        return status

    except Exception as e:
        logger.error(f"Failed to get storage status: {e}")
        return {"error": str(e)}
