"""Write-ahead backup of provider operation handles.

A backup is written the moment an operation handle is obtained and before the
job record that depends on it, so a crash between the two still leaves enough
on disk to find and finish the provider operation.
"""

import logging
from typing import Any, Dict, List, Optional

from clipgen.jobs.models import OperationBackup
from clipgen.storage.blob_storage import BlobStorage

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "operations/"


def backup_path(job_id: str) -> str:
    return f"{BACKUP_PREFIX}{job_id}.json"


class OperationBackupWriter:

    def __init__(self, storage: BlobStorage):
        self._storage = storage

    def write(
        self,
        operation_id: str,
        job_id: str,
        entity_id: str,
        action: str,
        reference_asset_url: str,
    ) -> None:
        """Persist the backup record. Never raises."""
        try:
            backup = OperationBackup(
                operation_id=operation_id,
                job_id=job_id,
                entity_id=entity_id,
                action=action,
                reference_asset_url=reference_asset_url,
            )
            path = backup_path(job_id)
            self._storage.put_json(path, backup.to_json_dict())
            logger.info("BACKUP: operation %s for job %s saved to %s", operation_id, job_id, path)
        except Exception:
            logger.exception("BACKUP FAILED for job %s", job_id)
            # The log stream is the recovery channel of last resort
            logger.critical(
                "CRITICAL BACKUP - operationId=%s, jobId=%s, entityId=%s, action=%s",
                operation_id, job_id, entity_id, action,
            )

    def read(self, job_id: str) -> Optional[OperationBackup]:
        data = self._storage.get_json(backup_path(job_id))
        if data is None:
            return None
        return OperationBackup.model_validate(data)

    def list_backups(self) -> List[Dict[str, Any]]:
        """All backup records, newest first. Unreadable ones carry an error."""
        entries: List[Dict[str, Any]] = []
        for path in self._storage.list(BACKUP_PREFIX):
            try:
                backup = OperationBackup.model_validate(self._storage.get_json(path))
            except Exception as exc:
                logger.warning("Unreadable backup %s: %s", path, exc)
                entries.append({"path": path, "error": f"Failed to parse: {exc}"})
                continue
            entries.append({**backup.to_json_dict(), "path": path})
        entries.sort(key=lambda e: e.get("timestamp") or "", reverse=True)
        return entries
