"""Local file-backed store for submitted travel claims."""

import json
import logging
import re
import shutil
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .submission import MultipartPayload

logger = logging.getLogger(__name__)

# Form key -> record column
COLUMN_MAP = {
    "fullName": "full_name",
    "policyNo": "policy_no",
    "passportNo": "passport_no",
    "destinationCountry": "destination_country",
    "phone": "phone",
    "email": "email",
    "departureDate": "departure_date",
    "returnDate": "return_date",
    "airline": "airline",
    "claimTypes": "claim_types",
    "otherClaimDetail": "other_claim_detail",
    "incidentDateTime": "incident_datetime",
    "incidentLocation": "incident_location",
    "incidentDescription": "incident_description",
    "bankName": "bank_name",
    "accountNo": "account_no",
    "accountName": "account_name",
    "signatureDate": "signature_date",
}

# Attachment categories stored as path lists
LIST_FILE_COLUMNS = {
    "passportCopy": "passport_copy_paths",
    "medicalReceipts": "medical_receipts_paths",
    "otherDocs": "other_docs_paths",
}

# Attachment categories keeping a single (last uploaded) path
SINGLE_FILE_COLUMNS = {
    "policeReport": "police_report_path",
    "signatureFile": "signature_file_path",
}


def safe_filename(filename: str) -> str:
    """Timestamped object name with anything outside [A-Za-z0-9._-] replaced."""
    return re.sub(r"[^a-zA-Z0-9._-]", "_", f"{int(time.time() * 1000)}_{filename}")


class ClaimRecordStore:
    """
    Persistence collaborator for claim submissions.

    Each submission gets a new id, its files are written under
    ``<uploads_dir>/<id>/<form key>/<timestamp>_<safe name>`` and one JSON
    record is written to ``<records_dir>/<id>.json``. Submissions are
    append-only; nothing is updated in place.

    Required fields are not validated here.
    """

    def __init__(self, uploads_dir: str = "data/uploads", records_dir: str = "data/claims"):
        """
        Initialize ClaimRecordStore.

        Args:
            uploads_dir: Root directory for attachment objects
            records_dir: Directory holding one JSON record per claim
        """
        self.uploads_dir = Path(uploads_dir)
        self.records_dir = Path(records_dir)

        for directory in [self.uploads_dir, self.records_dir]:
            directory.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensured directory exists: {directory}")

        logger.info(
            f"Initialized ClaimRecordStore: "
            f"uploads_dir={self.uploads_dir}, "
            f"records_dir={self.records_dir}"
        )

    @classmethod
    def from_config(cls, config) -> "ClaimRecordStore":
        return cls(uploads_dir=config.storage.uploads_dir, records_dir=config.storage.records_dir)

    def submit(self, payload: MultipartPayload) -> Dict[str, Any]:
        """
        Store one claim.

        Args:
            payload: Serialized form fields and files

        Returns:
            {"ok": True, "id": <record id>} or {"error": <message>}
        """
        record_id = str(uuid.uuid4())
        try:
            record = self._build_record(record_id, payload)
            record_path = self.records_dir / f"{record_id}.json"
            with open(record_path, "w", encoding="utf-8") as f:
                json.dump(record, f, ensure_ascii=False, indent=2)
        except Exception as e:
            logger.error(f"Failed to store claim {record_id}: {str(e)}")
            self._discard(record_id)
            return {"error": f"Failed to store claim: {str(e)}"}

        logger.info(
            f"Stored claim {record_id}: {len(payload.fields)} fields, {payload.file_count} files"
        )
        return {"ok": True, "id": record_id}

    def _build_record(self, record_id: str, payload: MultipartPayload) -> Dict[str, Any]:
        data = payload.fields
        record: Dict[str, Any] = {
            "id": record_id,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        for key, column in COLUMN_MAP.items():
            record[column] = data.get(key) or None
        record["declaration"] = bool(data.get("declaration"))

        for column in LIST_FILE_COLUMNS.values():
            record[column] = []
        for column in SINGLE_FILE_COLUMNS.values():
            record[column] = None

        for key, attachment in payload.files:
            if attachment.size == 0:
                continue
            if key in LIST_FILE_COLUMNS:
                record[LIST_FILE_COLUMNS[key]].append(self._save_object(record_id, key, attachment))
            elif key in SINGLE_FILE_COLUMNS:
                record[SINGLE_FILE_COLUMNS[key]] = self._save_object(record_id, key, attachment)
            else:
                logger.debug(f"Ignoring file under unknown form key: {key}")

        return record

    def _save_object(self, record_id: str, key: str, attachment) -> str:
        object_path = Path(record_id) / key / safe_filename(attachment.filename)
        target = self.uploads_dir / object_path
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as f:
            f.write(attachment.data)
        logger.debug(f"Saved upload: {target} ({attachment.size} bytes)")
        return object_path.as_posix()

    def _discard(self, record_id: str) -> None:
        """Remove whatever a failed submission left behind."""
        shutil.rmtree(self.uploads_dir / record_id, ignore_errors=True)
        (self.records_dir / f"{record_id}.json").unlink(missing_ok=True)

    def get_record(self, record_id: str) -> Optional[Dict[str, Any]]:
        record_path = self.records_dir / f"{record_id}.json"
        if not record_path.exists():
            return None
        with open(record_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def list_records(self, limit: int = 100) -> List[Dict[str, Any]]:
        """
        Most recent claims first.

        Args:
            limit: Maximum number of records returned

        Returns:
            List of record dicts
        """
        records = []
        for record_path in self.records_dir.glob("*.json"):
            try:
                with open(record_path, "r", encoding="utf-8") as f:
                    records.append(json.load(f))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable claim record {record_path.name}: {str(e)}")

        records.sort(key=lambda r: r.get("created_at", ""), reverse=True)
        logger.debug(f"Listing {min(len(records), limit)} of {len(records)} claim records")
        return records[:limit]
