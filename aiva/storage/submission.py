"""Serialization of a claim draft into the multipart submission payload."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from ..models.claim_form import Attachment, FieldSchema, FieldType, TRAVEL_CLAIM_SCHEMA

logger = logging.getLogger(__name__)


@dataclass
class MultipartPayload:
    """
    Form fields plus files, keyed the way the claim form posts them.

    Attributes:
        fields: Scalar form values as strings (camelCase keys)
        files: (form key, attachment) pairs in upload order
    """
    fields: Dict[str, str] = field(default_factory=dict)
    files: List[Tuple[str, Attachment]] = field(default_factory=list)

    def files_for(self, key: str) -> List[Attachment]:
        return [attachment for k, attachment in self.files if k == key]

    @property
    def file_count(self) -> int:
        return len(self.files)


def build_payload(draft: Dict[str, Any], schema: FieldSchema = TRAVEL_CLAIM_SCHEMA) -> MultipartPayload:
    """
    Serialize a draft for submission.

    Empty values are left out; the declaration checkbox is sent as "true"
    only when set. Missing required fields are not checked here.

    Args:
        draft: Draft mapping (scalar values and attachment lists)
        schema: Form schema giving field order and types

    Returns:
        MultipartPayload ready for ClaimRecordStore.submit
    """
    payload = MultipartPayload()

    for spec in schema:
        value = draft.get(spec.key)
        if spec.is_file:
            for attachment in value or []:
                if isinstance(attachment, Attachment) and attachment.size > 0:
                    payload.files.append((spec.key, attachment))
            continue

        if spec.field_type == FieldType.BOOLEAN:
            if value is True:
                payload.fields[spec.key] = "true"
            continue

        if value is None:
            continue
        text = ", ".join(value) if isinstance(value, (list, tuple)) else str(value).strip()
        if text:
            payload.fields[spec.key] = text

    logger.debug(f"Built payload: {len(payload.fields)} fields, {payload.file_count} files")
    return payload
