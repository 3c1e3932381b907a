"""Draft store: owns one session's claim draft and applies the merge policy."""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..models.claim_form import Attachment, FieldSchema, FieldSpec, FieldType, TRAVEL_CLAIM_SCHEMA

logger = logging.getLogger(__name__)

_TRUE_WORDS = {"true", "yes", "y", "1", "on", "agree", "agreed", "i agree", "i declare", "checked"}
_FALSE_WORDS = {"false", "no", "n", "0", "off", "disagree", "unchecked"}

OTHER_CHOICE = "Other"
OTHER_DETAIL_KEY = "otherClaimDetail"


class DraftStore:
    """
    Holds the current best-known value per field of one claim draft.

    Merge policy:
    - scalar fields take a candidate value only when it is non-empty and
      differs from the current value
    - multi-select (choices) fields take the candidate selection; text that
      matches no option selects "Other" and fills the other-claim detail
    - attachment fields are append-only

    Every mutating call returns the list of keys that changed.
    """

    def __init__(
        self,
        schema: FieldSchema = TRAVEL_CLAIM_SCHEMA,
        extra_aliases: Optional[Dict[str, str]] = None
    ):
        self.schema = schema
        self.draft: Dict[str, Any] = {}
        self.aliases = schema.alias_table(extra_aliases)

    # Read access

    def get(self, key: str, default: Any = None) -> Any:
        return self.draft.get(key, default)

    def attachments(self, key: str) -> List[Attachment]:
        return list(self.draft.get(key) or [])

    @property
    def is_empty(self) -> bool:
        return not any(self._has_value(key) for key in self.draft)

    def missing_required(self) -> List[str]:
        """Keys of required fields that still have no value."""
        return [spec.key for spec in self.schema.required_fields if not self._has_value(spec.key)]

    def snapshot(self) -> Dict[str, Any]:
        """Copy of the draft with attachments summarized (no file bytes)."""
        result: Dict[str, Any] = {}
        for key, value in self.draft.items():
            if isinstance(value, list):
                result[key] = [
                    {"filename": a.filename, "content_type": a.content_type, "size": a.size}
                    for a in value
                ]
            else:
                result[key] = value
        return result

    # Mutation

    def merge(self, candidate: Dict[str, Any]) -> List[str]:
        """
        Apply an extraction candidate to the draft.

        Args:
            candidate: Partial field map; unknown keys are ignored

        Returns:
            Keys whose value changed, in candidate order
        """
        changed: List[str] = []
        for key, value in (candidate or {}).items():
            spec = self.schema.get(key)
            if spec is None:
                logger.debug(f"Ignoring unknown candidate key: {key}")
                continue
            for changed_key in self._apply(spec, value):
                if changed_key not in changed:
                    changed.append(changed_key)

        if changed:
            logger.info(f"Draft updated: {changed}")
        return changed

    def resolve_field(self, name: str) -> Optional[str]:
        """Resolve a user-typed field name or alias to its canonical key."""
        cleaned = " ".join(name.strip().lower().replace("_", " ").split()).rstrip(".")
        return self.aliases.get(cleaned) or self.aliases.get(cleaned.replace(" ", ""))

    def override(self, name: str, value: Any) -> List[str]:
        """
        Explicitly set one field ("set <field>=<value>").

        Uses the same non-empty/changed rule as merge.

        Raises:
            ValueError: If the field name is unknown or is an attachment field
        """
        key = self.resolve_field(name)
        if key is None:
            raise ValueError(f"Unknown field '{name}'")
        spec = self.schema.get(key)
        if spec.is_file:
            raise ValueError(f"{spec.label} is an attachment; please upload the file instead")

        changed = self._apply(spec, value)
        logger.info(f"Override {name!r} -> {key}: changed={changed}")
        return changed

    def attach(self, key: str, files: Iterable[Attachment]) -> List[str]:
        """Append attachments to a file field."""
        spec = self.schema.get(key)
        if spec is None or not spec.is_file:
            raise ValueError(f"'{key}' is not an attachment field")
        return self._apply(spec, list(files))

    def reset(self) -> None:
        self.draft.clear()
        logger.info("Draft reset")

    # Internals

    def _has_value(self, key: str) -> bool:
        # An unchecked box is not an answer
        return bool(self.draft.get(key))

    def _apply(self, spec: FieldSpec, value: Any) -> List[str]:
        if spec.field_type == FieldType.FILES:
            return [spec.key] if self._append_files(spec.key, value) else []

        if spec.field_type == FieldType.BOOLEAN:
            coerced = self._coerce_boolean(value)
            if coerced is None or coerced == self.draft.get(spec.key):
                return []
            self.draft[spec.key] = coerced
            return [spec.key]

        if spec.field_type == FieldType.CHOICES:
            return self._apply_choices(spec, value)

        return [spec.key] if self._set_text(spec.key, value) else []

    def _set_text(self, key: str, value: Any) -> bool:
        text = self._coerce_text(value)
        if not text or text == self.draft.get(key):
            return False
        self.draft[key] = text
        return True

    def _append_files(self, key: str, value: Any) -> bool:
        if isinstance(value, Attachment):
            value = [value]
        files = [f for f in (value or []) if isinstance(f, Attachment) and f.size > 0]
        if not files:
            return False
        self.draft.setdefault(key, []).extend(files)
        return True

    def _apply_choices(self, spec: FieldSpec, value: Any) -> List[str]:
        selected, unmatched = self._normalize_choices(spec, value)
        changed: List[str] = []

        # Free text outside the options is kept as the "Other" detail
        if unmatched and OTHER_CHOICE in spec.choices and self.schema.get(OTHER_DETAIL_KEY):
            if OTHER_CHOICE not in selected:
                selected.append(OTHER_CHOICE)
            if self._set_text(OTHER_DETAIL_KEY, ", ".join(unmatched)):
                changed.append(OTHER_DETAIL_KEY)

        new_value = ", ".join(selected)
        if new_value and new_value != self.draft.get(spec.key):
            self.draft[spec.key] = new_value
            changed.insert(0, spec.key)
        return changed

    @staticmethod
    def _normalize_choices(spec: FieldSpec, value: Any) -> Tuple[List[str], List[str]]:
        """Split a selection into known options (in order) and leftover text."""
        if not value:
            return [], []
        if isinstance(value, str):
            items = [part.strip() for part in value.split(",")]
        else:
            items = [str(part).strip() for part in value]

        lookup = {choice.lower(): choice for choice in spec.choices}
        result: List[str] = []
        unmatched: List[str] = []
        for item in items:
            if not item:
                continue
            choice = lookup.get(item.lower())
            if choice is None:
                # Loose match: "medical" -> "Medical Expenses"
                choice = next((c for c in spec.choices if c.lower().startswith(item.lower())), None)
            if choice is None:
                unmatched.append(item)
            elif choice not in result:
                result.append(choice)
        return result, unmatched

    @staticmethod
    def _coerce_text(value: Any) -> str:
        if value is None or isinstance(value, (dict, list)):
            return ""
        if isinstance(value, bool):
            return "true" if value else ""
        return str(value).strip()

    @staticmethod
    def _coerce_boolean(value: Any) -> Optional[bool]:
        if isinstance(value, bool):
            return value
        if value is None:
            return None
        text = str(value).strip().lower()
        if text in _TRUE_WORDS:
            return True
        if text in _FALSE_WORDS:
            return False
        return None
