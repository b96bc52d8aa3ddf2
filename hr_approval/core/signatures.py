"""Signature ledger: per-slot ordered signature entries embedded in a document.

Merge rules for ``SignatureLedger.record``:

* a slot whose first entry is signed only accepts the same signer, who
  replaces that entry in place; any other signer raises
  ``SignatureConflictError``
* an unsigned first entry (blank form field, placeholder) is replaced
* an empty slot gets the entry prepended

Dates are stored in one canonical form (``YYYY-MM-DDTHH:MM:SS``) so that a
ledger read back from storage serializes to the same bytes.
"""

import json
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, field_validator

from hr_approval.core.exceptions import SignatureConflictError

logger = logging.getLogger(__name__)

SIGNATURE_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
DATA_URL_PREFIX = "data:image/png;base64,"

_FALLBACK_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%Y. %m. %d.",
    "%Y. %m. %d",
    "%Y.%m.%d",
    "%Y/%m/%d",
)


def _now() -> datetime:
    return datetime.now().replace(microsecond=0)


def normalize_signature_date(value: Any) -> str:
    """Coerce a datetime, epoch timestamp or date string to the canonical form.

    Missing or unparsable values become the current time.
    """
    if value is None or value == "":
        return _now().strftime(SIGNATURE_DATE_FORMAT)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone().replace(tzinfo=None)
        return value.strftime(SIGNATURE_DATE_FORMAT)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day).strftime(SIGNATURE_DATE_FORMAT)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 100_000_000_000 else value
        return datetime.fromtimestamp(seconds).strftime(SIGNATURE_DATE_FORMAT)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit() and len(text) > 8:
            return normalize_signature_date(int(text))
        try:
            return normalize_signature_date(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            pass
        for fmt in _FALLBACK_DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).strftime(SIGNATURE_DATE_FORMAT)
            except ValueError:
                continue
    logger.debug("Unparsable signature date %r, using current time", value)
    return _now().strftime(SIGNATURE_DATE_FORMAT)


def normalize_image_url(url: Optional[str]) -> Optional[str]:
    """Raw base64 payloads get a PNG data-URL prefix; URLs pass through."""
    if not url:
        return None
    if url.startswith("data:") or url.startswith("http://") or url.startswith("https://") or url.startswith("/"):
        return url
    return DATA_URL_PREFIX + url


class SignatureEntry(BaseModel):
    text: str = ""
    image_url: Optional[str] = None
    is_signed: bool = False
    signature_date: str = Field(default_factory=lambda: normalize_signature_date(None))
    signer_id: Optional[str] = None
    signer_name: Optional[str] = None
    is_skipped: bool = False
    skipped_by: Optional[str] = None
    skipped_by_name: Optional[str] = None
    skipped_reason: Optional[str] = None

    @field_validator("signature_date", mode="before")
    @classmethod
    def _canonical_date(cls, v: Any) -> str:
        return normalize_signature_date(v)

    @field_validator("image_url", mode="before")
    @classmethod
    def _data_url(cls, v: Any) -> Optional[str]:
        return normalize_image_url(v)


class SignatureLedger:
    """Mutable view over a document's ``signatures`` JSON column.

    Call ``dump()`` and assign the result back to the column after mutating;
    the column is not mutation-tracked.
    """

    def __init__(self, slots: Optional[Dict[str, List[SignatureEntry]]] = None) -> None:
        self._slots: Dict[str, List[SignatureEntry]] = {k: list(v) for k, v in (slots or {}).items()}

    @classmethod
    def from_raw(cls, raw: Optional[Dict[str, Any]]) -> "SignatureLedger":
        slots: Dict[str, List[SignatureEntry]] = {}
        for slot, entries in (raw or {}).items():
            slots[slot] = [SignatureEntry.model_validate(e) for e in (entries or [])]
        return cls(slots)

    @classmethod
    def from_json(cls, text: Optional[str]) -> "SignatureLedger":
        return cls.from_raw(json.loads(text) if text else {})

    def dump(self) -> Dict[str, List[Dict[str, Any]]]:
        return {slot: [e.model_dump(mode="json") for e in entries] for slot, entries in self._slots.items()}

    def to_json(self) -> str:
        return json.dumps(self.dump(), ensure_ascii=False, sort_keys=True, separators=(",", ":"))

    def slots(self) -> List[str]:
        return list(self._slots)

    def entries(self, slot: str) -> List[SignatureEntry]:
        return list(self._slots.get(slot, []))

    def first(self, slot: str) -> Optional[SignatureEntry]:
        entries = self._slots.get(slot)
        return entries[0] if entries else None

    def is_signed(self, slot: str) -> bool:
        first = self.first(slot)
        return bool(first and first.is_signed)

    def is_skipped(self, slot: str) -> bool:
        first = self.first(slot)
        return bool(first and first.is_skipped)

    def record(self, slot: str, entry: SignatureEntry) -> None:
        entries = list(self._slots.get(slot, []))
        first = entries[0] if entries else None
        if first is not None and first.is_signed:
            if first.signer_id != entry.signer_id:
                raise SignatureConflictError(slot, first.signer_id)
            entries[0] = entry
        elif first is not None:
            entries[0] = entry
        else:
            entries.insert(0, entry)
        self._slots[slot] = entries

    def mark_skipped(self, slot: str, placeholder: SignatureEntry) -> bool:
        """Write a skip placeholder unless the slot already holds a signed entry."""
        if self.is_signed(slot):
            return False
        entries = list(self._slots.get(slot, []))
        if entries:
            entries[0] = placeholder
        else:
            entries.append(placeholder)
        self._slots[slot] = entries
        return True

    def approval_flags(self, slots: Iterable[str]) -> Dict[str, bool]:
        """Derived per-step flags: a slot counts as done once signed."""
        return {slot: self.is_signed(slot) for slot in slots}
