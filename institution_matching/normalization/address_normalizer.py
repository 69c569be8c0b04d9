"""Address normalization and hashing for exact-match detection."""

from __future__ import annotations

import hashlib
import re
from typing import Mapping

from pydantic import BaseModel, ConfigDict

from institution_matching.utils.config import NormalizationConfig

_ADDRESS_NOISE_RE = re.compile(r"[^\w\s\-().]")
_WHITESPACE_RE = re.compile(r"\s+")
_LOT_SUFFIX_RE = re.compile(r"\s*번지$")


class AddressNormalizationResult(BaseModel):
    """Road-name form, lot-number form and content hash of one address."""

    model_config = ConfigDict(frozen=True)

    original: str
    road_form: str
    lot_form: str
    hash: str

    @property
    def is_empty(self) -> bool:
        return not (self.road_form or self.lot_form)


class AddressNormalizer:
    """Normalize Korean addresses into comparable road/lot forms.

    Source data mixes road-name addresses ("강남대로 123") with legacy lot-number
    addresses ("역삼동 123번지"), so both forms are produced. The hash covers the
    merged canonical form and gives an O(1) exact-match check.
    """

    def __init__(
        self,
        config: NormalizationConfig | None = None,
        region_names: Mapping[str, str] | None = None,
    ) -> None:
        self.config = config or NormalizationConfig()
        self.region_names = dict(
            region_names if region_names is not None else self.config.region_names
        )

    def normalize(
        self, address: str | None, region_code: str | None = None
    ) -> AddressNormalizationResult:
        if not address or not address.strip():
            return AddressNormalizationResult(
                original=address or "", road_form="", lot_form="", hash=""
            )

        road_form = self._road_form(address)
        lot_form = self._lot_form(road_form)
        return AddressNormalizationResult(
            original=address,
            road_form=road_form,
            lot_form=lot_form,
            hash=self.address_hash(road_form, lot_form, region_code),
        )

    @staticmethod
    def address_hash(road_form: str, lot_form: str, region_code: str | None = None) -> str:
        """SHA-256 over the lower-cased forms (and optional region code)."""
        parts = [road_form.lower().strip(), lot_form.lower().strip(), region_code or ""]
        payload = "||".join(part for part in parts if part)
        if not payload:
            return ""
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def _road_form(self, address: str) -> str:
        text = _WHITESPACE_RE.sub(" ", address).strip()
        head, _, rest = text.partition(" ")
        full_name = self.region_names.get(head)
        if full_name:
            text = f"{full_name} {rest}".strip()
        text = _ADDRESS_NOISE_RE.sub("", text)
        return _WHITESPACE_RE.sub(" ", text).strip()

    def _lot_form(self, road_form: str) -> str:
        text = _LOT_SUFFIX_RE.sub("", road_form)
        return _WHITESPACE_RE.sub(" ", text).strip()
