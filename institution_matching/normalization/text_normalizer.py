"""Rule-driven text normalization for institution names."""

from __future__ import annotations

import re
import unicodedata
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict

from institution_matching.normalization.rules import (
    NormalizationRule,
    NumeralNormalizeRule,
    PatternRemovalRule,
    RegionPrefixRemovalRule,
    RuleStore,
    SpecialCharRemovalRule,
    SuffixRemovalRule,
    WhitespaceNormalizeRule,
    default_rules,
)
from institution_matching.utils.config import NormalizationConfig

# Always allowed by special-char removal: hyphen, underscore, slash, middle dot.
ALWAYS_KEPT_CHARS = ("-", "_", "/", "·")

_WHITESPACE_RE = re.compile(r"\s+")


class NormalizationResult(BaseModel):
    """Result of a normalization call."""

    model_config = ConfigDict(frozen=True)

    original: str
    normalized: str
    signals: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        """Empty results cannot be compared against anything."""
        return not self.normalized


class TextNormalizer:
    """Apply the active normalization rules, highest priority first.

    The active rule set is snapshotted at construction time, so later edits to a
    ``RuleStore`` never change a normalizer that is already in use.
    """

    def __init__(
        self,
        config: NormalizationConfig | None = None,
        rules_path: str | Path | None = None,
        rules: Sequence[NormalizationRule] | RuleStore | None = None,
    ) -> None:
        self.config = config or NormalizationConfig()

        if isinstance(rules, RuleStore):
            store = rules
        elif rules is not None:
            store = RuleStore(rules)
        elif rules_path or self.config.rules_file:
            store = RuleStore.from_yaml(rules_path or self.config.rules_file)
        else:
            store = RuleStore(default_rules())

        self.rules_version = store.version
        self._rules: Tuple[NormalizationRule, ...] = tuple(store.active_rules())
        self._patterns: Dict[str, re.Pattern[str]] = {}
        self._special_chars: Dict[str, re.Pattern[str]] = {}
        self._affixes: Dict[str, List[str]] = {}
        self._mappings: Dict[str, List[Tuple[str, str]]] = {}
        for rule in self._rules:
            self._compile(rule)

        logger.debug(
            "TextNormalizer ready with {} active rules: {}",
            len(self._rules),
            ", ".join(rule.name for rule in self._rules),
        )

    @classmethod
    def from_store(cls, store: RuleStore, config: NormalizationConfig | None = None) -> TextNormalizer:
        return cls(config=config, rules=store)

    @property
    def rule_names(self) -> List[str]:
        """Names of the active rules in application order."""
        return [rule.name for rule in self._rules]

    def normalize(self, text: str | None) -> NormalizationResult:
        """Normalize a single string and record which rules changed it."""
        if text is None:
            return NormalizationResult(original="", normalized="")
        if not text.strip():
            return NormalizationResult(original=text, normalized="")

        working = text
        signals: List[str] = []
        for rule in self._rules:
            before = working
            working = self._apply(rule, working)
            if working != before:
                signals.append(rule.name)

        return NormalizationResult(original=text, normalized=working, signals=tuple(signals))

    def normalize_batch(self, texts: Sequence[str | None]) -> List[NormalizationResult]:
        """Normalize a batch of strings."""
        return [self.normalize(text) for text in texts]

    def _compile(self, rule: NormalizationRule) -> None:
        match rule:
            case PatternRemovalRule():
                self._patterns[rule.name] = re.compile(rule.pattern)
            case SpecialCharRemovalRule():
                allowed = "".join(
                    re.escape(ch) for ch in dict.fromkeys((*ALWAYS_KEPT_CHARS, *rule.keep_chars))
                )
                self._special_chars[rule.name] = re.compile(rf"[^\w\s{allowed}]")
            case SuffixRemovalRule():
                self._affixes[rule.name] = sorted(
                    (suffix for suffix in rule.suffixes if suffix), key=len, reverse=True
                )
            case RegionPrefixRemovalRule():
                self._affixes[rule.name] = sorted(
                    (prefix for prefix in rule.prefixes if prefix), key=len, reverse=True
                )
            case NumeralNormalizeRule():
                self._mappings[rule.name] = sorted(
                    rule.mappings.items(), key=lambda item: len(item[0]), reverse=True
                )
            case WhitespaceNormalizeRule():
                pass
            case _:
                raise TypeError(f"Unsupported normalization rule: {rule!r}")

    def _apply(self, rule: NormalizationRule, text: str) -> str:
        match rule:
            case PatternRemovalRule():
                return self._patterns[rule.name].sub(rule.replacement, text)
            case SuffixRemovalRule():
                return self._strip_suffix(text, self._affixes[rule.name])
            case WhitespaceNormalizeRule():
                return _WHITESPACE_RE.sub(" ", text).strip()
            case SpecialCharRemovalRule():
                return self._special_chars[rule.name].sub("", text)
            case RegionPrefixRemovalRule():
                return self._strip_region_prefix(text, self._affixes[rule.name])
            case NumeralNormalizeRule():
                return self._normalize_numerals(text, self._mappings[rule.name])
            case _:
                raise TypeError(f"Unsupported normalization rule: {rule!r}")

    def _strip_suffix(self, text: str, suffixes: Sequence[str]) -> str:
        # Stacked suffixes ("서울대학교병원") are peeled until none is left.
        stripped = text
        while True:
            trimmed = stripped.rstrip()
            for suffix in suffixes:
                # A bare suffix ("보건소") is a name in its own right; leave it alone.
                if trimmed.endswith(suffix) and len(trimmed) > len(suffix):
                    stripped = trimmed[: -len(suffix)].rstrip()
                    break
            else:
                return stripped

    def _strip_region_prefix(self, text: str, prefixes: Sequence[str]) -> str:
        parts = text.split(maxsplit=1)
        if len(parts) == 2 and parts[0] in prefixes:
            return parts[1]
        return text

    def _normalize_numerals(self, text: str, mappings: Sequence[Tuple[str, str]]) -> str:
        converted = "".join(
            str(unicodedata.decimal(ch)) if ch.isdecimal() and not ch.isascii() else ch
            for ch in text
        )
        for native, digit in mappings:
            converted = converted.replace(native, digit)
        return converted
