"""Normalization rule definitions and the operator-administered rule store."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Annotated, Any, Dict, Iterable, List, Literal, Sequence, Union

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class _RuleBase(BaseModel):
    """Fields shared by every rule kind."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    priority: int = 0
    active: bool = True
    description: str = ""


class PatternRemovalRule(_RuleBase):
    """Replace regex matches (usually with nothing)."""

    kind: Literal["pattern-removal"] = "pattern-removal"
    pattern: str
    replacement: str = ""

    @field_validator("pattern")
    @classmethod
    def _validate_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"Invalid regex pattern {value!r}: {exc}") from exc
        return value


class SuffixRemovalRule(_RuleBase):
    """Strip one configured suffix from the end of the string."""

    kind: Literal["suffix-removal"] = "suffix-removal"
    suffixes: List[str] = Field(default_factory=list)


class WhitespaceNormalizeRule(_RuleBase):
    """Collapse whitespace runs and trim."""

    kind: Literal["whitespace-normalize"] = "whitespace-normalize"


class SpecialCharRemovalRule(_RuleBase):
    """Delete characters outside the allow-list."""

    kind: Literal["special-char-removal"] = "special-char-removal"
    keep_chars: List[str] = Field(default_factory=list)


class RegionPrefixRemovalRule(_RuleBase):
    """Strip a leading province/city token.

    Off by default: it can fold same-named branches of different provinces together.
    """

    kind: Literal["region-prefix-removal"] = "region-prefix-removal"
    active: bool = False
    prefixes: List[str] = Field(default_factory=list)


class NumeralNormalizeRule(_RuleBase):
    """Convert native-script numerals to ASCII digits."""

    kind: Literal["numeral-normalize"] = "numeral-normalize"
    mappings: Dict[str, str] = Field(default_factory=dict)


NormalizationRule = Annotated[
    Union[
        PatternRemovalRule,
        SuffixRemovalRule,
        WhitespaceNormalizeRule,
        SpecialCharRemovalRule,
        RegionPrefixRemovalRule,
        NumeralNormalizeRule,
    ],
    Field(discriminator="kind"),
]

_RULE_LIST = TypeAdapter(List[NormalizationRule])


def parse_rules(payload: Iterable[Dict[str, Any]]) -> List[NormalizationRule]:
    """Validate raw rule mappings into typed rule variants."""
    return _RULE_LIST.validate_python(list(payload))


class RuleStore:
    """Ordered, named collection of normalization rules.

    Rules keep their declaration order; ``active_rules`` sorts by priority on read,
    so toggling a rule never reorders the others.
    """

    def __init__(self, rules: Sequence[NormalizationRule] | None = None) -> None:
        self._rules: Dict[str, NormalizationRule] = {}
        for rule in rules or []:
            if rule.name in self._rules:
                raise ValueError(f"Duplicate normalization rule name: {rule.name}")
            self._rules[rule.name] = rule
        self.version = 1

    @classmethod
    def from_yaml(cls, rules_file: str | Path) -> RuleStore:
        """Load rules from a YAML file (``rules:`` list or a bare list)."""
        path = Path(rules_file)
        if not path.exists():
            raise FileNotFoundError(f"Normalization rules file not found: {path}")

        loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or []
        if isinstance(loaded, dict):
            loaded = loaded.get("rules", [])
        if not isinstance(loaded, list):
            raise ValueError("Normalization rules must be a list or a mapping with 'rules'.")

        store = cls(parse_rules(loaded))
        logger.info("Loaded {} normalization rules from {}", len(store), path)
        return store

    @classmethod
    def from_json(cls, path: str | Path) -> RuleStore:
        """Load a store previously written by ``export_json``."""
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        store = cls(parse_rules(payload.get("rules", [])))
        store.version = int(payload.get("version", 1))
        return store

    def export_json(self, path: str | Path) -> Path:
        """Write the store (all rules, active or not) to JSON."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": self.version,
            "rules": [rule.model_dump(mode="json") for rule in self._rules.values()],
        }
        target.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info("Exported {} normalization rules to {}", len(self._rules), target)
        return target

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, name: object) -> bool:
        return name in self._rules

    def all_rules(self) -> List[NormalizationRule]:
        """Every rule in declaration order."""
        return list(self._rules.values())

    def active_rules(self) -> List[NormalizationRule]:
        """Active rules, highest priority first; ties keep declaration order."""
        active = [rule for rule in self._rules.values() if rule.active]
        return sorted(active, key=lambda rule: rule.priority, reverse=True)

    def get(self, name: str) -> NormalizationRule | None:
        return self._rules.get(name)

    def upsert(self, rule: NormalizationRule) -> NormalizationRule:
        """Create or replace a rule by name, keeping its original position."""
        self._rules[rule.name] = rule
        self.version += 1
        return rule

    def set_active(self, name: str, active: bool) -> NormalizationRule:
        """Enable or disable a rule without touching the others."""
        existing = self._rules.get(name)
        if existing is None:
            raise KeyError(f"Unknown normalization rule: {name}")
        updated = existing.model_copy(update={"active": active})
        self._rules[name] = updated
        self.version += 1
        logger.info("Rule '{}' {}", name, "enabled" if active else "disabled")
        return updated

    def remove(self, name: str) -> bool:
        if name not in self._rules:
            return False
        del self._rules[name]
        self.version += 1
        return True


_INSTITUTION_SUFFIXES = [
    "병원",
    "소방서",
    "보건지소",
    "보건소",
    "공사",
    "센터",
    "의원",
    "경찰서",
    "의료원",
    "학교",
    "파출소",
    "공단",
    "면사무소",
    "읍사무소",
    "동사무소",
    "지구대",
    "대학",
    "주민센터",
    "행정복지센터",
]

_REGION_PREFIXES = [
    "서울", "부산", "대구", "인천", "광주", "대전", "울산", "세종",
    "경기", "강원", "충북", "충남", "전북", "전남", "경북", "경남", "제주",
    "서울특별시", "부산광역시", "대구광역시", "인천광역시",
    "광주광역시", "대전광역시", "울산광역시", "세종특별자치시",
    "경기도", "강원도", "강원특별자치도", "충청북도", "충청남도",
    "전라북도", "전북특별자치도", "전라남도", "경상북도", "경상남도", "제주특별자치도",
]  # fmt: skip


def default_rules() -> List[NormalizationRule]:
    """Built-in rule set used when no rules file is configured."""
    return [
        PatternRemovalRule(
            name="corporate-designation",
            priority=150,
            pattern=r"(주식회사|\(주\)|㈜|\(유\)|유한회사|\(사\)|사단법인|\(재\)|재단법인)",
            description="Drop legal-entity designations",
        ),
        PatternRemovalRule(
            name="parenthesized-text",
            priority=140,
            pattern=r"\([^)]*\)",
            description="Drop parentheses and their contents",
        ),
        SpecialCharRemovalRule(
            name="special-characters",
            priority=130,
            description="Drop punctuation other than - _ / and the middle dot",
        ),
        SuffixRemovalRule(
            name="institution-suffixes",
            priority=120,
            suffixes=list(_INSTITUTION_SUFFIXES),
            description="Drop the generic institution-type suffix",
        ),
        WhitespaceNormalizeRule(name="whitespace", priority=110),
        RegionPrefixRemovalRule(
            name="region-prefix",
            priority=100,
            prefixes=list(_REGION_PREFIXES),
            description="Drop a leading province token (disabled by default)",
        ),
        NumeralNormalizeRule(name="numerals", priority=90),
    ]
