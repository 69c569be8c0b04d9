"""Value types exchanged with the data store and the web layer."""

from __future__ import annotations

from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ConfidenceTier = Literal["high", "medium", "low"]
MatchStatus = Literal["confirmed", "matched", "unmatched"]


class _Model(BaseModel):
    """Frozen model that also accepts/serializes camelCase keys for the web layer."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class TargetInstitution(_Model):
    """Institution legally required to host a defibrillator (one compliance-list row).

    ``key`` is unique within one compliance-list year only.
    """

    key: str = Field(min_length=1)
    name: str = ""
    province: str = ""
    district: str = ""
    category: str = ""
    sub_category: str = ""
    address_hint: str | None = None
    equipment_count: int = Field(default=0, ge=0)


class EquipmentRecord(_Model):
    """Installed defibrillator record."""

    management_number: str | None = None
    installed_institution_name: str = ""
    installed_address: str = ""
    province: str = ""
    district: str = ""
    serial: str = ""


class ReasonBreakdown(_Model):
    name: float = 0.0
    address: float = 0.0


class MatchCandidate(_Model):
    """Ranked candidate equipment record for one target.

    ``confirmed`` is only ever set by a human reviewer.
    """

    target_key: str
    management_number: str | None = None
    confidence: float = Field(ge=0.0, le=100.0)
    reason_breakdown: ReasonBreakdown = Field(default_factory=ReasonBreakdown)
    confirmed: bool = False


class MatchConfidence(_Model):
    """Composite target/equipment score on the 0-100 scale."""

    confidence: float
    name_score: int
    address_score: int


class InstitutionSimilarity(_Model):
    """Three-factor target/target score on the 0-1 scale."""

    score: float
    name_score: float
    address_score: float
    division_score: float


class TargetMatchResult(_Model):
    target: TargetInstitution
    candidates: List[MatchCandidate] = Field(default_factory=list)
    tier: ConfidenceTier | None = None
    status: MatchStatus = "unmatched"


class MatchSummary(_Model):
    total: int
    matched: int
    unmatched: int
    match_rate: float
    by_tier: Dict[str, int] = Field(default_factory=dict)


class InstitutionGroup(_Model):
    """Target institutions believed to describe one physical institution."""

    group_id: str
    master: TargetInstitution
    members: List[TargetInstitution]
    average_similarity: float
    total_equipment: int
    confidence_tier: ConfidenceTier


class GroupingResult(_Model):
    groups: List[InstitutionGroup] = Field(default_factory=list)
    ungrouped: List[TargetInstitution] = Field(default_factory=list)


class GroupStats(_Model):
    total_institutions: int
    grouped_institutions: int
    ungrouped_institutions: int
    group_count: int
    average_group_size: float
    potential_duplicates: int
    equipment_in_groups: int
    equipment_in_ungrouped: int
