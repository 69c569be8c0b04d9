"""Tests for ranking equipment candidates against target institutions."""

from __future__ import annotations

from typing import List

import pytest

from institution_matching.matching import (
    EquipmentRecord,
    MatchCandidate,
    MatchingEngine,
    TargetInstitution,
    index_by_region,
)
from institution_matching.utils.config import MatchingConfig


def _target(key: str = "T-1", name: str = "가나다라", **extra) -> TargetInstitution:
    fields = {"province": "서울", "district": "강남구", **extra}
    return TargetInstitution(key=key, name=name, **fields)


def _equipment(number: str, name: str, **extra) -> EquipmentRecord:
    fields = {"province": "서울", "district": "강남구", **extra}
    return EquipmentRecord(management_number=number, installed_institution_name=name, **fields)


@pytest.fixture()
def engine() -> MatchingEngine:
    return MatchingEngine()


def test_candidates_below_floor_are_dropped(engine: MatchingEngine) -> None:
    candidates = [
        _equipment("E-1", "가나다라"),
        _equipment("E-2", "부산해운대소방서"),
    ]

    ranked = engine.match_target(_target(), candidates)

    assert [c.management_number for c in ranked] == ["E-1"]
    assert all(c.confidence >= 50 for c in ranked)


def test_candidates_sorted_descending_and_truncated(engine: MatchingEngine) -> None:
    candidates = [_equipment("low", "가나마바"), _equipment("mid", "가나다마")]
    candidates += [_equipment(f"E-{i:02d}", "가나다라") for i in range(12)]

    ranked = engine.match_target(_target(), candidates)

    assert len(ranked) == 10
    confidences = [c.confidence for c in ranked]
    assert confidences == sorted(confidences, reverse=True)
    # Ties keep input order.
    assert [c.management_number for c in ranked] == [f"E-{i:02d}" for i in range(10)]


def test_reason_breakdown_reports_component_scores(engine: MatchingEngine) -> None:
    target = _target(address_hint="서울 강남구 테헤란로 123")
    record = _equipment("E-1", "가나다마", installed_address="서울특별시 강남구 테헤란로 123")

    [candidate] = engine.match_target(target, [record])

    assert candidate.target_key == "T-1"
    assert candidate.reason_breakdown.name == 75
    assert candidate.reason_breakdown.address == 100
    assert candidate.confidence == pytest.approx(85.0)
    assert candidate.confirmed is False


def test_confirmed_match_takes_precedence(engine: MatchingEngine) -> None:
    confirmed = MatchCandidate(target_key="T-1", management_number="E-9", confidence=55.0, confirmed=True)

    ranked = engine.match_target(_target(), [_equipment("E-1", "가나다라")], confirmed=confirmed)

    assert ranked == [confirmed]


def test_confirmed_match_for_other_target_raises(engine: MatchingEngine) -> None:
    confirmed = MatchCandidate(target_key="T-2", confidence=90.0, confirmed=True)

    with pytest.raises(ValueError, match="Confirmed match belongs to"):
        engine.match_target(_target(), [], confirmed=confirmed)


def test_missing_inputs_raise(engine: MatchingEngine) -> None:
    with pytest.raises(ValueError):
        engine.match_target(None, [])  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        engine.match_target(_target(), None)  # type: ignore[arg-type]


def test_empty_candidates_means_unmatched(engine: MatchingEngine) -> None:
    assert engine.match_target(_target(), []) == []
    assert engine.confidence_tier([]) is None


@pytest.mark.parametrize(
    ("equipment_name", "tier"),
    [("가나다라", "high"), ("가나다마", "medium"), ("가나마바", "low")],
)
def test_confidence_tier_of_top_candidate(
    engine: MatchingEngine, equipment_name: str, tier: str
) -> None:
    ranked = engine.match_target(_target(), [_equipment("E-1", equipment_name)])

    assert engine.confidence_tier(ranked) == tier


def test_custom_floor_and_limit() -> None:
    engine = MatchingEngine(config=MatchingConfig(min_confidence=80, max_candidates=1))
    candidates = [_equipment("mid", "가나다마"), _equipment("a", "가나다라"), _equipment("b", "가나다라")]

    ranked = engine.match_target(_target(), candidates)

    assert [c.management_number for c in ranked] == ["a"]


def test_other_district_equipment_never_reaches_scoring(engine: MatchingEngine) -> None:
    target = TargetInstitution(key="T-1", name="상록보건지소", province="경기", district="안산시")
    equipment = [
        EquipmentRecord(
            management_number="E-1",
            installed_institution_name="상록보건지소",
            province="경기",
            district="수원시",
        )
    ]

    index = index_by_region(equipment)
    regional = index.get((target.province, target.district), [])
    results = engine.match_all([target], index)

    assert regional == []
    assert engine.match_target(target, regional) == []
    assert results[0].status == "unmatched"
    assert results[0].tier is None


def test_match_all_statuses_and_tier_filter(engine: MatchingEngine) -> None:
    targets: List[TargetInstitution] = [
        _target("T-1", "가나다라"),
        _target("T-2", "가나다라"),
        _target("T-3", "서울중앙병원"),
        _target("T-4", "아무것도없음"),
    ]
    equipment = [_equipment("E-1", "가나다마"), _equipment("E-2", "서울중앙의료원")]
    confirmed = {
        "T-2": MatchCandidate(target_key="T-2", management_number="E-1", confidence=75.0, confirmed=True)
    }

    results = engine.match_all(targets, equipment, confirmed=confirmed)

    assert [r.status for r in results] == ["matched", "confirmed", "matched", "unmatched"]
    assert [r.tier for r in results] == ["medium", "medium", "high", None]

    high_only = engine.match_all(targets, equipment, confirmed=confirmed, tier="high")
    assert [(r.target.key, r.status) for r in high_only] == [
        ("T-3", "matched"),
        ("T-4", "unmatched"),
    ]


def test_tier_filter_keeps_unmatched_targets_in_summary(engine: MatchingEngine) -> None:
    targets = [_target("T-1", "가나다라"), _target("T-2", "가나다라", district="서초구")]
    equipment = [_equipment("E-1", "가나다라")]

    results = engine.match_all(targets, equipment, tier="high")
    summary = engine.summarize(results)

    assert [(r.target.key, r.status) for r in results] == [
        ("T-1", "matched"),
        ("T-2", "unmatched"),
    ]
    assert (summary.total, summary.matched, summary.unmatched) == (2, 1, 1)
    assert summary.match_rate == 50.0


def test_summarize_counts_and_rate(engine: MatchingEngine) -> None:
    targets = [_target("T-1", "가나다라"), _target("T-2", "서울중앙병원"), _target("T-3", "아무것도없음")]
    equipment = [_equipment("E-1", "가나다마"), _equipment("E-2", "서울중앙의료원")]

    summary = engine.summarize(engine.match_all(targets, equipment))

    assert (summary.total, summary.matched, summary.unmatched) == (3, 2, 1)
    assert summary.match_rate == 66.7
    assert summary.by_tier == {"high": 1, "medium": 1, "low": 0}


def test_summarize_empty_results(engine: MatchingEngine) -> None:
    summary = engine.summarize([])

    assert summary.total == 0
    assert summary.match_rate == 0.0
