#!/usr/bin/env python3
"""Target institution to equipment matching CLI.

Reads region-filtered target institutions and equipment records (JSON lists,
snake_case or camelCase keys), ranks candidate equipment for every target and
writes the results plus a match-rate summary as JSON.

Usage:
    python scripts/match_institutions.py targets.json equipment.json
    python scripts/match_institutions.py targets.json equipment.json --tier high -o out.json
    python scripts/match_institutions.py targets.json equipment.json --confirmed confirmed.json
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List

from loguru import logger
from pydantic import TypeAdapter
from rich.console import Console
from rich.table import Table

from institution_matching.matching import (
    EquipmentRecord,
    MatchCandidate,
    MatchingEngine,
    SimilarityScorer,
    TargetInstitution,
)
from institution_matching.normalization import CachedNormalizer, TextNormalizer
from institution_matching.utils import load_config, setup_logging


def _load(path: Path, adapter: TypeAdapter):
    return adapter.validate_python(json.loads(path.read_text(encoding="utf-8")))


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Rank installed-equipment candidates for target institutions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("targets", type=Path, help="JSON list of target institutions")
    parser.add_argument("equipment", type=Path, help="JSON list of equipment records")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config/config.yaml"),
        help="Path to configuration file (default: config/config.yaml)",
    )
    parser.add_argument("--confirmed", type=Path, default=None, help="JSON list of confirmed matches")
    parser.add_argument("--tier", choices=["high", "medium", "low"], default=None)
    parser.add_argument("--output", "-o", type=Path, default=None, help="Output JSON path")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    args = parser.parse_args()

    config = load_config(args.config)
    setup_logging(config.logging, verbose=args.verbose)

    targets: List[TargetInstitution] = _load(args.targets, TypeAdapter(List[TargetInstitution]))
    equipment: List[EquipmentRecord] = _load(args.equipment, TypeAdapter(List[EquipmentRecord]))
    confirmed = {}
    if args.confirmed:
        for match in _load(args.confirmed, TypeAdapter(List[MatchCandidate])):
            confirmed[match.target_key] = match.model_copy(update={"confirmed": True})

    normalizer = CachedNormalizer(TextNormalizer(config.normalization), config=config.cache)
    scorer = SimilarityScorer(normalizer, matching_config=config.matching)
    engine = MatchingEngine(scorer, config.matching)

    results = engine.match_all(targets, equipment, confirmed=confirmed, tier=args.tier)
    summary = engine.summarize(results)

    payload = {
        "matches": [result.model_dump(mode="json", by_alias=True) for result in results],
        "summary": summary.model_dump(mode="json", by_alias=True),
    }
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text, encoding="utf-8")
        logger.info("Wrote {} match results to {}", len(results), args.output)
    else:
        print(text)

    table = Table(title="Match summary")
    for column in ("Total", "Matched", "Unmatched", "Rate %", "High", "Medium", "Low"):
        table.add_column(column, justify="right")
    table.add_row(
        str(summary.total),
        str(summary.matched),
        str(summary.unmatched),
        f"{summary.match_rate:.1f}",
        *(str(summary.by_tier.get(name, 0)) for name in ("high", "medium", "low")),
    )
    Console(stderr=True).print(table)


if __name__ == "__main__":
    main()
