"""
Media source aggregator.

Detectors disagree, overlap and miss things. The aggregator keeps one
entry per distinct URL; when two detectors report the same URL, the one
with the higher provenance priority (see base.SOURCE_PRIORITY) keeps it.
Nothing else is reconciled: two different URLs for what is probably the
same asset both stay in the list.
"""
from __future__ import annotations
import logging
from typing import Iterable, Optional

from .base import (
    AggregationResult, DetectorContribution, MediaSourceCandidate,
    PlayerState, SOURCE_PRIORITY,
)

log = logging.getLogger("siphon.resolver.aggregator")

_PRIORITY = {tag: i for i, tag in enumerate(SOURCE_PRIORITY)}


def _dedupe_key(url: str) -> str:
    return url.strip()


class MediaSourceAggregator:
    """Collects contributions one at a time; `result()` can be taken at any point."""

    def __init__(self):
        self._contributions: list[DetectorContribution] = []

    def add(self, contribution: DetectorContribution) -> None:
        self._contributions.append(contribution)

    def extend(self, contributions: Iterable[DetectorContribution]) -> None:
        for c in contributions:
            self.add(c)

    def _ranked_candidates(self) -> list[MediaSourceCandidate]:
        flat = [
            (_PRIORITY.get(cand.source_tag, len(_PRIORITY)), order, cand)
            for order, cand in enumerate(
                cand for c in self._contributions for cand in c.candidates
            )
        ]
        # stable within a tag: detector order, then the detector's own order
        flat.sort(key=lambda item: (item[0], item[1]))
        return [cand for _, _, cand in flat]

    def _player(self) -> tuple[Optional[str], Optional[PlayerState], Optional[dict]]:
        # first reporter wins; no re-check of lower-ranked frameworks
        best = next((c for c in self._contributions if c.player_type), None)
        if best is None:
            return None, None, None
        return best.player_type, best.player_state, best.raw_config

    def result(self) -> AggregationResult:
        sources: list[MediaSourceCandidate] = []
        seen: set[str] = set()
        for cand in self._ranked_candidates():
            key = _dedupe_key(cand.url)
            if not key or key in seen:
                continue
            seen.add(key)
            sources.append(cand)

        player_type, player_state, raw_config = self._player()
        if raw_config is None:
            configs = [c.raw_config for c in self._contributions if c.raw_config]
            if configs:
                raw_config = {}
                for cfg in configs:
                    raw_config.update(cfg)

        detectors = {}
        for c in self._contributions:
            status = c.status()
            if c.detector in detectors:
                # same detector fed twice: keep the totals
                status["count"] += detectors[c.detector]["count"]
            detectors[c.detector] = status

        result = AggregationResult(
            player_type=player_type,
            sources=sources,
            # state only makes sense alongside a recognised player
            player_state=player_state if player_type else None,
            raw_config=raw_config,
            detectors=detectors,
        )
        log.debug(
            f"Aggregated {len(sources)} source(s) from {len(self._contributions)} contribution(s), "
            f"player={player_type}"
        )
        return result


def aggregate(contributions: Iterable[DetectorContribution]) -> AggregationResult:
    agg = MediaSourceAggregator()
    agg.extend(contributions)
    return agg.result()
