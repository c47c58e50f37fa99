"""
Resource-timing scan: whatever the page already downloaded that looks
like a stream. Static assets are dropped by extension first, so
`/stream/app.js` or `/hls/player.css` never make it through.
"""
from __future__ import annotations
import logging
from typing import Any, Iterable

from ..base import DetectorContribution, MediaSourceCandidate, SourceTag
from ..errors import ProbeError
from ..patterns import classify, is_stream_url, quality_label
from ..runner import register_detector
from ..session import PageHandle, evaluate

log = logging.getLogger("siphon.resolver.network")

SCRIPT = """() => performance.getEntriesByType('resource').map(e => ({
  name: e.name, initiatorType: e.initiatorType, size: e.transferSize || 0,
}))"""


def network_candidates(entries: Iterable[Any]) -> list[MediaSourceCandidate]:
    candidates = []
    seen = set()
    for entry in entries:
        url = entry.get("name") if isinstance(entry, dict) else entry
        if not isinstance(url, str) or url in seen:
            continue
        if not url.startswith("http") or not is_stream_url(url):
            continue
        seen.add(url)
        candidates.append(MediaSourceCandidate(
            url=url,
            source_tag=SourceTag.NETWORK,
            media_kind=classify(url),
            quality_label=quality_label(url),
        ))
    return candidates


@register_detector
class NetworkDetector:
    id = "network"
    name = "Resource timing scan"
    rank = 200

    async def probe(self, page: PageHandle) -> DetectorContribution:
        entries = await evaluate(page, SCRIPT)
        if not isinstance(entries, list):
            raise ProbeError(f"resource timing returned {type(entries).__name__}")
        candidates = network_candidates(entries)
        log.debug(f"{len(entries)} resource entr(ies), {len(candidates)} stream-like")
        return DetectorContribution(detector=self.id, candidates=candidates)
