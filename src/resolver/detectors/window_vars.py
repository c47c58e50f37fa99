"""
Window-global probing: a fixed allow-list of globals that sites use to
hand a stream URL (or a whole player config) to their player script.
"""
from __future__ import annotations
import logging
from typing import Any, Optional

from ..base import DetectorContribution, MediaSourceCandidate, SourceTag
from ..errors import ProbeError
from ..patterns import classify, is_static_asset, is_stream_url, normalize_url, quality_label
from ..runner import register_detector
from ..session import PageHandle, evaluate

log = logging.getLogger("siphon.resolver.window_vars")

SOURCE_VARS = [
    "videoSrc", "streamUrl", "source", "videoUrl", "hlsUrl", "dashUrl",
    "manifestUrl", "playlistUrl", "cdnUrl", "playbackUrl", "contentUrl", "sources",
]
CONFIG_VARS = [
    "playerConfig", "videoPlayerConfig", "jwplayerConfig", "videojsConfig",
    "plyrConfig", "clapprConfig", "flowplayerConfig", "mediaelementConfig",
    "dplayerConfig", "artplayerConfig", "vidstackConfig",
]

# Keys whose string value is a media URL even without a stream extension
URL_KEYS = {"file", "src", "url", "source", "hls", "dash", "manifest", "playlist", "stream"}
MAX_DEPTH = 6

SCRIPT = """(names) => {
  const out = {};
  names.forEach(n => {
    try {
      const v = window[n];
      if (v === undefined || v === null || typeof v === 'function') return;
      out[n] = JSON.parse(JSON.stringify(v));
    } catch (e) {}
  });
  return out;
}"""


def _walk(value: Any, key: str, label: Optional[str], depth: int, out: list) -> None:
    if depth > MAX_DEPTH:
        return
    if isinstance(value, str):
        url = normalize_url(value)
        if not url.startswith("http") or is_static_asset(url):
            return
        if key in URL_KEYS or is_stream_url(url):
            out.append((url, label))
    elif isinstance(value, dict):
        own = value.get("label") or value.get("res") or value.get("quality")
        own = str(own) if own is not None else label
        for k, v in value.items():
            _walk(v, str(k).lower(), own, depth + 1, out)
    elif isinstance(value, list):
        for v in value:
            _walk(v, key, label, depth + 1, out)


def window_candidates(values: dict) -> list[MediaSourceCandidate]:
    found: list[tuple[str, Optional[str]]] = []
    for name, value in values.items():
        # a bare string in an allow-listed global is taken as a URL
        key = "url" if name in SOURCE_VARS else name.lower()
        _walk(value, key, None, 0, found)

    candidates = []
    seen = set()
    for url, label in found:
        if url in seen:
            continue
        seen.add(url)
        candidates.append(MediaSourceCandidate(
            url=url,
            source_tag=SourceTag.WINDOW_VAR,
            media_kind=classify(url),
            quality_label=quality_label(url, label),
        ))
    return candidates


@register_detector
class WindowVarDetector:
    id = "window_vars"
    name = "Window global probing"
    rank = 100

    async def probe(self, page: PageHandle) -> DetectorContribution:
        values = await evaluate(page, SCRIPT, SOURCE_VARS + CONFIG_VARS)
        if not isinstance(values, dict):
            raise ProbeError(f"window probe returned {type(values).__name__}")
        configs = {k: v for k, v in values.items() if k in CONFIG_VARS and isinstance(v, dict)}
        candidates = window_candidates(values)
        if values:
            log.debug(f"Globals present: {', '.join(values)}")
        return DetectorContribution(
            detector=self.id,
            candidates=candidates,
            raw_config=configs or None,
        )
