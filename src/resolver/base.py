"""
Core types for the Siphon resolver.

Everything here is transient: built per call, handed back as a result,
never cached. Each type knows how to turn itself into plain JSON.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


# ──────────────────────────────
#  Decoding
# ──────────────────────────────
class Encoding(str, Enum):
    BASE64 = "base64"
    BASE64URL = "base64url"
    HEX = "hex"
    URL = "url"
    ROT13 = "rot13"
    REVERSE = "reverse"
    PACKER = "packer"


@dataclass
class EncodedPayload:
    raw: str
    chain: list[Encoding] = field(default_factory=list)   # outermost layer first


@dataclass
class DecodeResult:
    output: str
    layers: list[str] = field(default_factory=list)      # layers that changed the text

    @property
    def is_likely_url(self) -> bool:
        return self.output.startswith("http")

    def to_dict(self):
        return {
            "output": self.output,
            "isLikelyUrl": self.is_likely_url,
            "layers": list(self.layers),
        }


# ──────────────────────────────
#  Packed JS
# ──────────────────────────────
@dataclass
class PackedScriptBlock:
    dictionary: list[str]             # entries may be "" (= keep the token)
    radix: int
    token_count: int
    packed_body: str

    def __post_init__(self):
        self.token_count = min(self.token_count, len(self.dictionary))


@dataclass
class HarvestResult:
    unpacked_scripts: list[str] = field(default_factory=list)
    extracted_urls: list[str] = field(default_factory=list)
    stream_urls: list[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "unpackedScripts": self.unpacked_scripts,
            "extractedUrls": self.extracted_urls,
            "streamUrls": self.stream_urls,
            "counts": {
                "scripts": len(self.unpacked_scripts),
                "urls": len(self.extracted_urls),
                "streams": len(self.stream_urls),
            },
        }


# ──────────────────────────────
#  AES
# ──────────────────────────────
@dataclass
class DecryptionAttempt:
    iv: str
    succeeded: bool
    plaintext: Optional[str] = None
    extracted_url: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self):
        d = {"iv": self.iv, "succeeded": self.succeeded}
        if self.error:
            d["error"] = self.error
        if self.extracted_url:
            d["extractedUrl"] = self.extracted_url
        return d


@dataclass
class DecryptionResult:
    success: bool
    iv: Optional[str] = None
    plaintext: Optional[str] = None
    extracted_url: Optional[str] = None
    is_stream_url: bool = False
    attempts: list[DecryptionAttempt] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self):
        d = {
            "success": self.success,
            "attempts": [a.to_dict() for a in self.attempts],
            "attemptCount": len(self.attempts),
        }
        if self.success:
            d.update({
                "iv": self.iv,
                "plaintext": self.plaintext,
                "extractedUrl": self.extracted_url,
                "isStreamUrl": self.is_stream_url,
            })
        else:
            d["error"] = self.error
        return d


# ──────────────────────────────
#  Media sources
# ──────────────────────────────
class SourceTag(str, Enum):
    DOM = "dom"
    NETWORK = "network"
    SCRIPT_REGEX = "script_regex"
    PLAYER_API = "player_api"
    PACKED_JS = "packed_js"
    WINDOW_VAR = "window_var"


# Dedup priority: earlier wins the provenance on a URL collision
SOURCE_PRIORITY: list[SourceTag] = [
    SourceTag.PLAYER_API,
    SourceTag.DOM,
    SourceTag.PACKED_JS,
    SourceTag.SCRIPT_REGEX,
    SourceTag.NETWORK,
    SourceTag.WINDOW_VAR,
]


class MediaKind(str, Enum):
    PRIMARY = "primary"
    QUALITY_VARIANT = "quality_variant"
    MANIFEST = "manifest"
    SEGMENT = "segment"
    UNKNOWN = "unknown"


@dataclass
class MediaSourceCandidate:
    url: str
    source_tag: SourceTag
    media_kind: MediaKind = MediaKind.UNKNOWN
    quality_label: Optional[str] = None      # "1080p" | "720p" | ...
    player_type: Optional[str] = None        # "jwplayer" | "videojs" | ...
    mime_type: Optional[str] = None

    @property
    def format(self) -> str:
        from .patterns import guess_format
        return guess_format(self.url, self.mime_type)

    def to_dict(self):
        d = {
            "url": self.url,
            "source": self.source_tag.value,
            "kind": self.media_kind.value,
            "format": self.format,
        }
        if self.quality_label:
            d["quality"] = self.quality_label
        if self.player_type:
            d["player"] = self.player_type
        if self.mime_type:
            d["mimeType"] = self.mime_type
        return d


@dataclass
class PlayerState:
    is_playing: bool = False
    current_time: float = 0.0               # seconds
    duration: Optional[float] = None        # seconds; None for live / unknown
    volume: Optional[float] = None
    muted: Optional[bool] = None

    def to_dict(self):
        d = {
            "isPlaying": self.is_playing,
            "currentTime": self.current_time,
            "duration": self.duration,
        }
        if self.volume is not None:
            d["volume"] = self.volume
        if self.muted is not None:
            d["muted"] = self.muted
        return d


# ──────────────────────────────
#  Detector output → aggregator input
# ──────────────────────────────
@dataclass
class DetectorContribution:
    detector: str
    candidates: list[MediaSourceCandidate] = field(default_factory=list)
    player_type: Optional[str] = None
    player_state: Optional[PlayerState] = None
    raw_config: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    timed_out: bool = False

    @property
    def produced(self) -> bool:
        return bool(self.candidates) or self.player_type is not None

    def status(self) -> dict:
        d = {"count": len(self.candidates)}
        if self.timed_out:
            d["timedOut"] = True
        if self.error:
            d["error"] = self.error
        return d


# ──────────────────────────────
#  Final aggregation output
# ──────────────────────────────
@dataclass
class AggregationResult:
    player_type: Optional[str] = None
    sources: list[MediaSourceCandidate] = field(default_factory=list)
    player_state: Optional[PlayerState] = None
    raw_config: Optional[dict[str, Any]] = None
    detectors: dict[str, dict] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        # a page can expose a player without sources, or sources without a player
        return self.player_type is not None or len(self.sources) > 0

    def to_dict(self):
        d = {
            "success": self.success,
            "playerTypeDetected": self.player_type,
            "sources": [s.to_dict() for s in self.sources],
            "sourceCount": len(self.sources),
            "detectors": self.detectors,
        }
        if self.player_state is not None:
            d["playerState"] = self.player_state.to_dict()
        if self.raw_config is not None:
            d["rawConfig"] = self.raw_config
        return d
