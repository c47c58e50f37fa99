"""
Player framework introspection.

Each supported framework is one PlayerProbe row: a name, a rank and a JS
function that returns null when the framework is absent, or

    {sources: [{src, type?, label?, height?}], qualities: [...],
     state: {playing, time, duration, volume, muted}}

Rows are tried highest rank first; the first framework present on the
page wins and the rest are not probed. When no framework yields any
source, plain <video> elements are read as a last resort.

Adding a framework means registering another row, nothing else.
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

from ..base import DetectorContribution, MediaSourceCandidate, PlayerState, SourceTag
from ..chain import first_success_async
from ..errors import ProbeError
from ..patterns import classify, is_ephemeral, normalize_url, quality_label
from ..runner import register_detector
from ..session import PageHandle, evaluate

log = logging.getLogger("siphon.resolver.players")

# Wraps a probe body so that whatever it returns crosses the page boundary as plain JSON
_WRAPPER = """() => {
  try {
    const r = (%s)();
    return r ? JSON.parse(JSON.stringify(r)) : null;
  } catch (e) {
    return {error: String(e && e.message || e)};
  }
}"""


@dataclass(frozen=True)
class PlayerProbe:
    name: str
    rank: int
    script: str

    async def run(self, page: PageHandle) -> Optional[dict]:
        data = await evaluate(page, _WRAPPER % self.script)
        if data is None:
            return None
        if not isinstance(data, dict):
            raise ProbeError(f"{self.name}: unexpected {type(data).__name__}")
        if data.get("error"):
            raise ProbeError(f"{self.name}: {data['error']}")
        return data


_PLAYERS: list[PlayerProbe] = []


def register_player(probe: PlayerProbe) -> PlayerProbe:
    global _PLAYERS
    _PLAYERS = [p for p in _PLAYERS if p.name != probe.name]
    _PLAYERS.append(probe)
    _PLAYERS.sort(key=lambda p: p.rank, reverse=True)
    return probe


def list_players() -> list[dict]:
    return [{"name": p.name, "rank": p.rank} for p in _PLAYERS]


# ──────────────────────────────
#  Framework table
# ──────────────────────────────
register_player(PlayerProbe("jwplayer", 120, """() => {
  if (typeof window.jwplayer !== 'function') return null;
  const p = window.jwplayer();
  if (!p || typeof p.getPlaylist !== 'function') return {sources: []};
  const sources = [];
  (p.getPlaylist() || []).forEach(item => {
    (item.sources || []).forEach(s => { if (s.file) sources.push({src: s.file, type: s.type, label: s.label, height: s.height}); });
    if (item.file) sources.push({src: item.file, type: item.type});
  });
  const levels = (p.getQualityLevels && p.getQualityLevels()) || [];
  return {
    sources,
    qualities: levels.map(l => ({label: l.label, height: l.height})),
    state: {playing: p.getState && p.getState() === 'playing', time: p.getPosition && p.getPosition(),
            duration: p.getDuration && p.getDuration(), volume: p.getVolume && p.getVolume(), muted: p.getMute && p.getMute()},
  };
}"""))

register_player(PlayerProbe("videojs", 110, """() => {
  const vjs = window.videojs;
  if (!vjs) return null;
  const all = vjs.getAllPlayers ? vjs.getAllPlayers() : Object.values(vjs.getPlayers ? vjs.getPlayers() : {});
  const p = (all || []).filter(Boolean)[0];
  if (!p) return {sources: []};
  const sources = [];
  const cur = p.currentSource && p.currentSource();
  if (cur && cur.src) sources.push({src: cur.src, type: cur.type, label: cur.label});
  (p.currentSources ? p.currentSources() : []).forEach(s => { if (s.src) sources.push({src: s.src, type: s.type, label: s.label}); });
  if (!sources.length && p.currentSrc && p.currentSrc()) sources.push({src: p.currentSrc()});
  const levels = p.qualityLevels ? Array.from(p.qualityLevels()) : [];
  return {
    sources,
    qualities: levels.map(l => ({label: l.label || l.id, height: l.height})),
    state: {playing: !p.paused(), time: p.currentTime(), duration: p.duration(), volume: p.volume(), muted: p.muted()},
  };
}"""))

register_player(PlayerProbe("plyr", 100, """() => {
  const P = window.Plyr || window.plyr;
  if (!P) return null;
  let p = window.player && typeof window.player.togglePlay === 'function' ? window.player : null;
  if (!p && P.getAll) p = (P.getAll() || [])[0];
  if (!p) return {sources: []};
  const media = p.media || {};
  const src = typeof p.source === 'string' ? p.source : (media.currentSrc || media.src);
  const sources = src ? [{src}] : [];
  (media.querySelectorAll ? Array.from(media.querySelectorAll('source')) : []).forEach(s => {
    if (s.src) sources.push({src: s.src, type: s.type, label: s.getAttribute('size')});
  });
  return {sources, state: {playing: p.playing, time: p.currentTime, duration: p.duration, volume: p.volume, muted: p.muted}};
}"""))

register_player(PlayerProbe("clappr", 90, """() => {
  if (!(window.Clappr || window.clappr)) return null;
  const p = window.player && window.player.options ? window.player : null;
  if (!p) return {sources: []};
  const o = p.options || {};
  const list = [].concat(o.sources || [], o.source ? [o.source] : []);
  const sources = list.map(s => typeof s === 'string' ? {src: s} : {src: s.source || s.src, type: s.mimeType});
  return {
    sources,
    state: {playing: p.isPlaying && p.isPlaying(), time: p.getCurrentTime && p.getCurrentTime(),
            duration: p.getDuration && p.getDuration(), volume: p.getVolume && p.getVolume()},
  };
}"""))

register_player(PlayerProbe("flowplayer", 80, """() => {
  if (typeof window.flowplayer !== 'function') return null;
  const p = window.flowplayer();
  if (!p) return {sources: []};
  const v = p.video || {};
  const sources = (v.sources || []).map(s => ({src: s.src, type: s.type}));
  if (v.src) sources.unshift({src: v.src, type: v.type});
  return {sources, state: {playing: p.playing, time: v.time, duration: v.duration, volume: p.volumeLevel, muted: p.muted}};
}"""))

register_player(PlayerProbe("mediaelement", 70, """() => {
  const m = window.mejs;
  if (!(m || window.MediaElementPlayer)) return null;
  const p = m && m.players ? Object.values(m.players)[0] : null;
  if (!p) return {sources: []};
  const media = p.media || {};
  const src = media.getSrc ? media.getSrc() : (media.currentSrc || media.src);
  return {sources: src ? [{src}] : [], state: {playing: media.paused === false, time: media.currentTime, duration: media.duration}};
}"""))

register_player(PlayerProbe("dplayer", 60, """() => {
  if (!(window.DPlayer || window.dplayer || window.dp)) return null;
  const p = window.dp || window.dplayer;
  if (!p || !p.options) return {sources: []};
  const video = p.options.video || {};
  const sources = [];
  if (video.url) sources.push({src: video.url, type: video.type});
  (video.quality || []).forEach(q => { if (q.url) sources.push({src: q.url, type: q.type, label: q.name}); });
  const el = p.video || {};
  return {sources, state: {playing: el.paused === false, time: el.currentTime, duration: el.duration, volume: el.volume, muted: el.muted}};
}"""))

register_player(PlayerProbe("artplayer", 50, """() => {
  const A = window.Artplayer || window.artplayer;
  if (!A) return null;
  const p = window.art || (A.instances || [])[0];
  if (!p) return {sources: []};
  const sources = p.url ? [{src: p.url, type: p.option && p.option.type}] : [];
  ((p.option && p.option.quality) || []).forEach(q => { if (q.url) sources.push({src: q.url, label: q.html}); });
  return {sources, state: {playing: p.playing, time: p.currentTime, duration: p.duration, volume: p.volume, muted: p.muted}};
}"""))

register_player(PlayerProbe("shaka", 40, """() => {
  if (!window.shaka) return null;
  const p = window.player && typeof window.player.getAssetUri === 'function' ? window.player : null;
  if (!p) return {sources: []};
  const uri = p.getAssetUri();
  const tracks = p.getVariantTracks ? p.getVariantTracks() : [];
  const el = p.getMediaElement ? p.getMediaElement() : null;
  return {
    sources: uri ? [{src: uri}] : [],
    qualities: tracks.map(t => ({label: t.height ? t.height + 'p' : null, height: t.height})),
    state: el ? {playing: !el.paused, time: el.currentTime, duration: el.duration, volume: el.volume, muted: el.muted} : null,
  };
}"""))

register_player(PlayerProbe("dashjs", 30, """() => {
  if (!(window.dashjs || window.Dash)) return null;
  const sources = [];
  let state = null;
  document.querySelectorAll('video').forEach(v => {
    const d = v._dash || v.dash;
    if (!d) return;
    const src = d.url || (d.getSource && d.getSource());
    if (typeof src === 'string') sources.push({src, type: 'application/dash+xml'});
    if (!state) state = {playing: !v.paused, time: v.currentTime, duration: v.duration, volume: v.volume, muted: v.muted};
  });
  return {sources, state};
}"""))

register_player(PlayerProbe("hlsjs", 20, """() => {
  if (!window.Hls) return null;
  const sources = [];
  let state = null;
  let qualities = [];
  const found = [];
  document.querySelectorAll('video').forEach(v => { if (v._hls || v.hls) found.push([v, v._hls || v.hls]); });
  if (window.hls && window.hls.url) found.push([window.hls.media || null, window.hls]);
  found.forEach(([v, h]) => {
    if (h.url) sources.push({src: h.url, type: 'application/x-mpegurl'});
    (h.levels || []).forEach(l => {
      const u = Array.isArray(l.url) ? l.url[0] : l.url;
      if (u) sources.push({src: u, height: l.height, label: l.height ? l.height + 'p' : null, variant: true});
    });
    qualities = qualities.concat((h.levels || []).map(l => ({height: l.height})));
    if (v && !state) state = {playing: !v.paused, time: v.currentTime, duration: v.duration, volume: v.volume, muted: v.muted};
  });
  return {sources, qualities, state};
}"""))

NATIVE_VIDEO = PlayerProbe("html5", 0, """() => {
  const videos = Array.from(document.querySelectorAll('video'));
  if (!videos.length) return null;
  const sources = [];
  videos.forEach(v => {
    const src = v.currentSrc || v.src;
    if (src) sources.push({src, type: v.getAttribute('type')});
    v.querySelectorAll('source').forEach(s => { if (s.src) sources.push({src: s.src, type: s.type, label: s.getAttribute('label') || s.getAttribute('size')}); });
  });
  const v = videos[0];
  return {sources, state: {playing: !v.paused, time: v.currentTime, duration: v.duration, volume: v.volume, muted: v.muted}};
}""")


# ──────────────────────────────
#  Probe output → contribution
# ──────────────────────────────
def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def player_state(raw: Any) -> Optional[PlayerState]:
    if not isinstance(raw, dict):
        return None
    muted = raw.get("muted")
    return PlayerState(
        is_playing=bool(raw.get("playing")),
        current_time=_number(raw.get("time")) or 0.0,
        duration=_number(raw.get("duration")),
        volume=_number(raw.get("volume")),
        muted=muted if isinstance(muted, bool) else None,
    )


def player_candidates(data: dict, player: str) -> list[MediaSourceCandidate]:
    candidates = []
    seen = set()
    for i, raw in enumerate(data.get("sources") or []):
        if not isinstance(raw, dict) or not isinstance(raw.get("src"), str):
            continue
        url = normalize_url(raw["src"])
        if not url or is_ephemeral(url) or url in seen:
            continue
        seen.add(url)
        # everything after the first labelled source is an alternative rendition
        variant = bool(raw.get("variant")) or (i > 0 and bool(raw.get("label") or raw.get("height")))
        candidates.append(MediaSourceCandidate(
            url=url,
            source_tag=SourceTag.PLAYER_API,
            media_kind=classify(url, variant=variant),
            quality_label=quality_label(url, raw.get("label"), raw.get("height")),
            player_type=player,
            mime_type=raw.get("type") or None,
        ))
    return candidates


def players_by_rank() -> list[PlayerProbe]:
    return list(_PLAYERS)


@register_detector
class PlayerDetector:
    id = "players"
    name = "Player framework introspection"
    rank = 500

    async def probe(self, page: PageHandle) -> DetectorContribution:
        contribution = DetectorContribution(detector=self.id)

        outcome = await first_success_async(players_by_rank(), lambda p: p.run(page))
        for attempt in outcome.attempts:
            if attempt.error:
                log.debug(f"[{attempt.candidate.name}] probe error: {attempt.error}")

        if outcome:
            probe, data = outcome.winner.candidate, outcome.value
            log.info(f"Player framework detected: {probe.name}")
            contribution.player_type = probe.name
            contribution.candidates = player_candidates(data, probe.name)
            contribution.player_state = player_state(data.get("state"))
            qualities = [q for q in data.get("qualities") or [] if isinstance(q, dict)]
            if qualities:
                contribution.raw_config = {probe.name: {"qualities": qualities}}

        if not contribution.candidates:
            try:
                native = await NATIVE_VIDEO.run(page)
            except Exception as e:
                log.debug(f"[html5] probe error: {e}")
                native = None
            if native:
                contribution.candidates = player_candidates(native, NATIVE_VIDEO.name)
        return contribution
