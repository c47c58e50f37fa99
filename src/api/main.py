import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from src.resolver import aes, config, decoders, harvester, unpacker
from src.resolver.aggregator import aggregate
from src.resolver.base import (
    DetectorContribution, EncodedPayload, Encoding, MediaKind,
    MediaSourceCandidate, PlayerState, SourceTag,
)
from src.resolver.detectors.players import list_players
from src.resolver.detectors.scripts import scan_scripts
from src.resolver.fetcher import Fetcher
from src.resolver.runner import list_detectors

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("siphon.api")

app = FastAPI(title="Siphon | Media Resolver")


class DecodeInput(BaseModel):
    text: str
    chain: Optional[List[str]] = None      # omitted → guess the layers
    max_depth: int = 5


class TextInput(BaseModel):
    text: str


class DecryptInput(BaseModel):
    ciphertext: Optional[str] = None
    url: Optional[str] = None
    key: Optional[str] = None
    ivs: Optional[List[str]] = None
    referer: Optional[str] = None
    headers: Optional[dict] = None


class CandidateInput(BaseModel):
    url: str
    source: SourceTag
    kind: MediaKind = MediaKind.UNKNOWN
    quality: Optional[str] = None
    player: Optional[str] = None
    mime_type: Optional[str] = None


class PlayerStateInput(BaseModel):
    is_playing: bool = False
    current_time: float = 0.0
    duration: Optional[float] = None
    volume: Optional[float] = None
    muted: Optional[bool] = None


class ContributionInput(BaseModel):
    detector: str
    candidates: List[CandidateInput] = []
    player_type: Optional[str] = None
    player_state: Optional[PlayerStateInput] = None
    raw_config: Optional[dict] = None
    error: Optional[str] = None
    timed_out: bool = False


class AggregateInput(BaseModel):
    contributions: List[ContributionInput]


@app.get("/detectors")
def get_detectors():
    return {"detectors": list_detectors(), "players": list_players()}


@app.post("/decode")
def decode_text(input_data: DecodeInput):
    """
    Decode `text` through an explicit layer chain, or guess the layers when no chain is given.
    """
    if input_data.chain is None:
        result = decoders.auto_decode(input_data.text, max_depth=input_data.max_depth)
    else:
        unknown = [s for s in input_data.chain if s.strip().lower() not in {e.value for e in Encoding}]
        if unknown:
            log.info(f"Ignoring unknown layer(s): {unknown}")
        result = decoders.decode(EncodedPayload(raw=input_data.text, chain=input_data.chain))
    return result.to_dict()


@app.post("/unpack")
def unpack_script(input_data: TextInput):
    packed = unpacker.detect(input_data.text)
    output = unpacker.unpack(input_data.text) if packed else input_data.text
    return {
        "packed": packed,
        "unpacked": packed and output != input_data.text,
        "output": output,
    }


@app.post("/harvest")
def harvest_page(input_data: TextInput):
    return harvester.harvest(input_data.text).to_dict()


@app.post("/scan/scripts")
def scan_page_scripts(input_data: TextInput):
    sources = scan_scripts(input_data.text)
    return {"sources": [s.to_dict() for s in sources], "sourceCount": len(sources)}


@app.post("/decrypt")
async def decrypt_payload(input_data: DecryptInput):
    """
    AES-CBC decrypt a hex ciphertext, given literally or fetched from `url`.
    """
    if not input_data.ciphertext and not input_data.url:
        raise HTTPException(status_code=400, detail="Provide either 'ciphertext' or 'url'.")

    if input_data.ciphertext:
        result = aes.resolve(input_data.ciphertext, input_data.key, input_data.ivs)
    else:
        async with Fetcher() as fetcher:
            result = await aes.resolve_remote(
                input_data.url, fetcher, input_data.key, input_data.ivs,
                referer=input_data.referer, headers=input_data.headers,
            )
    return result.to_dict()


@app.post("/aggregate")
def aggregate_contributions(input_data: AggregateInput):
    contributions = []
    for c in input_data.contributions:
        contributions.append(DetectorContribution(
            detector=c.detector,
            candidates=[
                MediaSourceCandidate(
                    url=cand.url,
                    source_tag=cand.source,
                    media_kind=cand.kind,
                    quality_label=cand.quality,
                    player_type=cand.player,
                    mime_type=cand.mime_type,
                )
                for cand in c.candidates
            ],
            player_type=c.player_type,
            player_state=PlayerState(
                is_playing=c.player_state.is_playing,
                current_time=c.player_state.current_time,
                duration=c.player_state.duration,
                volume=c.player_state.volume,
                muted=c.player_state.muted,
            ) if c.player_state else None,
            raw_config=c.raw_config,
            error=c.error,
            timed_out=c.timed_out,
        ))
    return aggregate(contributions).to_dict()
