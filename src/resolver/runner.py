"""
Resolver engine: runs every registered detector against a page and hands
what comes back to the aggregator.

Usage:
    engine = ResolverEngine()
    result = await engine.resolve(page)
    print(result.to_dict())

Detectors run concurrently, each under its own timeout. A detector that
times out or blows up contributes nothing; the rest still count. If the
overall deadline passes, detectors still running are cancelled and the
result is built from the ones that finished. The same happens when the
caller cancels resolve() itself.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Iterable, Optional

from . import config
from .aggregator import MediaSourceAggregator
from .base import AggregationResult, DetectorContribution
from .session import PageHandle

log = logging.getLogger("siphon.resolver")


# ──────────────────────────────
#  Detector registry
# ──────────────────────────────
class _Detector:
    id: str
    name: str
    rank: int

    async def probe(self, page: PageHandle) -> DetectorContribution:
        raise NotImplementedError


# Populated when detector modules are imported
_DETECTORS: list[_Detector] = []


def register_detector(detector):
    """Decorator to register a detector class."""
    global _DETECTORS
    _DETECTORS = [d for d in _DETECTORS if d.id != detector.id]
    inst = detector()
    if not getattr(inst, "disabled", False):
        _DETECTORS.append(inst)
        _DETECTORS.sort(key=lambda d: d.rank, reverse=True)
    return detector


def list_detectors() -> list[dict]:
    return [{"id": d.id, "name": d.name, "rank": d.rank} for d in _DETECTORS]


def get_detector(detector_id: str) -> Optional[_Detector]:
    return next((d for d in _DETECTORS if d.id == detector_id), None)


# ──────────────────────────────
#  Engine
# ──────────────────────────────
class ResolverEngine:
    def __init__(self, *, probe_timeout: float | None = None, total_timeout: float | None = None):
        self.probe_timeout = config.PROBE_TIMEOUT if probe_timeout is None else probe_timeout
        self.total_timeout = config.TOTAL_TIMEOUT if total_timeout is None else total_timeout

    async def _run(self, detector: _Detector, page: PageHandle) -> DetectorContribution:
        try:
            log.info(f"[{detector.id}] Probing page...")
            contribution = await asyncio.wait_for(detector.probe(page), timeout=self.probe_timeout)
        except asyncio.TimeoutError:
            log.warning(f"[{detector.id}] Timed out after {self.probe_timeout}s")
            return DetectorContribution(detector=detector.id, timed_out=True)
        except Exception as e:
            log.warning(f"[{detector.id}] Detector failed: {e}")
            return DetectorContribution(detector=detector.id, error=str(e))
        if contribution.produced:
            log.info(f"[{detector.id}] {len(contribution.candidates)} candidate(s)")
        return contribution

    async def resolve(
        self,
        page: PageHandle,
        detectors: Optional[Iterable[str]] = None,
        timeout: Optional[float] = None,
    ) -> AggregationResult:
        """Probe `page` with the selected (default: all) detectors and aggregate.

        `timeout` overrides the engine's overall deadline for this call.
        """
        deadline = self.total_timeout if timeout is None else timeout
        selected = _DETECTORS if detectors is None else [
            d for d in (get_detector(i) for i in detectors) if d is not None
        ]
        aggregator = MediaSourceAggregator()
        if not selected:
            return aggregator.result()

        tasks = {asyncio.create_task(self._run(d, page)): d for d in selected}
        try:
            done, pending = await asyncio.wait(tasks, timeout=deadline)
        except asyncio.CancelledError:
            # caller gave up: keep whatever concluded, never leave probes running
            log.warning("Resolve cancelled, returning partial results")
            done = {t for t in tasks if t.done() and not t.cancelled()}
            pending = set(tasks) - done
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        # registry order, so the result does not depend on finish order
        for task, detector in tasks.items():
            if task in done:
                aggregator.add(task.result())
            else:
                log.warning(f"[{detector.id}] Abandoned before it finished")
                aggregator.add(DetectorContribution(detector=detector.id, timed_out=True))

        result = aggregator.result()
        if not result.success:
            log.warning("All detectors exhausted, no player or source found")
        return result


# ──────────────────────────────
#  Import all detectors to register them
# ──────────────────────────────
def _load_detectors():
    from .detectors import players      # noqa: F401  rank 500
    from .detectors import dom          # noqa: F401  rank 400
    from .detectors import scripts      # noqa: F401  rank 300
    from .detectors import network      # noqa: F401  rank 200
    from .detectors import window_vars  # noqa: F401  rank 100

_load_detectors()
