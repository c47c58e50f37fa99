"""
Ordered fallback chains: try candidates one after another, stop at the
first one that yields a value.

Used wherever the resolver has a ranked list of guesses: IVs for the AES
resolver, dictionary/body extraction strategies in the unpacker, block
location strategies in the harvester, player framework probes.

An attempt "fails" by raising one of `catch` or by returning None.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Iterable, Optional, TypeVar

C = TypeVar("C")
R = TypeVar("R")


@dataclass
class Attempt(Generic[C, R]):
    candidate: C
    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None


@dataclass
class ChainOutcome(Generic[C, R]):
    attempts: list[Attempt[C, R]] = field(default_factory=list)

    @property
    def winner(self) -> Optional[Attempt[C, R]]:
        if self.attempts and self.attempts[-1].ok:
            return self.attempts[-1]
        return None

    @property
    def value(self) -> Optional[R]:
        w = self.winner
        return w.value if w else None

    def __bool__(self) -> bool:
        return self.winner is not None


def first_success(
    candidates: Iterable[C],
    attempt: Callable[[C], Optional[R]],
    *,
    catch: tuple[type[BaseException], ...] = (Exception,),
) -> ChainOutcome[C, R]:
    outcome: ChainOutcome[C, R] = ChainOutcome()
    for candidate in candidates:
        try:
            value = attempt(candidate)
        except catch as e:
            outcome.attempts.append(Attempt(candidate, error=e))
            continue
        outcome.attempts.append(Attempt(candidate, value=value))
        if value is not None:
            break
    return outcome


async def first_success_async(
    candidates: Iterable[C],
    attempt: Callable[[C], Awaitable[Optional[R]]],
    *,
    catch: tuple[type[BaseException], ...] = (Exception,),
) -> ChainOutcome[C, R]:
    """Same as first_success, for coroutine attempts. Strictly sequential."""
    outcome: ChainOutcome[C, R] = ChainOutcome()
    for candidate in candidates:
        try:
            value = await attempt(candidate)
        except catch as e:
            outcome.attempts.append(Attempt(candidate, error=e))
            continue
        outcome.attempts.append(Attempt(candidate, value=value))
        if value is not None:
            break
    return outcome

