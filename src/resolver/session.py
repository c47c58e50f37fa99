"""
What the resolver needs from the enclosing browser session.

A Playwright `Page` (or `Frame`) already satisfies PageHandle: its
`evaluate(expression, arg)` runs a JS function in the page and returns
the JSON-serialized result.
"""
from __future__ import annotations
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class PageHandle(Protocol):
    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        ...


async def evaluate(page: PageHandle, script: str, arg: Any = None) -> Any:
    """Run `script` in the page, passing `arg` only when given."""
    if arg is None:
        return await page.evaluate(script)
    return await page.evaluate(script, arg)
