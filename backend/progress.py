"""Helpers for consuming progress-event streams."""

import json
from typing import AsyncIterator, Optional, TypeVar

from models import ProgressEvent

E = TypeVar("E", bound=ProgressEvent)


class StreamEndedWithoutResult(RuntimeError):
    pass


async def final_event(stream: AsyncIterator[E]) -> E:
    """Drain a progress stream and return its terminal event.

    The last complete-or-error event wins. A stream that ends without one is a
    producer bug and raises StreamEndedWithoutResult.
    """
    terminal: Optional[E] = None
    async for event in stream:
        if event.is_terminal:
            terminal = event
    if terminal is None:
        raise StreamEndedWithoutResult("progress stream ended without a complete or error event")
    return terminal


def sse_event(payload: dict) -> str:
    """Frame one Server-Sent Event."""
    return f"data: {json.dumps(payload, default=str)}\n\n"


async def sse_stream(stream: AsyncIterator[ProgressEvent]) -> AsyncIterator[str]:
    """Relay progress events as SSE frames, closing the producer when the client goes away."""
    try:
        async for event in stream:
            yield sse_event(event.model_dump(mode="json", exclude_none=True))
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()
