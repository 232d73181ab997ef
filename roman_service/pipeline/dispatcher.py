from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Sequence

from roman_service.pipeline.errors import DispatchError
from roman_service.pipeline.types import CancellationToken, UnitPayload
from roman_service.transliteration import stream_transform

logger = logging.getLogger(__name__)

Transform = Callable[[Sequence[UnitPayload]], AsyncIterator[str]]


class StreamDispatcher:
    """Sends one batch to the transliteration service as a fresh request.

    Fragments are pulled lazily by the caller. Once the token is paused or
    aborted no further fragment is requested, and closing the returned
    generator closes the underlying service stream.
    """

    def __init__(self, transform: Transform | None = None) -> None:
        self._transform = transform or stream_transform

    async def dispatch(
        self, payloads: Sequence[UnitPayload], token: CancellationToken
    ) -> AsyncIterator[str]:
        if not payloads:
            raise ValueError("dispatch requires at least one unit")
        if token.stopped:
            return

        stream = self._transform(list(payloads))
        try:
            async for fragment in stream:
                yield fragment
                if token.stopped:
                    logger.info("Dispatch interrupted after fragment boundary")
                    return
        except DispatchError:
            raise
        except Exception as e:
            logger.warning("Transliteration stream failed: %s: %s", type(e).__name__, e)
            raise DispatchError(str(e) or type(e).__name__) from e
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
