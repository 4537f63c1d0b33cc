"""
Timeout wrapper for calls into external libraries.

Decoders and page renderers are third-party code that can hang on malformed
input. Tesseract is bounded by pytesseract itself, which kills the process. The call runs on a helper thread; if it does not finish in time the
caller gets a TimeoutError and moves on. The helper thread cannot be
killed, so it is abandoned and finishes in the background.
"""

from __future__ import annotations

import concurrent.futures
from typing import Callable, Optional, TypeVar

T = TypeVar("T")


def call_with_timeout(
    func: Callable[..., T],
    *args,
    timeout: Optional[float] = None,
    **kwargs,
) -> T:
    """
    Run func(*args, **kwargs), raising TimeoutError after `timeout` seconds.

    A timeout of None runs the call inline.
    """
    if timeout is None:
        return func(*args, **kwargs)

    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    future = executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError as e:
        future.cancel()
        raise TimeoutError(f"Call timed out after {timeout}s") from e
    finally:
        executor.shutdown(wait=False)
