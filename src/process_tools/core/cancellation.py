"""Cooperative cancellation primitives.

A :class:`CancellationTokenSource` is owned by whoever may request the
cancellation; the read-only :class:`CancellationToken` it hands out is given
to the running work, which polls it (``raise_if_cancelled``) or sleeps on it
(``wait``). Signalling is a pure flag: there is no acknowledgement that the
work observed it.
"""

import logging
import threading
from typing import Optional

from ..errors.exceptions import OperationCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """Read-only view of a cancellation signal."""

    def __init__(self, event: threading.Event):
        self._event = event

    @classmethod
    def none(cls) -> "CancellationToken":
        """Return a token that is never cancelled."""
        return cls(threading.Event())

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancellation was requested."""
        if self._event.is_set():
            raise OperationCancelledError()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Sleep up to ``timeout`` seconds, waking early on cancellation.

        Returns:
            True if cancellation was requested, False if the timeout elapsed
        """
        return self._event.wait(timeout)


class CancellationTokenSource:
    """Owner side of a cancellation signal."""

    def __init__(self):
        self._event = threading.Event()
        self._token = CancellationToken(self._event)
        self._disposed = False
        self._lock = threading.Lock()

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def cancel(self) -> None:
        """Signal cancellation to every holder of the token."""
        with self._lock:
            if self._disposed:
                logger.debug("Ignoring cancel on a disposed cancellation source")
                return
            self._event.set()

    def dispose(self) -> None:
        """Retire this source. Tokens keep reporting their last state."""
        with self._lock:
            self._disposed = True
