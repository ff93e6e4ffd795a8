# Client-side session store: the single owner of the current credential pair.

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    access_token: str
    refresh_token: str
    identity: dict = field(default_factory=dict)


class SessionStore:
    """
    Holds at most one SessionState.

    The state is an immutable snapshot replaced wholesale under a lock, so a
    reader always sees either the old pair or the new one, never a mix.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._state: Optional[SessionState] = None
        self._listeners: List[Callable[[], None]] = []

    def current(self) -> Optional[SessionState]:
        return self._state

    def install(self, state: SessionState) -> None:
        with self._lock:
            self._state = state
        logger.info(f"Session installed: user={state.identity.get('id')}")

    def update_access_token(self, access_token: str) -> bool:
        """
        Swaps in a renewed access token. Returns False when the session was
        cleared in the meantime, so a late renewal cannot bring it back.
        """
        with self._lock:
            if self._state is None:
                return False
            self._state = replace(self._state, access_token=access_token)
        return True

    def clear(self) -> None:
        with self._lock:
            was_live = self._state is not None
            self._state = None

        if not was_live:
            return

        logger.info("Session cleared")
        for callback in list(self._listeners):
            callback()

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Registers a "session invalid" listener. Returns a function that removes it.
        """
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe
