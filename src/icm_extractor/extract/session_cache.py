"""
Session Cache - one authenticated session per Credentials object

The first caller for a Credentials object runs the login; callers arriving
while it is in flight wait for the same result. Entries are keyed by object
identity, so equal-valued but distinct Credentials get separate sessions.
"""

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Dict, Optional

import requests

from .schemas import Credentials

logger = logging.getLogger(__name__)

SessionFactory = Callable[[Credentials], requests.Session]


class SessionCache:
    """Single-flight, identity-keyed cache of authenticated sessions"""

    def __init__(self, factory: SessionFactory):
        self._factory = factory
        self._lock = threading.Lock()
        self._sessions: Dict[Credentials, "Future[requests.Session]"] = {}

    def get(self, credentials: Credentials) -> requests.Session:
        """Return the cached session, authenticating on first use

        Raises:
            Whatever the login raised; the failed entry is evicted so the
            next call authenticates again.
        """
        with self._lock:
            future = self._sessions.get(credentials)
            owner = future is None
            if owner:
                future = Future()
                self._sessions[credentials] = future

        if not owner:
            return future.result()

        logger.info(f"🔑 Authenticating {credentials.username}")
        try:
            session = self._factory(credentials)
        except BaseException as e:
            self._evict(credentials, future)
            future.set_exception(e)
            raise

        future.set_result(session)
        return session

    def invalidate(
        self, credentials: Credentials, session: Optional[requests.Session] = None
    ) -> bool:
        """Evict the entry for `credentials`

        When `session` is given, only evict if the cache still holds that
        session, so a stale rejection cannot drop a newer login.
        """
        with self._lock:
            future = self._sessions.get(credentials)
            if future is None:
                return False

            if session is not None:
                if not future.done() or future.exception() is not None:
                    return False
                if future.result() is not session:
                    return False

            del self._sessions[credentials]

        logger.warning(f"Session for {credentials.username} invalidated")
        return True

    def _evict(self, credentials: Credentials, future: Future) -> None:
        with self._lock:
            if self._sessions.get(credentials) is future:
                del self._sessions[credentials]

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __contains__(self, credentials: Credentials) -> bool:
        with self._lock:
            return credentials in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
