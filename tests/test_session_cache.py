"""
Unit Tests for the Session Cache

Single-flight authentication, identity keying and eviction.
"""

import threading
import unittest
from unittest.mock import Mock

from icm_extractor.extract.schemas import Credentials
from icm_extractor.extract.session_cache import SessionCache


class TestSessionCache(unittest.TestCase):
    def setUp(self):
        self.credentials = Credentials("user", "secret")

    def test_reuses_session(self):
        factory = Mock(side_effect=lambda credentials: Mock(name="session"))
        cache = SessionCache(factory)

        first = cache.get(self.credentials)
        second = cache.get(self.credentials)

        self.assertIs(first, second)
        factory.assert_called_once_with(self.credentials)

    def test_concurrent_first_calls_log_in_once(self):
        release = threading.Event()
        entered = threading.Event()
        calls = []

        def slow_login(credentials):
            calls.append(credentials)
            entered.set()
            release.wait(5)
            return Mock(name="session")

        cache = SessionCache(slow_login)
        results = []

        threads = [
            threading.Thread(target=lambda: results.append(cache.get(self.credentials)))
            for _ in range(2)
        ]
        threads[0].start()
        self.assertTrue(entered.wait(5))
        threads[1].start()
        release.set()
        for thread in threads:
            thread.join(5)

        self.assertEqual(len(calls), 1)
        self.assertEqual(len(results), 2)
        self.assertIs(results[0], results[1])

    def test_equal_but_distinct_credentials_get_separate_sessions(self):
        factory = Mock(side_effect=lambda credentials: Mock(name="session"))
        cache = SessionCache(factory)
        twin = Credentials("user", "secret")

        self.assertIsNot(cache.get(self.credentials), cache.get(twin))
        self.assertEqual(factory.call_count, 2)
        self.assertEqual(len(cache), 2)

    def test_failed_login_is_evicted(self):
        session = Mock(name="session")
        factory = Mock(side_effect=[ConnectionError("login down"), session])
        cache = SessionCache(factory)

        with self.assertRaises(ConnectionError):
            cache.get(self.credentials)
        self.assertNotIn(self.credentials, cache)

        self.assertIs(cache.get(self.credentials), session)
        self.assertEqual(factory.call_count, 2)

    def test_invalidate_forces_new_login(self):
        sessions = [Mock(name="first"), Mock(name="second")]
        cache = SessionCache(Mock(side_effect=sessions))

        first = cache.get(self.credentials)
        self.assertTrue(cache.invalidate(self.credentials, first))

        self.assertIs(cache.get(self.credentials), sessions[1])

    def test_stale_invalidation_keeps_newer_session(self):
        sessions = [Mock(name="first"), Mock(name="second")]
        cache = SessionCache(Mock(side_effect=sessions))

        first = cache.get(self.credentials)
        cache.invalidate(self.credentials)
        second = cache.get(self.credentials)

        # A late rejection of the old session must not drop the new one
        self.assertFalse(cache.invalidate(self.credentials, first))
        self.assertIs(cache.get(self.credentials), second)

    def test_invalidate_unknown_credentials(self):
        cache = SessionCache(Mock())

        self.assertFalse(cache.invalidate(self.credentials))

    def test_clear(self):
        cache = SessionCache(Mock(side_effect=lambda credentials: Mock()))
        cache.get(self.credentials)

        cache.clear()

        self.assertEqual(len(cache), 0)


def test_credentials_repr_masks_password():
    assert "secret" not in repr(Credentials("user", "secret"))


if __name__ == "__main__":
    unittest.main()
