import threading
import unittest

from mock import Mock, patch

from oidlogin.exceptions import StateError
from oidlogin.tests.support import FakeClock


class TestMemoryFlowStateStore(unittest.TestCase):
    ttl = 300

    def setUp(self):
        self.clock = FakeClock()

    def get_store(self):
        from oidlogin.state import MemoryFlowStateStore
        return MemoryFlowStateStore(self.ttl, clock=self.clock,
                                    log=Mock(name='Logger'))

    def test_begin(self):
        store = self.get_store()
        attempt = store.begin('http://example.com/', ['openid.sig'],
                              'http://example.net/login')
        self.assertEqual(attempt.identifier, 'http://example.com/')
        self.assertEqual(attempt.created_at, self.clock.now)
        self.assertEqual(attempt.expires_at, self.clock.now + self.ttl)
        self.assertEqual(attempt.return_parameters,
                         frozenset(['openid.sig']))
        self.assertEqual(attempt.return_to, 'http://example.net/login')
        self.assertGreaterEqual(len(attempt.attempt_id), 32)
        self.assertEqual(len(store), 1)

    def test_attempt_ids_are_unique(self):
        store = self.get_store()
        ids = set(store.begin('x').attempt_id for n in range(50))
        self.assertEqual(len(ids), 50)

    def test_begin_retries_on_collision(self):
        store = self.get_store()
        with patch('oidlogin.state.make_attempt_id',
                   side_effect=['dup', 'dup', 'fresh']):
            first = store.begin('x')
            second = store.begin('y')
        self.assertEqual(first.attempt_id, 'dup')
        self.assertEqual(second.attempt_id, 'fresh')
        self.assertEqual(store.consume('dup').identifier, 'x')

    def test_consume(self):
        store = self.get_store()
        attempt = store.begin('x')
        self.assertEqual(store.consume(attempt.attempt_id), attempt)
        self.assertEqual(len(store), 0)

    def test_consume_twice(self):
        store = self.get_store()
        attempt = store.begin('x')
        store.consume(attempt.attempt_id)
        with self.assertRaises(StateError) as raised:
            store.consume(attempt.attempt_id)
        self.assertEqual(raised.exception.kind, StateError.UNKNOWN)

    def test_consume_unknown(self):
        store = self.get_store()
        with self.assertRaises(StateError) as raised:
            store.consume('bogus')
        self.assertEqual(raised.exception.kind, StateError.UNKNOWN)
        self.assertEqual(raised.exception.attempt_id, 'bogus')

    def test_consume_at_deadline(self):
        store = self.get_store()
        attempt = store.begin('x')
        self.clock.advance(self.ttl)
        self.assertEqual(store.consume(attempt.attempt_id), attempt)

    def test_expired_is_reported_once(self):
        store = self.get_store()
        attempt = store.begin('x')
        self.clock.advance(self.ttl + 1)
        with self.assertRaises(StateError) as raised:
            store.consume(attempt.attempt_id)
        self.assertEqual(raised.exception.kind, StateError.EXPIRED)
        with self.assertRaises(StateError) as raised:
            store.consume(attempt.attempt_id)
        self.assertEqual(raised.exception.kind, StateError.UNKNOWN)

    def test_purge_keeps_recently_expired(self):
        store = self.get_store()
        attempt = store.begin('x')
        self.clock.advance(self.ttl + 1)
        self.assertEqual(store.purge(), 0)
        with self.assertRaises(StateError) as raised:
            store.consume(attempt.attempt_id)
        self.assertEqual(raised.exception.kind, StateError.EXPIRED)

    def test_purge(self):
        store = self.get_store()
        attempt = store.begin('x')
        self.clock.advance(2 * self.ttl + 1)
        self.assertEqual(store.purge(), 1)
        self.assertEqual(len(store), 0)
        with self.assertRaises(StateError) as raised:
            store.consume(attempt.attempt_id)
        self.assertEqual(raised.exception.kind, StateError.UNKNOWN)

    def test_begin_purges(self):
        store = self.get_store()
        store.begin('old')
        self.clock.advance(2 * self.ttl + 1)
        store.begin('new')
        self.assertEqual(len(store), 1)

    def test_concurrent_consume(self):
        store = self.get_store()
        attempt = store.begin('x')
        nthreads = 8
        barrier = threading.Barrier(nthreads)
        results = []

        def consume():
            barrier.wait()
            try:
                store.consume(attempt.attempt_id)
                results.append('ok')
            except StateError as exc:
                results.append(exc.kind)

        threads = [threading.Thread(target=consume) for n in range(nthreads)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(results.count('ok'), 1)
        self.assertEqual(results.count(StateError.UNKNOWN), nthreads - 1)


class TestFlowStateStore(unittest.TestCase):
    def test_abstract(self):
        from oidlogin.state import FlowStateStore
        store = FlowStateStore()
        with self.assertRaises(NotImplementedError):
            store.begin('x')
        with self.assertRaises(NotImplementedError):
            store.consume('x')
        with self.assertRaises(NotImplementedError):
            store.purge()
