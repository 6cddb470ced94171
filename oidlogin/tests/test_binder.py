import unittest

from oidlogin.api import Assertion
from oidlogin.tests.support import IDENTITY


class TestMemorySessionBinder(unittest.TestCase):
    def get_binder(self):
        from oidlogin.binder import MemorySessionBinder
        return MemorySessionBinder()

    def test_set(self):
        binder = self.get_binder()
        assertion = Assertion(IDENTITY, {}, {})
        handle = binder.set(assertion)
        self.assertEqual(handle.username, IDENTITY)
        self.assertEqual(handle.identity, IDENTITY)
        self.assertIs(binder.get(handle.key), assertion)

    def test_sessions_are_distinct(self):
        binder = self.get_binder()
        assertion = Assertion(IDENTITY, {}, {})
        self.assertNotEqual(binder.set(assertion).key,
                            binder.set(assertion).key)

    def test_clear(self):
        binder = self.get_binder()
        handle = binder.set(Assertion(IDENTITY, {}, {}))
        binder.clear(handle)
        self.assertIs(binder.get(handle.key), None)
        # clearing twice is harmless
        binder.clear(handle)
