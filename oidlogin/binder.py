""" A session binder which does not need a web framework.
"""
import secrets
import threading

from oidlogin.api import SessionBinder, SessionHandle


class MemorySessionBinder(SessionBinder):
    """ Keeps sessions in a dict, keyed by a random session key.

    The identity doubles as the username.
    """

    def __init__(self):
        self.sessions = {}
        self._lock = threading.Lock()

    def set(self, assertion):
        handle = SessionHandle(key=secrets.token_hex(16),
                               username=assertion.identity,
                               identity=assertion.identity)
        with self._lock:
            self.sessions[handle.key] = assertion
        return handle

    def clear(self, handle):
        with self._lock:
            self.sessions.pop(handle.key, None)

    def get(self, key):
        """ The :class:`~oidlogin.api.Assertion` a session was bound
        to, or ``None``.
        """
        return self.sessions.get(key)
