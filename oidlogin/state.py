""" Bookkeeping of pending login attempts.

Each login attempt gets an unguessable id which travels to the OpenID
provider and back as part of the return_to URL.  When the provider's
response arrives, the attempt is consumed.  An attempt can only be
consumed once: this is what protects us from replayed responses.
"""
import logging
import secrets
import threading
import time

from oidlogin.api import LoginAttempt
from oidlogin.exceptions import StateError


def make_attempt_id():
    return secrets.token_urlsafe(32)


class FlowStateStore(object):
    """ Base class for login attempt stores.

    Subclasses implement :meth:`_insert`, :meth:`_pop` and :meth:`purge`.
    """

    def __init__(self, ttl=300, clock=time.time, log=None):
        self.ttl = ttl
        self.clock = clock
        self.log = log or logging.getLogger(__name__)

    def begin(self, identifier, expected_params=(), return_to=None):
        """ Record a new login attempt.

        :param identifier: The (claimed) identifier the user is logging
            in with.
        :param expected_params: Names of parameters the provider must
            send back in its response.
        :param return_to: The URL the provider will send the user back to.
        :rtype: :class:`~oidlogin.api.LoginAttempt`
        """
        now = self.clock()
        while True:
            attempt = LoginAttempt(
                attempt_id=make_attempt_id(),
                identifier=identifier,
                created_at=now,
                expires_at=now + self.ttl,
                return_parameters=frozenset(expected_params),
                return_to=return_to,
                )
            if self._insert(attempt):
                break
        self.log.debug("Began login attempt for %r (expires at %s)",
                       identifier, attempt.expires_at)
        return attempt

    def consume(self, attempt_id):
        """ Look up and delete a login attempt.

        :raises: :exc:`StateError` (``UNKNOWN``) if there is no such
            attempt (or it has already been consumed.)
        :raises: :exc:`StateError` (``EXPIRED``) if the attempt has
            expired.  (The attempt is deleted regardless.)
        """
        attempt = self._pop(attempt_id)
        if attempt is None:
            raise StateError(StateError.UNKNOWN, attempt_id)
        if attempt.is_expired(self.clock()):
            self.log.debug("Login attempt for %r has expired",
                           attempt.identifier)
            raise StateError(StateError.EXPIRED, attempt_id)
        return attempt

    def purge(self):
        """ Forget attempts which expired more than one TTL ago.

        Attempts which expired more recently than that are kept so that
        their late callbacks are reported as expired rather than unknown.
        """
        raise NotImplementedError()

    def _insert(self, attempt):
        """ Store ``attempt``.

        :returns: ``False`` if an attempt with the same id is already
            outstanding.
        """
        raise NotImplementedError()

    def _pop(self, attempt_id):
        """ Atomically remove and return the attempt, or ``None``.
        """
        raise NotImplementedError()

    def _purge_before(self):
        return self.clock() - self.ttl


class MemoryFlowStateStore(FlowStateStore):
    """ Keeps login attempts in process memory.

    Only suitable when trac runs as a single process.
    """

    def __init__(self, ttl=300, clock=time.time, log=None):
        super(MemoryFlowStateStore, self).__init__(ttl, clock, log)
        self._attempts = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._attempts)

    def purge(self):
        cutoff = self._purge_before()
        with self._lock:
            stale = [attempt_id
                     for attempt_id, attempt in self._attempts.items()
                     if attempt.expires_at < cutoff]
            for attempt_id in stale:
                del self._attempts[attempt_id]
        return len(stale)

    def _insert(self, attempt):
        self.purge()
        with self._lock:
            if attempt.attempt_id in self._attempts:
                return False
            self._attempts[attempt.attempt_id] = attempt
            return True

    def _pop(self, attempt_id):
        with self._lock:
            return self._attempts.pop(attempt_id, None)
