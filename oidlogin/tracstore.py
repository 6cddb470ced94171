""" Login attempt storage in the trac database.

Use this (``[openid] state_store = database``, the default) whenever
trac runs in more than one process: the process which handles the
provider's response is not necessarily the one which sent the user
there.
"""
import time

from trac.core import Component, implements
from trac.db.api import DatabaseManager
from trac.db.schema import Column, Table
from trac.env import IEnvironmentSetupParticipant

from oidlogin.api import LoginAttempt
from oidlogin.state import FlowStateStore

SCHEMA = [
    Table('oid_login_attempt', key='token')[
        Column('token'),
        Column('identifier'),
        Column('created', type='int64'),
        Column('expires', type='int64'),
        Column('return_to'),
        Column('params'),
        ],
    ]


def _to_db_time(t):
    return int(t * 1000000)


def _from_db_time(t):
    return t / 1000000.0


class LoginAttemptTable(Component):
    """ Creates (and upgrades) the table used by
    :class:`DatabaseFlowStateStore`.
    """
    implements(IEnvironmentSetupParticipant)

    schema_version = 1
    schema_version_key = 'oidlogin_schema_version'

    # IEnvironmentSetupParticipant methods
    def environment_created(self):
        self.upgrade_environment()

    def environment_needs_upgrade(self):
        dbm = DatabaseManager(self.env)
        return dbm.needs_upgrade(self.schema_version, self.schema_version_key)

    def upgrade_environment(self):
        dbm = DatabaseManager(self.env)
        with self.env.db_transaction:
            dbm.create_tables(SCHEMA)
            dbm.set_database_version(self.schema_version,
                                     self.schema_version_key)
        self.log.info("Created table oid_login_attempt")


class DatabaseFlowStateStore(FlowStateStore):
    """ Keeps login attempts in the ``oid_login_attempt`` table.

    Consumption is a compare-and-delete: of several concurrent
    callers consuming the same attempt, only the one whose ``DELETE``
    actually removes the row succeeds.
    """

    def __init__(self, env, ttl=300, clock=time.time, log=None):
        super(DatabaseFlowStateStore, self).__init__(ttl, clock,
                                                     log or env.log)
        self.env = env

    def purge(self):
        cutoff = _to_db_time(self._purge_before())
        with self.env.db_transaction as db:
            cursor = db.cursor()
            cursor.execute("DELETE FROM oid_login_attempt WHERE expires < %s",
                           (cutoff,))
            return cursor.rowcount

    def _insert(self, attempt):
        self.purge()
        with self.env.db_transaction as db:
            if db("SELECT 1 FROM oid_login_attempt WHERE token=%s",
                  (attempt.attempt_id,)):
                return False
            db("INSERT INTO oid_login_attempt"
               " (token, identifier, created, expires, return_to, params)"
               " VALUES (%s, %s, %s, %s, %s, %s)",
               (attempt.attempt_id, attempt.identifier,
                _to_db_time(attempt.created_at),
                _to_db_time(attempt.expires_at),
                attempt.return_to,
                ' '.join(sorted(attempt.return_parameters))))
        return True

    def _pop(self, attempt_id):
        with self.env.db_transaction as db:
            rows = db("SELECT identifier, created, expires, return_to, params"
                      " FROM oid_login_attempt WHERE token=%s",
                      (attempt_id,))
            if not rows:
                return None
            cursor = db.cursor()
            cursor.execute("DELETE FROM oid_login_attempt WHERE token=%s",
                           (attempt_id,))
            if cursor.rowcount != 1:
                # somebody else got there first
                return None
        identifier, created, expires, return_to, params = rows[0]
        return LoginAttempt(
            attempt_id=attempt_id,
            identifier=identifier,
            created_at=_from_db_time(created),
            expires_at=_from_db_time(expires),
            return_parameters=frozenset((params or '').split()),
            return_to=return_to,
            )
