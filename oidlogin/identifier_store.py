''' Manage the association of OpenID identities with trac users
'''
from itertools import count
import re

from trac.config import BoolOption
from trac.core import Component
from trac.perm import PermissionSystem
from trac.web.session import DetachedSession

from oidlogin.api import EMAIL_ADDRESS, FULL_NAME, NICKNAME
from oidlogin.exceptions import InvalidUsername, UserExists


class OpenIDIdentityStore(Component):
    """ Looks up trac usernames by OpenID identity, and creates new
    accounts for identities we have not seen before.

    The identity is stored as a session attribute of the user.
    """

    identity_skey = 'openid_identity'

    use_nickname_as_authname = BoolOption(
        'openid', 'use_nickname_as_authname', False,
        """Whether the nickname returned by the OpenID provider is used
        as username for new accounts.""")

    strip_protocol = BoolOption(
        'openid', 'strip_protocol', False,
        """Instead of using a username beginning with http:// or
        https:// for new accounts you can strip the beginning.""")

    strip_trailing_slash = BoolOption(
        'openid', 'strip_trailing_slash', False,
        """Strip the trailing slash from identity URLs when using them
        as usernames for new accounts.""")

    def get_user(self, identity):
        """ Look up username by OpenID identity

        In the case that multiple users match, the one who has most
        recently logged in will be returned.

        :returns: username or ``None``.
        """
        with self.env.db_query as db:
            rows = db("SELECT session.sid"
                      " FROM session"
                      "  INNER JOIN session_attribute AS attr"
                      "             USING(sid, authenticated)"
                      " WHERE session.authenticated=%s"
                      "       AND attr.name=%s AND attr.value=%s"
                      " ORDER BY session.last_visit DESC",
                      (1, self.identity_skey, identity))
        if len(rows) == 0:
            return None
        elif len(rows) > 1:
            self.log.warning(
                "Multiple users share the same openid identity: %s",
                ', '.join(repr(user) for (user,) in rows))
        return rows[0][0]

    def get_or_create_user(self, assertion):
        """ The username for ``assertion``'s identity, registering a new
        account if necessary.
        """
        username = self.get_user(assertion.identity)
        if username is None:
            username = self.register_user(assertion)
        return username

    def register_user(self, assertion):
        """ Create a new account for ``assertion``'s identity.

        :returns: the new username
        :raises: :exc:`InvalidUsername` if no valid username could be
            found.
        """
        user_attr = self.user_attributes(assertion)
        candidates = []
        for username in self.suggested_usernames(assertion):
            try:
                self.create_user(username, assertion.identity, user_attr)
                return username
            except UserExists:
                candidates.append(username)
            except InvalidUsername:
                self.log.debug("%r is not a valid username", username)

        for username in self._uniquify_usernames(candidates):
            try:
                self.create_user(username, assertion.identity, user_attr)
                return username
            except UserExists:
                continue
        raise InvalidUsername(assertion.identity,
                              "could not deduce a valid username")

    def suggested_usernames(self, assertion):
        attributes = assertion.attributes
        seen = set()
        suggestions = []
        if self.use_nickname_as_authname:
            suggestions.append(attributes.get(NICKNAME))
        suggestions.append(self._cleanup_identity(assertion.identity))
        for username in suggestions:
            if username:
                username = self.maybe_lowercase_username(username.strip())
                if username not in seen:
                    seen.add(username)
                    yield username

    def user_attributes(self, assertion):
        data = {}
        for akey, dkey in [('name', FULL_NAME), ('email', EMAIL_ADDRESS)]:
            value = (assertion.attributes.get(dkey) or '').strip()
            if value:
                data[akey] = value
        return data

    def check_username(self, username):
        #  (This list gleaned from the TracAccountManager plugin.)
        #   - No '[', ']' (':' and '/' stay legal for identity URLs)
        #   - No all upper case (those are permissions)
        #   - username.lower() not in ('anonymous', 'authenticated')
        if not username:
            raise InvalidUsername(username, "empty username")
        if username.strip() != username:
            raise InvalidUsername(username, "leading or trailing white space")
        if username.isupper():
            raise InvalidUsername(username, "can not be all upper case")
        if username.lower() in ('anonymous', 'authenticated'):
            raise InvalidUsername(username, "reserved")
        if not re.match(r'\A[-=\w@\./:~() ]+\Z', username):
            raise InvalidUsername(username, "invalid characters in username")

        # Usernames in the permission system may be group names.  A new
        # user with the name of a group would get the group's permissions.
        all_permissions = PermissionSystem(self.env).get_all_permissions()
        if username in set(user for user, perm in all_permissions):
            raise UserExists(username, "in use by another user")

    def maybe_lowercase_username(self, username):
        if self.config.getbool('trac', 'ignore_auth_case'):
            return username.lower()
        return username

    def create_user(self, username, identity=None, user_attr=None):
        self.check_username(username)
        with self.env.db_transaction as db:
            user = DetachedSession(self.env, username)
            if not user._new:
                raise UserExists(username, "in use by another user")

            if user_attr:
                user.update(user_attr)
            if identity:
                user[self.identity_skey] = identity
            if len(user) > 0:
                user.save()
            else:
                # user.save won't create a new user with no data
                db("INSERT INTO session"
                   " (sid, authenticated, last_visit)"
                   " VALUES (%s, 1, 0)", (username,))
        self.log.info("Registered new user %r for %r", username, identity)

    def _cleanup_identity(self, identity):
        if self.strip_protocol:
            identity = identity.split('://', 1)[-1]
        if self.strip_trailing_slash and identity.endswith('/'):
            identity = identity[:-1]
        return identity

    def _uniquify_usernames(self, candidates):
        if not candidates:
            return
        for n in count(2):
            for u in candidates:
                yield "%s (%d)" % (u, n)
