''' Logging users in and out of trac: setting and clearing the auth cookie.
'''
import time

from trac.config import Option
from trac.core import Component, implements
from trac.util import hex_entropy
from trac.util.html import tag
from trac.web.auth import IAuthenticator, LoginModule
from trac.web.chrome import INavigationContributor
from trac.web.main import IRequestHandler

from oidlogin.api import SessionBinder, SessionHandle
from oidlogin.identifier_store import OpenIDIdentityStore
from oidlogin.util import route_path, sanitize_referer

COOKIE_NAME = 'trac_auth'


class AuthCookieSessionBinder(SessionBinder):
    """ Binds an assertion to a trac login.

    This writes the same ``auth_cookie`` records that trac's own
    ``LoginModule`` does, so the stock ``LoginModule.authenticate``
    recognizes the user on subsequent requests.
    """

    def __init__(self, env, req):
        self.env = env
        self.req = req
        self.log = env.log

    def set(self, assertion):
        """ Log the user identified by ``assertion`` in.

        A new account is registered if the identity is not yet known.

        :raises: :exc:`~oidlogin.exceptions.InvalidUsername` if no account
            could be registered.
        """
        req = self.req
        username = OpenIDIdentityStore(self.env).get_or_create_user(assertion)

        cookie = hex_entropy()
        with self.env.db_transaction as db:
            db("INSERT INTO auth_cookie (cookie, name, ipnr, time)"
               " VALUES (%s, %s, %s, %s)",
               (cookie, username, req.remote_addr, int(time.time())))
        req.authname = username
        self._set_cookie(cookie)
        self.log.info("Logged in %r as %r", assertion.identity, username)
        return SessionHandle(cookie, username, assertion.identity)

    def clear(self, handle):
        """ Log the user out: forget the auth cookie.
        """
        with self.env.db_transaction as db:
            db("DELETE FROM auth_cookie WHERE cookie=%s", (handle.key,))
        self._expire_cookie()
        self.req.authname = 'anonymous'

    def current_handle(self):
        """ The handle of the login the current request was made with,
        or ``None``.
        """
        req = self.req
        if req.authname in (None, 'anonymous') \
               or COOKIE_NAME not in req.incookie:
            return None
        return SessionHandle(req.incookie[COOKIE_NAME].value, req.authname,
                             None)

    def _cookie_path(self):
        return self.env.config.get('trac', 'auth_cookie_path') \
            or self.req.base_path or '/'

    def _set_cookie(self, cookie):
        config = self.env.config
        outcookie = self.req.outcookie
        outcookie[COOKIE_NAME] = cookie
        outcookie[COOKIE_NAME]['path'] = self._cookie_path()
        domain = config.get('trac', 'auth_cookie_domain')
        if domain:
            outcookie[COOKIE_NAME]['domain'] = domain
        if config.getbool('trac', 'secure_cookies'):
            outcookie[COOKIE_NAME]['secure'] = True
        outcookie[COOKIE_NAME]['httponly'] = True
        lifetime = config.getint('trac', 'auth_cookie_lifetime', 0)
        if lifetime > 0:
            outcookie[COOKIE_NAME]['expires'] = lifetime

    def _expire_cookie(self):
        outcookie = self.req.outcookie
        outcookie[COOKIE_NAME] = ''
        outcookie[COOKIE_NAME]['path'] = self._cookie_path()
        outcookie[COOKIE_NAME]['expires'] = -10000


class UserLogin(Component):
    """ Handles logout, and provides the 'logged in as'/'Logout'
    navigation items.

    We use ``trac.web.auth.LoginModule`` to check the auth cookies.
    """

    implements(IAuthenticator, INavigationContributor, IRequestHandler)

    logout_path = Option('openid', 'logout_path', '/openid/logout',
        """Path of the logout page.""")

    def __init__(self):
        self.login_module = LoginModule(self.env)

    # INavigationContributor methods
    def get_active_navigation_item(self, req):
        return 'openid/logout'

    def get_navigation_items(self, req):
        # If trac's LoginModule is enabled, it'll provide this stuff
        if self.env.is_component_enabled(LoginModule):
            return
        if req.authname and req.authname != 'anonymous':
            yield ('metanav', 'openid/login',
                   'logged in as %s' % req.authname)
            yield ('metanav', 'openid/logout',
                   tag.a('Logout',
                         href=req.href(route_path(self.logout_path))))

    # IRequestHandler methods
    def match_request(self, req):
        return req.path_info == route_path(self.logout_path)

    def process_request(self, req):
        return self.logout(req, req.args.getfirst('referer'))

    # IAuthenticator methods
    def authenticate(self, req):
        # We use the stock LoginModule to handle the authentication cookies
        return self.login_module.authenticate(req)

    def logout(self, req, referer=None):
        """ Log user out

        An HTTP redirect is then performed to the url specified
        by the first available of:
        - the ``referer`` argument
        - the ``Referer`` HTTP request header
        - the top of the trac

        """
        binder = AuthCookieSessionBinder(self.env, req)
        handle = binder.current_handle()
        if handle is not None:
            binder.clear(handle)
            self.log.info("Logged out %r", handle.username)

        referer = sanitize_referer(referer or req.get_header('Referer'),
                                   req.base_url)
        req.redirect(referer or req.abs_href())
