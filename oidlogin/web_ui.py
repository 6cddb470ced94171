# -*- coding: utf-8 -*-
""" The login page: starts OpenID logins and handles the provider's
response.
"""
import hashlib
import hmac

from pkg_resources import resource_filename

from trac.config import (
    ChoiceOption,
    IntOption,
    ListOption,
    Option,
    )
from trac.core import Component, ExtensionPoint, implements
from trac.util.html import Markup, escape, tag
from trac.web import chrome
from trac.web.api import IRequestFilter
from trac.web.chrome import INavigationContributor, ITemplateProvider
from trac.web.main import IRequestHandler

from oidlogin.api import (
    Configuration,
    EMAIL_ADDRESS,
    FULL_NAME,
    IOpenIDAuthorizationPolicy,
    InvalidState,
    LoginException,
    NICKNAME,
    STATE_ARG,
    )
from oidlogin.relyingparty import RelyingParty
from oidlogin.state import MemoryFlowStateStore
from oidlogin.tracstore import DatabaseFlowStateStore
from oidlogin.userlogin import AuthCookieSessionBinder
from oidlogin.util import route_path, sanitize_referer


def _database_store(env, ttl, log):
    return DatabaseFlowStateStore(env, ttl, log=log)


def _memory_store(env, ttl, log):
    return MemoryFlowStateStore(ttl, log=log)


STATE_STORES = {
    'database': _database_store,
    'memory': _memory_store,
    }


def _state_digest(attempt_id):
    return hashlib.sha256(attempt_id.encode('utf-8')).hexdigest()


class OpenIdLoginModule(Component):
    implements(INavigationContributor, ITemplateProvider, IRequestHandler,
               IRequestFilter)

    start_page_skey = 'oidlogin.start_page'
    attempt_skey = 'oidlogin.attempt'

    ################################################################
    # Configuration

    required_attributes = ListOption(
        'openid', 'required_attributes', EMAIL_ADDRESS,
        doc="""Attributes (AX schema paths, e.g. `contact/email`) we
        require the OpenID provider to return.""")

    optional_attributes = ListOption(
        'openid', 'optional_attributes', ', '.join([FULL_NAME, NICKNAME]),
        doc="""Attributes we would like the OpenID provider to return.""")

    realm = Option('openid', 'realm', None,
        """The OpenID realm (trust root).  Defaults to the root of the
        site trac is served from.""")

    attempt_ttl = IntOption('openid', 'attempt_ttl', 300,
        """Seconds a user has to complete a login at the OpenID
        provider.""")

    discovery_ttl = IntOption('openid', 'discovery_ttl', 3600,
        """Seconds the results of OpenID discovery are cached.""")

    timeout = IntOption('openid', 'timeout', 10,
        """Timeout (in seconds) for HTTP requests to OpenID providers.""")

    default_identifier = Option('openid', 'default_identifier', None,
        """Default OpenID identifier.  If set, users are sent straight
        to this provider rather than being asked for an identifier.""")

    state_store = ChoiceOption('openid', 'state_store',
                               sorted(STATE_STORES),
        """Where pending logins are kept.  Use `memory` only if trac
        runs as a single process.""")

    login_path = Option('openid', 'login_path', '/openid/login',
        """Path of the login page.  This is also the URL the OpenID
        provider sends the user back to.""")

    def __init__(self):
        config = Configuration(
            required_attributes=self.required_attributes,
            optional_attributes=self.optional_attributes,
            realm=self.realm or None,
            attempt_ttl=self.attempt_ttl,
            discovery_ttl=self.discovery_ttl,
            timeout=self.timeout,
            default_identifier=self.default_identifier or None,
            )
        make_store = STATE_STORES[self.state_store]
        self.relying_party = RelyingParty(
            config,
            state_store=make_store(self.env, config.attempt_ttl, self.log),
            log=self.log)

    authorization_policies = ExtensionPoint(IOpenIDAuthorizationPolicy)

    # INavigationContributor methods
    def get_active_navigation_item(self, req):
        return 'openid/login'

    def get_navigation_items(self, req):
        if not req.authname or req.authname == 'anonymous':
            login_url = req.href(route_path(self.login_path),
                                 referer=req.href(req.path_info))
            yield ('metanav', 'openid/login',
                   tag.a('OpenID Login', href=login_url))

    # ITemplateProvider methods
    def get_htdocs_dirs(self):
        return []

    def get_templates_dirs(self):
        return [resource_filename(__name__, 'templates')]

    # IRequestHandler methods
    def match_request(self, req):
        return req.path_info == route_path(self.login_path)

    def process_request(self, req):
        if req.authname and req.authname != 'anonymous':
            chrome.add_warning(req, "Already logged in")
            return req.redirect(self.get_start_page(req))

        if STATE_ARG in req.args or 'openid.mode' in req.args:
            return self._do_complete(req)
        return self._do_login(req)

    def _do_login(self, req):
        if 'referer' in req.args:
            # This is a new login attempt.  Remember where to send the
            # user once it is done.
            req.session[self.start_page_skey] = req.args.getfirst('referer')

        if req.method == 'POST':
            identifier = req.args.getfirst('openid_identifier', '').strip()
        elif self.default_identifier:
            identifier = self.default_identifier
        else:
            return self._login_form(req)

        if not identifier:
            chrome.add_warning(req, "Enter an OpenID identifier")
            return self._login_form(req)

        return_to = req.abs_href(route_path(self.login_path))
        try:
            attempt, url = self.relying_party.start_login(identifier,
                                                          return_to)
        except LoginException as exc:
            chrome.add_warning(req, Markup(exc))
            return self._login_form(req, identifier)
        req.session[self.attempt_skey] = _state_digest(attempt.attempt_id)
        return req.redirect(url)

    def _do_complete(self, req):
        """ Handle the redirect back from the OpenID provider.
        """
        callback_params = dict((name, req.args.getfirst(name))
                               for name in req.args)
        try:
            self._check_attempt_owner(req)
            assertion = self.relying_party.complete_login(callback_params)
            for policy in self.authorization_policies:
                policy.authorize(assertion)
            handle = AuthCookieSessionBinder(self.env, req).set(assertion)
        except LoginException as exc:
            self.log.info("Login failed: %s (%s)", exc,
                          getattr(exc, 'detail', None))
            chrome.add_warning(req, Markup(exc))
            return req.redirect(req.href(route_path(self.login_path)))

        chrome.add_notice(req, escape("Logged in as %s")
                          % tag.code(handle.username))
        return req.redirect(self.get_start_page(req))

    def _check_attempt_owner(self, req):
        """ Make sure the login attempt named in the callback was started
        from this browser session.
        """
        expected = req.session.pop(self.attempt_skey, None)
        token = req.args.getfirst(STATE_ARG)
        if not expected or not token \
               or not hmac.compare_digest(expected, _state_digest(token)):
            raise InvalidState("Login attempt was not started in this"
                               " browser session")

    def get_start_page(self, req):
        """ Get (and forget) the URL from which the user started their
        login attempt.

        :returns: The url to which the user should be redirected.
        """
        start_page = req.session.pop(self.start_page_skey, None)
        start_page = sanitize_referer(start_page, req.base_url)
        if not start_page:
            return req.abs_href()
        elif start_page == req.abs_href(route_path(self.login_path)):
            # don't redirect back to the login page
            return req.abs_href()
        return start_page

    def _login_form(self, req, identifier=None):
        data = {
            'action': req.href(route_path(self.login_path)),
            'openid_identifier': identifier or '',
            }
        return 'oidlogin_login.html', data, {}

    # IRequestFilter methods
    def pre_process_request(self, req, handler):
        if handler is self and req.method == 'POST' \
               and STATE_ARG in req.args and 'openid.mode' in req.args:
            # Providers deliver long responses as an auto-submitted form,
            # which carries no trac form token.  The callback is checked
            # against the attempt stored in the session instead.
            req.args['__FORM_TOKEN'] = req.form_token
        return handler

    def post_process_request(self, req, template, data, metadata):
        return template, data, metadata
