""" The OpenID relying party: ties together discovery, login attempt
bookkeeping, request construction and response validation.
"""
import logging

from openid.store.memstore import MemoryStore

from oidlogin.api import Configuration
from oidlogin.discovery import DiscoveryCache, set_fetch_timeout
from oidlogin.exceptions import DiscoveryError
from oidlogin.request import REQUIRED_RESPONSE_FIELDS, build_redirect
from oidlogin.state import MemoryFlowStateStore
from oidlogin.validator import ResponseValidator


class RelyingParty(object):
    """ Entry points for the two halves of an OpenID login.

    Usage::

        rp = RelyingParty(Configuration(realm='https://example.com/'))
        url = rp.begin_login('https://alice.example.org/',
                             'https://example.com/openid/login')
        # ... redirect the user to url ...

        # ... later, in the handler for the return_to URL ...
        assertion = rp.complete_login(request_params)

    If ``config.timeout`` is set, python-openid's process-wide default
    fetcher is replaced by one with that timeout (see
    :func:`~oidlogin.discovery.set_fetch_timeout`).
    """

    def __init__(self, config=None, state_store=None, discovery_cache=None,
                 store=None, log=None):
        if config is None:
            config = Configuration()
        self.config = config
        self.log = log or logging.getLogger(__name__)
        if state_store is None:
            state_store = MemoryFlowStateStore(config.attempt_ttl,
                                               log=self.log)
        if discovery_cache is None:
            discovery_cache = DiscoveryCache(config.discovery_ttl,
                                             log=self.log)
        if store is None:
            store = MemoryStore()
        self.state_store = state_store
        self.discovery_cache = discovery_cache
        self.validator = ResponseValidator(config, discovery_cache,
                                           state_store, store, log=self.log)
        if config.timeout:
            set_fetch_timeout(config.timeout)

    def begin_login(self, identifier, return_to):
        """ Start a login.

        :param identifier: The identifier entered by the user.  If
            empty, the configured ``default_identifier`` is used.
        :param return_to: The URL the provider should redirect back to.
        :returns: The URL to redirect the user to.
        :raises: :exc:`DiscoveryError`
        """
        attempt, url = self.start_login(identifier, return_to)
        return url

    def start_login(self, identifier, return_to):
        """ Like :meth:`begin_login`, but also returns the new
        :class:`~oidlogin.api.LoginAttempt`.

        Callers use the attempt id to tie the login to the browser
        which started it.

        :returns: An ``(attempt, url)`` pair.
        """
        identifier = identifier or self.config.default_identifier
        if not identifier:
            raise DiscoveryError(DiscoveryError.MALFORMED,
                                 "No OpenID identifier given")
        discovery = self.discovery_cache.resolve(identifier)
        self._cleanup_nonces()
        attempt = self.state_store.begin(identifier,
                                         REQUIRED_RESPONSE_FIELDS,
                                         return_to)
        self.log.debug("Redirecting %r to %s", identifier,
                       discovery.authorization_endpoint)
        return attempt, build_redirect(self.config, discovery, attempt)

    def complete_login(self, callback_params):
        """ Finish a login.

        :rtype: :class:`~oidlogin.api.Assertion`
        :raises: :exc:`~oidlogin.exceptions.AuthError`
        """
        return self.validator.validate(callback_params)

    def _cleanup_nonces(self):
        store = self.validator.store
        if store is not None:
            store.cleanupNonces()
