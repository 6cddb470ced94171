""" Processing of the OpenID provider's response.
"""
import logging

from openid import fetchers, oidutil
from openid.consumer.consumer import (
    CANCEL,
    FAILURE,
    SETUP_NEEDED,
    SUCCESS,
    GenericConsumer,
    )
from openid.message import Message

from oidlogin.api import Assertion, STATE_ARG
from oidlogin.attributes import parse_attributes
from oidlogin.exceptions import (
    AuthenticationCancelled,
    DiscoveryError,
    InvalidAssertion,
    InvalidState,
    StateError,
    )


class ResponseValidator(object):
    """ Turns the provider's response into an :class:`~oidlogin.api.Assertion`.

    The login attempt named by the response's state token is consumed
    before anything else is looked at, whatever the outcome.  Feeding
    the same response to :meth:`validate` a second time therefore
    always fails with :exc:`InvalidState`.

    :param store: python-openid store used for association and nonce
        bookkeeping.  May be ``None`` (then response nonces are not
        checked for reuse.)
    """

    consumer_class = GenericConsumer

    def __init__(self, config, discovery_cache, state_store, store=None,
                 log=None):
        self.config = config
        self.discovery_cache = discovery_cache
        self.state_store = state_store
        self.store = store
        self.log = log or logging.getLogger(__name__)

    def validate(self, callback_params):
        """ Validate the provider's response.

        :param callback_params: The query parameters of the request
            which the provider redirected the user to.
        :rtype: :class:`~oidlogin.api.Assertion`
        :raises: :exc:`InvalidState`
        :raises: :exc:`AuthenticationCancelled`
        :raises: :exc:`InvalidAssertion`
        """
        attempt = self._consume_attempt(callback_params.get(STATE_ARG))

        mode = callback_params.get('openid.mode')
        if mode == 'cancel':
            raise AuthenticationCancelled()
        elif not mode:
            raise InvalidAssertion("No openid.mode in response")
        elif mode == 'error':
            raise InvalidAssertion(
                "Provider error: %s"
                % callback_params.get('openid.error', 'unspecified'))
        elif mode != 'id_res':
            raise InvalidAssertion("Unexpected openid.mode %r" % mode)

        missing = sorted(name for name in attempt.return_parameters
                         if name not in callback_params)
        if missing:
            raise InvalidAssertion("Missing from response: %s"
                                   % ', '.join(missing))

        try:
            discovery = self.discovery_cache.resolve(attempt.identifier)
        except DiscoveryError as exc:
            raise InvalidAssertion(str(exc))

        try:
            message = Message.fromPostArgs(callback_params)
        except ValueError as exc:
            raise InvalidAssertion("Malformed response: %s" % exc)

        return_to = oidutil.appendArgs(attempt.return_to,
                                       {STATE_ARG: attempt.attempt_id})
        consumer = self.consumer_class(self.store)
        try:
            response = consumer.complete(message, discovery.endpoint,
                                         return_to)
        except (fetchers.HTTPFetchingError, OSError) as exc:
            raise InvalidAssertion("Verification failed: %s" % exc)

        if response.status == SUCCESS:
            return self._make_assertion(response, callback_params)
        elif response.status == CANCEL:
            raise AuthenticationCancelled()
        elif response.status == FAILURE:
            raise InvalidAssertion(response.message)
        elif response.status == SETUP_NEEDED:
            raise InvalidAssertion("Provider requires setup")
        raise InvalidAssertion("Unexpected response status %r"
                               % response.status)

    def _consume_attempt(self, attempt_id):
        if not attempt_id:
            raise InvalidState("No state token in response")
        try:
            return self.state_store.consume(attempt_id)
        except StateError as exc:
            self.log.info("Rejecting response: login attempt %s", exc.kind)
            raise InvalidState("Login attempt %s" % exc.kind)

    def _make_assertion(self, response, callback_params):
        identity = response.endpoint.canonicalID or response.identity_url
        if not identity:
            raise InvalidAssertion("Response does not assert an identifier")
        attributes = parse_attributes(response,
                                      self.config.requested_attributes)
        return Assertion(identity, attributes, dict(callback_params))
