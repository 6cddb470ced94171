""" Construction of the redirect which sends the user to the OpenID
provider.
"""
from urllib.parse import urlparse, urlunparse

from openid.consumer.consumer import AuthRequest
from openid.message import OPENID2_NS

from oidlogin.api import STATE_ARG
from oidlogin.attributes import add_attribute_requests

# Parameters every positive assertion we accept must carry
REQUIRED_RESPONSE_FIELDS = frozenset([
    'openid.ns',
    'openid.mode',
    'openid.op_endpoint',
    'openid.return_to',
    'openid.response_nonce',
    'openid.assoc_handle',
    'openid.signed',
    'openid.sig',
    'openid.claimed_id',
    'openid.identity',
    ])


def default_realm(return_to):
    """ The realm to use if none is configured: the root of the site
    hosting ``return_to``.
    """
    parsed = urlparse(return_to)
    return urlunparse((parsed.scheme, parsed.netloc, '/', '', '', ''))


def build_redirect(config, discovery, attempt):
    """ Build the URL to redirect the user to.

    This depends only on its arguments.  No association is established
    with the provider: responses are verified directly with the provider
    (``check_authentication``) instead.

    :type config: :class:`~oidlogin.api.Configuration`
    :type discovery: :class:`~oidlogin.api.DiscoveryRecord`
    :type attempt: :class:`~oidlogin.api.LoginAttempt`
    """
    if not attempt.return_to:
        raise ValueError("Login attempt has no return_to URL")

    auth_request = AuthRequest(discovery.endpoint, None)
    if auth_request.message.getOpenIDNamespace() != OPENID2_NS:
        raise ValueError("Only OpenID 2.0 endpoints are supported")

    add_attribute_requests(auth_request, discovery.supported_attributes,
                           config.required_attributes,
                           config.optional_attributes)
    auth_request.return_to_args[STATE_ARG] = attempt.attempt_id

    realm = config.realm or default_realm(attempt.return_to)
    return auth_request.redirectURL(realm, attempt.return_to)
