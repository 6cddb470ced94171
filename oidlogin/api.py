# -*- coding: utf-8 -*-
""" Data types and interfaces shared by the relying party core and
the trac components.

Only :class:`IOpenIDAuthorizationPolicy` depends on trac.  Everything
else in here is plain python so that the core modules
(:mod:`oidlogin.discovery`, :mod:`oidlogin.state`,
:mod:`oidlogin.request`, :mod:`oidlogin.validator`) can be used
outside of trac.
"""
from collections import namedtuple

from trac.core import Interface

from oidlogin.exceptions import (  # noqa: F401
    AuthError,
    AuthenticationCancelled,
    DiscoveryError,
    InvalidAssertion,
    InvalidState,
    LoginError,
    LoginException,
    LoginWarning,
    NotAuthorized,
    StateError,
    )

# Attribute names are AX schema paths
EMAIL_ADDRESS = 'contact/email'
FULL_NAME = 'namePerson'
NICKNAME = 'namePerson/friendly'

# Name of the return_to argument which carries the state token
STATE_ARG = 'oidlogin.state'

# Attribute protocols a provider may advertise
AX = 'ax'
SREG = 'sreg'


class Configuration(namedtuple('Configuration', [
        'required_attributes',
        'optional_attributes',
        'realm',
        'attempt_ttl',
        'discovery_ttl',
        'timeout',
        'default_identifier',
        ])):
    """ Relying party configuration.

    Built once (by :class:`oidlogin.web_ui.OpenIdLoginModule` from
    ``trac.ini``) and passed to each component which needs it.

    ``realm`` may be ``None``, in which case the realm is derived from
    the return_to URL of each login attempt.
    """
    __slots__ = ()

    def __new__(cls, required_attributes=(EMAIL_ADDRESS,),
                optional_attributes=(FULL_NAME, NICKNAME),
                realm=None, attempt_ttl=300, discovery_ttl=3600,
                timeout=10, default_identifier=None):
        return super(Configuration, cls).__new__(
            cls, tuple(required_attributes), tuple(optional_attributes),
            realm, attempt_ttl, discovery_ttl, timeout, default_identifier)

    @property
    def requested_attributes(self):
        """ All requested attribute names, required ones first.
        """
        seen = set()
        names = []
        for name in self.required_attributes + self.optional_attributes:
            if name not in seen:
                seen.add(name)
                names.append(name)
        return tuple(names)


class LoginAttempt(namedtuple('LoginAttempt', [
        'attempt_id',
        'identifier',
        'created_at',
        'expires_at',
        'return_parameters',
        'return_to',
        ])):
    """ A pending login, created when the redirect to the provider is
    issued and consumed (once) when the provider's response comes back.
    """
    __slots__ = ()

    def is_expired(self, now):
        return now > self.expires_at


class DiscoveryRecord(namedtuple('DiscoveryRecord', [
        'issuer',
        'authorization_endpoint',
        'supported_attributes',
        'fetched_at',
        'ttl',
        'endpoint',
        ])):
    """ The result of discovery on an identifier.

    ``endpoint`` is the :class:`openid.consumer.discover.OpenIDServiceEndpoint`
    which requests are built from and responses are verified against.
    """
    __slots__ = ()

    def is_fresh(self, now):
        return now < self.fetched_at + self.ttl


Assertion = namedtuple('Assertion', [
    'identity',
    'attributes',
    'raw_provider_response',
    ])

SessionHandle = namedtuple('SessionHandle', ['key', 'username', 'identity'])


class SessionBinder(object):
    """ Maps a validated :class:`Assertion` to an application session.
    """

    def set(self, assertion):
        """ Bind ``assertion`` to a session.

        :rtype: :class:`SessionHandle`
        """
        raise NotImplementedError()

    def clear(self, handle):
        """ Remove the session identified by ``handle``.
        """
        raise NotImplementedError()


class IOpenIDAuthorizationPolicy(Interface):
    """ Decide whether an authenticated identity may log in.
    """

    def authorize(assertion):
        """ Check whether ``assertion`` is allowed to log in.

        :type assertion: :class:`Assertion`
        :raises: :exc:`NotAuthorized` if the user should not be allowed in.
        """
