import re

from trac.config import ListOption
from trac.core import Component, implements

from oidlogin.api import EMAIL_ADDRESS, IOpenIDAuthorizationPolicy
from oidlogin.exceptions import NotAuthorized


class WhitelistAuthorizer(Component):
    """ Implements whitelist/blacklist authorization.
    """
    implements(IOpenIDAuthorizationPolicy)

    white_list = ListOption('openid', 'white_list',
        doc="""Comma separated list of allowed OpenID identities.

        If set, only OpenID identities that match one of these patterns
        will be allowed to log in.
        """)

    black_list = ListOption('openid', 'black_list',
        doc="""Comma separated list of denied OpenID identities.

        If set, any OpenID identities that match one of these patterns
        will not be allowed to log in.
        """)

    email_white_list = ListOption('openid', 'email_white_list',
        doc="""Comma separated list of allowed user email addresses.

        If set, only users whose email address (as returned, signed, by
        the OpenID provider) matches a pattern in this list will be
        allowed to log in.
        """)

    def __init__(self):
        self.white_list_re = _compile_patterns(self.white_list)
        self.black_list_re = _compile_patterns(self.black_list)
        self.email_white_list_re = _compile_patterns(self.email_white_list)

    def authorize(self, assertion):
        log = self.log
        identity = assertion.identity

        if self.white_list_re:
            log.debug("checking white_list")
            if not self.white_list_re.match(identity):
                log.info("white_list does not match identity %r", identity)
                raise NotAuthorized()

        if self.black_list_re:
            log.debug("checking black_list")
            if self.black_list_re.match(identity):
                log.info("black_list blocks identity %r", identity)
                raise NotAuthorized()

        if self.email_white_list_re:
            email = assertion.attributes.get(EMAIL_ADDRESS)
            if not email:
                log.info("No email address returned by OP")
                raise NotAuthorized()
            log.debug("checking email_white_list")
            if not self.email_white_list_re.match(email):
                log.info("email_white_list does not match %r", email)
                raise NotAuthorized()


def _compile_patterns(patterns):
    """ Compile sequence of patterns to a regular expression.

    Returns a compiled regular expression which will match any of the
    patterns, or ``None`` if patterns is empty.
    """
    if not patterns:
        return None
    regexps = ['.*'.join(re.escape(part) for part in pattern.split('*'))
               for pattern in patterns]
    return re.compile(r'\A(?:%s)\Z' % '|'.join(regexps))
