from trac.util.html import Markup, escape, tag


class _MarkupExceptionBase(Exception):
    """ Base case for exceptions which can be safely formatted as HTML.
    """
    def __html__(self):
        """ Get HTML representation.

        This allows for HTML error messages::

            from trac.util.html import tag
            raise LoginError('I am not ', tag.code('square'))
        """
        message = self.args[0] if self.args else self.__class__.__name__
        return escape(message)

    def __str__(self):
        return Markup(self.__html__()).striptags()


class LoginException(_MarkupExceptionBase):
    """ Exceptions raised during login which should be shown to the user.

    This is a base class for authentication exceptions which should be
    displayed to the user (somehow).
    """


class LoginError(LoginException):
    """ Login error.

    These should be displayed to the user, with color/highlighting as
    appropriate for errors.
    """


class LoginWarning(LoginException):
    """ Login warning.

    These should be displayed to the user, with color/highlighting as
    appropriate for warnings.
    """


class NotAuthorized(LoginError):
    """ Authorization failure.

    This is raised when the user has successfully authenticated (via OpenID)
    but the user is not authorized to log in to the site.
    """
    def __init__(self, message="Not authorized"):
        super(NotAuthorized, self).__init__(message)


class DiscoveryError(LoginError):
    """ The identifier could not be resolved to an OpenID 2.0 endpoint.
    """
    UNREACHABLE = 'unreachable'
    MALFORMED = 'malformed'
    UNSUPPORTED = 'unsupported'

    def __init__(self, kind, detail=None, identifier=None):
        message = tag("Discovery failed")
        if identifier:
            message(" for ", tag.code(identifier))
        if detail:
            message(": ", detail)
        super(DiscoveryError, self).__init__(message, kind, detail,
                                             identifier)

    @property
    def kind(self):
        return self.args[1]

    @property
    def detail(self):
        return self.args[2]

    @property
    def identifier(self):
        return self.args[3]


class StateError(_MarkupExceptionBase):
    """ A login attempt could not be consumed.

    Never shown to the user: the response validator converts it into
    :exc:`InvalidState`.
    """
    UNKNOWN = 'unknown'
    EXPIRED = 'expired'

    def __init__(self, kind, attempt_id=None):
        super(StateError, self).__init__(
            "Login attempt %s" % kind, kind, attempt_id)

    @property
    def kind(self):
        return self.args[1]

    @property
    def attempt_id(self):
        return self.args[2]


class AuthError(LoginException):
    """ Processing of the provider's response failed.

    The message shown to the user is generic.  The
    :attr:`kind` and :attr:`detail` are meant for the logs.
    """
    INVALID_STATE = 'invalid_state'
    USER_CANCELLED = 'user_cancelled'
    INVALID_ASSERTION = 'invalid_assertion'

    kind = None
    message = "Authentication failed"

    def __init__(self, detail=None):
        super(AuthError, self).__init__(self.message, detail)

    @property
    def detail(self):
        return self.args[1]


class InvalidState(AuthError, LoginError):
    """ The state token is missing, unknown, expired or already used.
    """
    kind = AuthError.INVALID_STATE


class InvalidAssertion(AuthError, LoginError):
    """ The provider's assertion did not verify.
    """
    kind = AuthError.INVALID_ASSERTION


class AuthenticationCancelled(AuthError, LoginWarning):
    """ The user cancelled the authentication process.
    """
    kind = AuthError.USER_CANCELLED
    message = "Authentication cancelled"


class InvalidUsername(LoginError, ValueError):
    def __init__(self, username, detail=None):
        msg = escape("%s is not a valid username") % tag.code(username)
        if detail:
            msg += escape(": %s") % detail
        super(InvalidUsername, self).__init__(msg, username, detail)

    @property
    def username(self):
        return self.args[1]

    @property
    def detail(self):
        return self.args[2]


class UserExists(InvalidUsername):
    pass
