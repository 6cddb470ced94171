""" Attribute requests (AX and SREG) and parsing of the attribute
values returned in a positive assertion.

Attributes are named by their AX schema path (e.g. ``contact/email``).
Names which look like URIs are used as AX type URIs verbatim.
"""
from openid.extensions import ax, sreg

from oidlogin.api import AX, SREG

AX_SCHEMA = 'http://axschema.org/'

SREG_FIELDS = {
    'namePerson/friendly': 'nickname',
    'contact/email': 'email',
    'namePerson': 'fullname',
    'birthDate': 'dob',
    'person/gender': 'gender',
    'contact/postalCode/home': 'postcode',
    'contact/country/home': 'country',
    'pref/language': 'language',
    'pref/timezone': 'timezone',
    }

SREG_TYPES = (sreg.ns_uri_1_1, sreg.ns_uri_1_0)


def ax_type_uri(name):
    if '://' in name:
        return name
    return AX_SCHEMA + name


def ax_alias(name):
    """ Alias used for ``name`` in AX requests.
    """
    if '://' in name:
        return None                     # let python-openid pick one
    return name.replace('/', '_')


def supported_protocols(endpoint):
    """ The attribute protocols advertised by a service endpoint.
    """
    protocols = set()
    if endpoint.supportsType(ax.AXMessage.ns_uri):
        protocols.add(AX)
    if any(endpoint.supportsType(uri) for uri in SREG_TYPES):
        protocols.add(SREG)
    return frozenset(protocols)


def add_attribute_requests(auth_request, supported, required, optional):
    """ Ask for the ``required`` and ``optional`` attributes.

    An AX fetch request is added if the provider advertises AX, an
    SREG request if it advertises SREG.  If it advertises neither we
    send both and hope for the best.
    """
    if not required and not optional:
        return
    use_ax = AX in supported or not supported
    use_sreg = SREG in supported or not supported

    if use_ax:
        fetch_request = ax.FetchRequest()
        seen = set()
        for names, is_required in ((required, True), (optional, False)):
            for name in names:
                type_uri = ax_type_uri(name)
                if type_uri in seen:
                    continue
                seen.add(type_uri)
                fetch_request.add(ax.AttrInfo(type_uri, required=is_required,
                                              alias=ax_alias(name)))
        auth_request.addExtension(fetch_request)

    if use_sreg:
        sreg_required = [SREG_FIELDS[n] for n in required if n in SREG_FIELDS]
        sreg_optional = [SREG_FIELDS[n] for n in optional
                         if n in SREG_FIELDS
                         and SREG_FIELDS[n] not in sreg_required]
        if sreg_required or sreg_optional:
            auth_request.addExtension(sreg.SRegRequest(
                required=sreg_required, optional=sreg_optional))


def parse_attributes(response, requested):
    """ Extract values for the ``requested`` attribute names from a
    :class:`openid.consumer.consumer.SuccessResponse`.

    Only signed fields are considered.  AX values take precedence
    over SREG values.

    :returns: a dict mapping attribute name to (the first) value.
    """
    attributes = {}

    if response.getSignedNS(ax.AXMessage.ns_uri):
        ax_response = ax.FetchResponse.fromSuccessResponse(response,
                                                            signed=True)
        if ax_response is not None:
            for name in requested:
                try:
                    values = ax_response.get(ax_type_uri(name))
                except KeyError:
                    continue
                for value in values:
                    if value:
                        attributes[name] = value
                        break

    sreg_response = sreg.SRegResponse.fromSuccessResponse(response)
    if sreg_response is not None:
        for name in requested:
            field = SREG_FIELDS.get(name)
            if field is None or name in attributes:
                continue
            value = sreg_response.get(field)
            if value:
                attributes[name] = value

    return attributes
