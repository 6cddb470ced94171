""" Helpers shared by the tests.
"""
from urllib.parse import parse_qsl, urlsplit

from mock import Mock
import webob

from openid import fetchers
from openid.consumer.discover import (
    OPENID_1_1_TYPE,
    OPENID_2_0_TYPE,
    OpenIDServiceEndpoint,
    )
from openid.extensions import ax, sreg
from openid.server.server import Server as openid_Server
from openid.store.memstore import MemoryStore

from trac.web.api import Request, arg_list_to_args

OP_ENDPOINT = 'https://op.example.com/server'
IDENTITY = 'https://op.example.com/alice'

OPENID_1 = (OPENID_1_1_TYPE,)
OPENID_2 = (OPENID_2_0_TYPE,)
OPENID_2_AX = (OPENID_2_0_TYPE, ax.AXMessage.ns_uri)
OPENID_2_SREG = (OPENID_2_0_TYPE, sreg.ns_uri_1_1)


class FakeClock(object):
    def __init__(self, now=1000000):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_endpoint(claimed_id=IDENTITY, server_url=OP_ENDPOINT,
                  type_uris=OPENID_2_AX):
    endpoint = OpenIDServiceEndpoint()
    endpoint.claimed_id = claimed_id
    endpoint.local_id = claimed_id
    endpoint.server_url = server_url
    endpoint.type_uris = list(type_uris)
    return endpoint


class FakeDiscover(object):
    """ Stands in for ``openid.consumer.discover.discover``.

    Every identifier resolves to ``endpoints``.  If ``error`` is set it
    is raised instead.
    """
    def __init__(self, endpoints=None, error=None):
        if endpoints is None:
            endpoints = [make_endpoint()]
        self.endpoints = endpoints
        self.error = error
        self.calls = []

    def __call__(self, identifier):
        self.calls.append(identifier)
        if self.error is not None:
            raise self.error
        return identifier, list(self.endpoints)


class InProcessProvider(object):
    """ A simple OpenID provider

    It answers checkid requests directly (no user interaction) and
    handles the ``check_authentication`` requests the relying party
    makes, by way of a fake python-openid fetcher.
    """
    def __init__(self):
        self.server = openid_Server(MemoryStore(), OP_ENDPOINT)
        self.attributes = {
            'http://axschema.org/contact/email': ['alice@example.org'],
            'http://axschema.org/namePerson/friendly': ['alice'],
            }
        self.check_auth_requests = 0

    def authenticate(self, url, allow=True):
        """ Process the request the user was redirected to with.

        Returns the parameters of the provider's (indirect) response.
        """
        request = self.server.decodeRequest(dict(parse_qsl(
            urlsplit(url).query)))
        response = request.answer(allow)
        if allow:
            ax_req = ax.FetchRequest.fromOpenIDRequest(request)
            if ax_req:
                ax_resp = ax.FetchResponse(ax_req)
                for type_uri, values in self.attributes.items():
                    if type_uri in ax_req:
                        ax_resp.setValues(type_uri, values)
                response.addExtension(ax_resp)
            response = self.server.signatory.sign(response)

        params = dict(parse_qsl(urlsplit(request.return_to).query))
        params.update(response.fields.toPostArgs())
        return params

    def fetch(self, url, body=None, headers=None):
        assert url == OP_ENDPOINT
        self.check_auth_requests += 1
        request = self.server.decodeRequest(dict(parse_qsl(body)))
        response = self.server.handleRequest(request)
        webresponse = self.server.encodeResponse(response)
        return fetchers.HTTPResponse(url, webresponse.code,
                                     webresponse.headers, webresponse.body)



class Redirected(Exception):
    @property
    def url(self):
        return self.args[0]


class MockRequest(Request):
    def __init__(self, base_url='http://example.net/', authname='anonymous',
                 path_info='', method='GET', args=None):
        environ = webob.Request.blank(base_url).environ

        # Cleanup HTTP_HOST
        if environ['HTTP_HOST'].endswith(':80'):
            environ['HTTP_HOST'] = environ['HTTP_HOST'][:-3]

        environ['SCRIPT_NAME'] = environ.pop('PATH_INFO')
        environ['PATH_INFO'] = path_info
        environ['REQUEST_METHOD'] = method
        environ['REMOTE_ADDR'] = '127.0.0.1'

        start_response = Mock(name='start_response', spec=())
        Request.__init__(self, environ, start_response)
        self.authname = authname
        self.locale = None
        self.args = arg_list_to_args(sorted((args or {}).items()))
        self.session = {}
        self.chrome = {'warnings': [], 'notices': []}

    def redirect(self, url, permanent=False):
        raise Redirected(url, permanent)
