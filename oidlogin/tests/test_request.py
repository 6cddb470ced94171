import unittest
from urllib.parse import parse_qsl, urlsplit

from openid.message import OPENID2_NS

from oidlogin.api import (
    Configuration,
    DiscoveryRecord,
    LoginAttempt,
    STATE_ARG,
    )
from oidlogin.attributes import supported_protocols
from oidlogin.tests.support import (
    IDENTITY,
    OPENID_1,
    OPENID_2_AX,
    OP_ENDPOINT,
    make_endpoint,
    )

RETURN_TO = 'https://rp.example.com/trac/openid/login'


def make_discovery(type_uris=OPENID_2_AX):
    endpoint = make_endpoint(type_uris=type_uris)
    return DiscoveryRecord(IDENTITY, endpoint.server_url,
                           supported_protocols(endpoint), 0, 3600, endpoint)


def make_attempt(attempt_id='STATE', return_to=RETURN_TO):
    return LoginAttempt(attempt_id, IDENTITY, 0, 300, frozenset(), return_to)


class Test_default_realm(unittest.TestCase):
    def test(self):
        from oidlogin.request import default_realm
        self.assertEqual(default_realm(RETURN_TO + '?x=y'),
                         'https://rp.example.com/')


class Test_build_redirect(unittest.TestCase):
    def build(self, config=None, discovery=None, attempt=None):
        from oidlogin.request import build_redirect
        return build_redirect(config or Configuration(),
                              discovery or make_discovery(),
                              attempt or make_attempt())

    def query(self, url):
        return dict(parse_qsl(urlsplit(url).query))

    def test_redirect(self):
        url = self.build()
        self.assertTrue(url.startswith(OP_ENDPOINT + '?'))
        query = self.query(url)
        self.assertEqual(query['openid.ns'], OPENID2_NS)
        self.assertEqual(query['openid.mode'], 'checkid_setup')
        self.assertEqual(query['openid.claimed_id'], IDENTITY)
        self.assertEqual(query['openid.identity'], IDENTITY)
        self.assertEqual(query['openid.realm'], 'https://rp.example.com/')
        self.assertNotIn('openid.assoc_handle', query)

    def test_state_in_return_to(self):
        return_to = self.query(self.build())['openid.return_to']
        self.assertTrue(return_to.startswith(RETURN_TO + '?'))
        self.assertEqual(self.query(return_to), {STATE_ARG: 'STATE'})

    def test_configured_realm(self):
        config = Configuration(realm='https://*.example.com/')
        query = self.query(self.build(config=config))
        self.assertEqual(query['openid.realm'], 'https://*.example.com/')

    def test_requests_attributes(self):
        query = self.query(self.build())
        self.assertEqual(query['openid.ax.mode'], 'fetch_request')
        self.assertEqual(query['openid.ax.required'], 'contact_email')

    def test_deterministic(self):
        self.assertEqual(self.build(), self.build())

    def test_distinct_attempts(self):
        self.assertNotEqual(self.build(attempt=make_attempt('one')),
                            self.build(attempt=make_attempt('two')))

    def test_no_return_to(self):
        with self.assertRaises(ValueError):
            self.build(attempt=make_attempt(return_to=None))

    def test_openid1_endpoint(self):
        with self.assertRaises(ValueError):
            self.build(discovery=make_discovery(type_uris=OPENID_1))
