""" Discovery with a bounded-TTL cache.

Discovery itself (Yadis, XRI resolution, HTML-based discovery) is done
by python-openid.  This module adds caching of the results, so that
we do not have to go out to the network for every login attempt, and
maps the various ways in which discovery can fail onto
:class:`~oidlogin.exceptions.DiscoveryError`.
"""
import logging
import threading
import time
from urllib.parse import urlparse
import urllib.request

from openid import fetchers
from openid.consumer import discover as oid_discover
from openid.consumer.discover import DiscoveryFailure
from openid.message import OPENID2_NS
from openid.yadis import xri
from openid.yadis.etxrd import XRDSError

from oidlogin.api import DiscoveryRecord
from oidlogin.attributes import supported_protocols
from oidlogin.exceptions import DiscoveryError


class TimeoutFetcher(fetchers.Urllib2Fetcher):
    """ A python-openid fetcher which does not wait forever.
    """
    def __init__(self, timeout):
        self.timeout = timeout

    def urlopen(self, req):
        return urllib.request.urlopen(req, timeout=self.timeout)


def set_fetch_timeout(timeout):
    """ Bound all HTTP requests made by python-openid to ``timeout``
    seconds.

    This covers discovery as well as the ``check_authentication``
    requests made while verifying assertions.

    python-openid has no per-call fetcher, so this replaces its
    process-wide default fetcher.  Nothing is replaced if a
    :class:`TimeoutFetcher` with the same timeout is already installed.
    """
    current = fetchers.getDefaultFetcher()
    current = getattr(current, 'fetcher', current)
    if isinstance(current, TimeoutFetcher) and current.timeout == timeout:
        return
    fetchers.setDefaultFetcher(TimeoutFetcher(timeout))


def normalize_identifier(identifier):
    """ Normalize a user-supplied identifier to the key we cache it under.

    :raises: :exc:`DiscoveryError` (``MALFORMED``)
    """
    identifier = (identifier or '').strip()
    if not identifier:
        raise DiscoveryError(DiscoveryError.MALFORMED,
                             "No OpenID identifier given")
    if xri.identifierScheme(identifier) == 'XRI':
        return identifier

    parsed = urlparse(identifier)
    if parsed.scheme and parsed.netloc:
        if parsed.scheme not in ('http', 'https'):
            raise DiscoveryError(DiscoveryError.MALFORMED,
                                 "URI scheme is not HTTP or HTTPS",
                                 identifier)
    else:
        identifier = 'http://' + identifier
    try:
        return oid_discover.normalizeURL(identifier)
    except DiscoveryFailure as exc:
        raise DiscoveryError(DiscoveryError.MALFORMED, str(exc), identifier)


class DiscoveryCache(object):
    """ Resolves identifiers to :class:`~oidlogin.api.DiscoveryRecord`\\s,
    caching the results for ``ttl`` seconds.

    Concurrent lookups of the same (expired or missing) identifier
    are collapsed into a single fetch.

    :param discover: The discovery function.  It is called with the
        normalized identifier and must return a ``(claimed_id, services)``
        pair, like :func:`openid.consumer.discover.discover` (the default).
    """

    def __init__(self, ttl=3600, discover=None, clock=time.time, log=None):
        self.ttl = ttl
        self.discover = discover or oid_discover.discover
        self.clock = clock
        self.log = log or logging.getLogger(__name__)
        self._records = {}
        self._lock = threading.Lock()
        self._fetch_locks = {}

    def resolve(self, identifier):
        """ Get the discovery record for ``identifier``.

        :raises: :exc:`DiscoveryError`
        """
        key = normalize_identifier(identifier)

        record = self._lookup(key)
        if record is not None:
            self.log.debug("Discovery cache hit for %r", key)
            return record

        fetch_lock = self._get_fetch_lock(key)
        try:
            with fetch_lock:
                # Somebody else may have done the work while we waited
                record = self._lookup(key)
                if record is not None:
                    return record
                self.log.debug("Discovery cache miss for %r", key)
                record = self._fetch(key)
                self._store(key, record)
                return record
        finally:
            with self._lock:
                if self._fetch_locks.get(key) is fetch_lock:
                    del self._fetch_locks[key]

    def invalidate(self, identifier):
        key = normalize_identifier(identifier)
        with self._lock:
            self._records.pop(key, None)

    def clear(self):
        with self._lock:
            self._records.clear()

    def __len__(self):
        return len(self._records)

    def _lookup(self, key):
        with self._lock:
            record = self._records.get(key)
        if record is not None and record.is_fresh(self.clock()):
            return record
        return None

    def _store(self, key, record):
        now = self.clock()
        with self._lock:
            for stale in [k for k, r in self._records.items()
                          if not r.is_fresh(now)]:
                del self._records[stale]
            self._records[key] = record

    def _get_fetch_lock(self, key):
        with self._lock:
            return self._fetch_locks.setdefault(key, threading.Lock())

    def _fetch(self, key):
        try:
            claimed_id, services = self.discover(key)
        except XRDSError as exc:
            raise DiscoveryError(DiscoveryError.MALFORMED, str(exc), key)
        except DiscoveryFailure as exc:
            self.log.info("Discovery failed for %r: %s", key, exc)
            raise DiscoveryError(DiscoveryError.UNREACHABLE, str(exc), key)
        except (fetchers.HTTPFetchingError, OSError) as exc:
            self.log.info("Discovery failed for %r: %s", key, exc)
            raise DiscoveryError(DiscoveryError.UNREACHABLE, str(exc), key)

        for endpoint in services:
            if endpoint.preferredNamespace() == OPENID2_NS:
                break
        else:
            if services:
                detail = "Provider does not support OpenID 2.0"
            else:
                detail = "No OpenID services found"
            raise DiscoveryError(DiscoveryError.UNSUPPORTED, detail, key)

        return DiscoveryRecord(
            issuer=claimed_id or key,
            authorization_endpoint=endpoint.server_url,
            supported_attributes=supported_protocols(endpoint),
            fetched_at=self.clock(),
            ttl=self.ttl,
            endpoint=endpoint,
            )
