"""
A time-limited cache of search results.

A :py:class:`ResultCache` maps a query signature (built from the two search filters) to the
serialized list of matching records.  It sits in front of the
:py:class:`~nistoar.catalog.search.SearchEngine`: a search first asks the cache, and on a miss the
live search results are written back with a fixed time-to-live.

The cache is an optimization only, so it *fails open*:  if its backing store is unreachable,
times out, or returns something that cannot be deserialized, the condition is logged and treated
as a miss.  Errors are never passed on to the caller.

The backing store is supplied as a :py:class:`CacheBackend`.  Three implementations are provided:

:py:class:`RedisCacheBackend`
    stores entries in a Redis server; this is the production backend.
:py:class:`InMemoryCacheBackend`
    stores entries in a local dictionary; intended primarily for testing and single-process use.
:py:class:`NullCacheBackend`
    stores nothing; used when caching is turned off.

Use :py:func:`create_cache_backend` to create one from configuration data.
"""
import json, logging, threading, time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Callable, List, Union

import redis
from redis.exceptions import RedisError

from . import system, CacheUnavailable, ConfigurationException
from .config import blab
from .records import Record

deflog = logging.getLogger(system.system_abbrev).getChild('cache')

DEF_TTL = 24 * 60 * 60
DEF_KEY_PREFIX = "search"

class CacheBackend(ABC):
    """
    an abstract interface to a key-value store that supports expiring entries.  Implementations
    must make each individual operation atomic with respect to others on the same key, and must
    raise :py:class:`~nistoar.catalog.CacheUnavailable` if the store cannot be accessed.
    """

    @abstractmethod
    def get(self, key: str) -> Union[str, bytes, None]:
        """
        return the value stored under the given key or None if there is no (live) entry
        """
        raise NotImplementedError()

    @abstractmethod
    def set(self, key: str, value: str, ttl: int):
        """
        store a value under the given key, to expire after ``ttl`` seconds
        """
        raise NotImplementedError()

    @abstractmethod
    def delete(self, key: str):
        """
        remove the entry with the given key, if it exists
        """
        raise NotImplementedError()

    @abstractmethod
    def flush(self):
        """
        remove all entries
        """
        raise NotImplementedError()

class RedisCacheBackend(CacheBackend):
    """
    a CacheBackend that stores entries in a Redis database
    """

    def __init__(self, url: str=None, socket_timeout: float=2.0, socket_connect_timeout: float=2.0,
                 client: redis.Redis=None):
        """
        connect to the Redis server.  (No network traffic occurs until the first operation.)
        :param str url:             the Redis URL (e.g. "redis://localhost:6379/0")
        :param float socket_timeout:  the number of seconds to wait for a response
        :param float socket_connect_timeout:  the number of seconds to wait for a connection
        :param Redis client:        a ready-made client to use instead of creating one from ``url``
        """
        if client is None:
            if not url:
                raise ConfigurationException("RedisCacheBackend: missing Redis URL")
            client = redis.Redis.from_url(url, socket_timeout=socket_timeout,
                                          socket_connect_timeout=socket_connect_timeout)
        self._cli = client

    def get(self, key):
        try:
            return self._cli.get(key)
        except RedisError as ex:
            raise CacheUnavailable("get", cause=ex) from ex

    def set(self, key, value, ttl):
        try:
            self._cli.setex(key, int(ttl), value)
        except RedisError as ex:
            raise CacheUnavailable("set", cause=ex) from ex

    def delete(self, key):
        try:
            self._cli.delete(key)
        except RedisError as ex:
            raise CacheUnavailable("delete", cause=ex) from ex

    def flush(self):
        try:
            self._cli.flushdb()
        except RedisError as ex:
            raise CacheUnavailable("flush", cause=ex) from ex

class InMemoryCacheBackend(CacheBackend):
    """
    a CacheBackend that keeps its entries in a local dictionary.  An expired entry is dropped
    when it is next accessed; in addition, all expired entries are purged whenever the number
    of stored entries grows past a threshold.  The threshold is reset after each purge to twice
    the number of live entries (but never below ``sweep_size``).
    """

    def __init__(self, clock: Callable[[], float]=None, sweep_size: int=1024):
        """
        :param func clock:  a function returning the current time in seconds; the default is
                            ``time.monotonic``.  (Tests may provide their own.)
        :param int sweep_size:  the minimum number of stored entries that triggers a purge of
                            expired entries
        """
        if not clock:
            clock = time.monotonic
        self._clock = clock
        self._data = {}
        self._lock = threading.Lock()
        self._minsweep = max(int(sweep_size), 1)
        self._sweepat = self._minsweep

    def _purge(self):
        # caller must hold self._lock
        now = self._clock()
        for key in [k for k, e in self._data.items() if e[0] <= now]:
            del self._data[key]
        self._sweepat = max(2 * len(self._data), self._minsweep)

    def get(self, key):
        with self._lock:
            ent = self._data.get(key)
            if ent is None:
                return None
            if ent[0] <= self._clock():
                del self._data[key]
                return None
            return ent[1]

    def set(self, key, value, ttl):
        with self._lock:
            if key not in self._data and len(self._data) >= self._sweepat:
                self._purge()
            self._data[key] = (self._clock() + ttl, value)

    def delete(self, key):
        with self._lock:
            self._data.pop(key, None)

    def flush(self):
        with self._lock:
            self._data.clear()
            self._sweepat = self._minsweep

    def __len__(self):
        now = self._clock()
        with self._lock:
            return len([e for e in self._data.values() if e[0] > now])

class NullCacheBackend(CacheBackend):
    """
    a CacheBackend that never stores anything:  every look-up is a miss
    """
    def get(self, key):
        return None

    def set(self, key, value, ttl):
        pass

    def delete(self, key):
        pass

    def flush(self):
        pass

def create_cache_backend(config: Mapping) -> CacheBackend:
    """
    instantiate a :py:class:`CacheBackend` based on the given configuration.  The ``factory``
    parameter selects the implementation:  "redis", "memory", or "none".
    """
    if not isinstance(config, Mapping):
        raise ConfigurationException("cache config: not a dictionary: "+str(config))

    factory = config.get("factory", "memory")
    if factory == "redis":
        return RedisCacheBackend(config.get("url"), config.get("socket_timeout", 2.0),
                                 config.get("socket_connect_timeout", 2.0))
    elif factory == "memory":
        return InMemoryCacheBackend()
    elif not factory or factory == "none":
        return NullCacheBackend()

    raise ConfigurationException("cache.factory type not supported: "+str(factory))


class ResultCache(object):
    """
    a cache of search results that fails open.  Each entry holds the JSON-serialized list of the
    records matching a pair of search filters and expires after a fixed time-to-live.
    """

    def __init__(self, backend: CacheBackend, ttl: int=DEF_TTL, key_prefix: str=DEF_KEY_PREFIX,
                 record_factory: Callable[[Mapping], Record]=None, log: logging.Logger=None):
        """
        :param CacheBackend backend:  the store holding the cached entries
        :param int ttl:               the default number of seconds an entry lives
        :param str key_prefix:        a string to start each cache key with
        :param func record_factory:   a function for turning a deserialized record dictionary into
                                      a Record; by default, the Record constructor is used.
        :param Logger log:            the Logger to send messages to
        """
        if not log:
            log = deflog
        self.log = log
        self.backend = backend
        self.ttl = ttl
        self.prefix = key_prefix
        if not record_factory:
            record_factory = Record
        self._mkrec = record_factory

    def make_key(self, name_filter: str, instructor_filter: str, generation: int=None) -> str:
        """
        return the cache key for the given pair of search filters.  The length of the name filter
        is included in the key so that distinct pairs (e.g. ("A", "B") and ("AB", "")) always
        produce distinct keys.
        :param int generation:  the record store generation the results belong to; if given, it
                                is included in the key so that results computed from records
                                that have since been replaced are never looked up again.
        """
        name_filter = name_filter or ""
        instructor_filter = instructor_filter or ""
        prefix = self.prefix
        if generation is not None:
            prefix += f":g{generation}"
        return f"{prefix}:{len(name_filter)}:{name_filter}:{instructor_filter}"

    def get(self, key: str) -> List[Record]:
        """
        return the cached results for the given key, or None if they are not available (because
        they were never cached, have expired, or cannot be retrieved).
        """
        try:
            data = self.backend.get(key)
        except CacheUnavailable as ex:
            self.log.warning("Treating cache look-up as a miss: %s", str(ex))
            return None

        if data is None:
            blab(self.log, "cache miss: %s", key)
            return None

        try:
            out = self._deserialize(data)
        except (ValueError, TypeError) as ex:
            self.log.warning("Dropping undecodable cache entry for %s: %s", key, str(ex))
            self.delete(key)
            return None

        blab(self.log, "cache hit: %s", key)
        return out

    def put(self, key: str, results: List[Mapping], ttl: int=None):
        """
        cache the given results under the given key.  Failures are logged but not raised.
        :param int ttl:  the number of seconds the entry should live; if not given, the default
                         set at construction is used.
        """
        if ttl is None:
            ttl = self.ttl
        try:
            data = self._serialize(results)
        except (ValueError, TypeError) as ex:
            self.log.warning("Unable to serialize results for %s: %s", key, str(ex))
            return

        try:
            self.backend.set(key, data, ttl)
        except CacheUnavailable as ex:
            self.log.warning("Failed to cache results: %s", str(ex))

    def delete(self, key: str):
        """
        remove the cached entry for the given key.  Failures are logged but not raised.
        """
        try:
            self.backend.delete(key)
        except CacheUnavailable as ex:
            self.log.warning("Failed to remove cache entry: %s", str(ex))

    def flush_all(self) -> bool:
        """
        remove all cached entries.  Failures are logged but not raised.
        :return:  True if the cache was successfully cleared
        """
        try:
            self.backend.flush()
            self.log.info("Result cache cleared")
            return True
        except CacheUnavailable as ex:
            self.log.warning("Failed to clear result cache: %s", str(ex))
            return False

    def _serialize(self, results: List[Mapping]) -> str:
        return json.dumps([(r.to_dict() if isinstance(r, Record) else dict(r)) for r in results],
                          ensure_ascii=False)

    def _deserialize(self, data) -> List[Record]:
        if isinstance(data, (bytes, bytearray)):
            data = data.decode('utf-8')
        recs = json.loads(data)
        if not isinstance(recs, list) or any(not isinstance(r, Mapping) for r in recs):
            raise ValueError("cached data is not a list of records")
        return [self._mkrec(r) for r in recs]
