"""
The catalog search service:  the business object that ties together the record store, the search
engine, and the result cache.

A :py:class:`CatalogService` is created once per process (usually via
:py:func:`create_catalog_service`), started with :py:meth:`~CatalogService.start`, and then shared
by all request-handling threads.  The :py:mod:`.wsgi module<nistoar.catalog.wsgi>` exposes it
through a web interface, and :py:mod:`~nistoar.catalog.cli` from the command line.

The service is configured with a dictionary; the parameters it consults are:

``data``
    a dictionary describing the tabular source of records with the following sub-parameters:

    ``source``
        the path to the CSV file to load records from
    ``name_field``
        the name of the column holding the course name (default: "course_name")
    ``instructor_field``
        the name of the column holding the instructor (default: "instructor")
    ``unknown_value``
        the value substituted for empty or missing values (default: "unknown")
    ``submissions_file``
        (optional) the path to a CSV file that new course submissions are appended to
``cache``
    a dictionary configuring the result cache (see :py:func:`~nistoar.catalog.cache.create_cache_backend`)
    plus ``ttl``, ``key_prefix``, and ``flush_on_start``.
"""
import os, logging
from collections.abc import Mapping
from typing import List, Sequence

from . import system, ConfigurationException, ParseError
from .csvio import read_records, append_record, UNKNOWN
from .records import Record, RecordStore, DEF_NAME_FIELD, DEF_INSTRUCTOR_FIELD
from .search import SearchEngine
from .cache import ResultCache, CacheBackend, create_cache_backend, DEF_TTL, DEF_KEY_PREFIX
from .index import KeyIndex, PrefixIndex

deflog = logging.getLogger(system.system_abbrev).getChild('service')

class CatalogService(object):
    """
    a service for searching an in-memory catalog of course records.  Searches are answered from
    the result cache when possible; otherwise, they are executed against the record store and the
    results cached for later.
    """

    def __init__(self, config: Mapping, cache_backend: CacheBackend=None, log: logging.Logger=None):
        """
        create the service.  No records are loaded until :py:meth:`start` is called.
        :param dict config:   the service configuration (see the module documentation)
        :param CacheBackend cache_backend:  the store to use for the result cache; if not given,
                              one will be created according to the ``cache`` configuration.
        :param Logger log:    the Logger to send messages to
        """
        if not isinstance(config, Mapping):
            raise ConfigurationException("catalog config: not a dictionary: "+str(config))
        if not log:
            log = deflog
        self.log = log
        self.cfg = config

        datacfg = self.cfg.get('data', {}) or {}
        self.store = RecordStore(datacfg.get('name_field', DEF_NAME_FIELD),
                                 datacfg.get('instructor_field', DEF_INSTRUCTOR_FIELD),
                                 datacfg.get('unknown_value', UNKNOWN))
        self.engine = SearchEngine(self.store)

        cachecfg = self.cfg.get('cache', {}) or {}
        if cache_backend is None:
            cache_backend = create_cache_backend(cachecfg)
        ttl = cachecfg.get('ttl', DEF_TTL)
        if not isinstance(ttl, (int, float)) or ttl <= 0:
            raise ConfigurationException("cache.ttl: must be a positive number of seconds")
        self.cache = ResultCache(cache_backend, ttl, cachecfg.get('key_prefix', DEF_KEY_PREFIX),
                                 self.store.make_record)

    @property
    def source(self) -> str:
        """
        the tabular source that records are (or will be) loaded from
        """
        if self.store.source:
            return self.store.source
        return (self.cfg.get('data', {}) or {}).get('source')

    @property
    def submissions_file(self) -> str:
        """
        the CSV file that course submissions are appended to, or None if not configured
        """
        return (self.cfg.get('data', {}) or {}).get('submissions_file')

    def start(self, source=None) -> "CatalogService":
        """
        load the records and prepare the service to accept queries.  Unless turned off via the
        ``cache.flush_on_start`` parameter, the result cache is cleared of entries left over from
        a previous run.
        :param str source:  the CSV file to load; if not given, the configured source is used.
        :return:  this service
        :raises LoadError:  if the records could not be loaded; the service should not be put
                            into operation.
        """
        if not source:
            source = self.source
        if not source:
            raise ConfigurationException("Missing required config param: data.source")

        self.store.load(source)
        if (self.cfg.get('cache', {}) or {}).get('flush_on_start', True):
            self.cache.flush_all()
        self.log.info("Catalog service started with %d records", self.store.count())
        return self

    def search(self, name_filter: str="", instructor_filter: str="") -> List[Record]:
        """
        return the records whose course name contains ``name_filter`` and whose instructor
        contains ``instructor_filter``.  An empty filter places no constraint on its field.
        Errors in the result cache are never passed on; the search falls back to scanning the store.
        """
        name_filter = name_filter or ""
        instructor_filter = instructor_filter or ""

        # the generation is read before the scan; results from a scan that overlaps a reload
        # are written under the old generation's key and are never looked up again
        key = self.cache.make_key(name_filter, instructor_filter, self.store.generation)
        out = self.cache.get(key)
        if out is not None:
            return out

        out = self.engine.search(name_filter, instructor_filter)
        self.cache.put(key, out)
        return out

    def reload(self, source=None) -> int:
        """
        replace the loaded records with a fresh load from the tabular source, and clear the result
        cache so that later searches reflect the new records.  Searches in progress complete against
        the old records.
        :param str source:  the CSV file to load; if not given, the last-loaded (or configured)
                            source is used.
        :return:  the number of records now loaded
        :raises LoadError:  if the records could not be loaded; the previously loaded records
                            remain in place.
        """
        if not source:
            source = self.source
        if not source:
            raise ConfigurationException("Missing required config param: data.source")

        self.store.load(source)
        self.cache.flush_all()
        return self.store.count()

    def stats(self) -> Mapping:
        """
        return summary statistics about the catalog:  ``record_count`` gives the number of
        records loaded; if a submissions file is configured, ``submission_count`` gives the
        number of submissions recorded in it.
        """
        out = { "record_count": self.store.count() }
        if self.submissions_file:
            out["submission_count"] = self.count_submissions()
        return out

    def count_submissions(self) -> int:
        """
        return the number of course submissions recorded in the submissions file.  Zero is
        returned if the file is not configured, does not exist, or cannot be read.
        """
        subf = self.submissions_file
        if not subf or not os.path.exists(subf):
            return 0
        try:
            return len(read_records(subf, self.store.unknown))
        except (OSError, ParseError) as ex:
            self.log.warning("Unable to count submissions in %s: %s", subf, str(ex))
            return 0

    def record_submission(self, row: Mapping, headers: Sequence[str]=None):
        """
        append a course submission to the submissions file.  The row is not validated.
        :param dict row:       the submission's field values
        :param list headers:   the column order to write; if not given, the row's own key order
                               is used.
        :raises ConfigurationException:  if no submissions file is configured
        """
        subf = self.submissions_file
        if not subf:
            raise ConfigurationException("Missing required config param: data.submissions_file")
        if not headers:
            headers = list(row.keys())
        append_record(subf, row, headers, self.store.unknown)
        self.log.info("Recorded course submission to %s", subf)

    def build_key_index(self, key_field: str=None) -> KeyIndex:
        """
        build a :py:class:`~nistoar.catalog.index.keyed.KeyIndex` over the currently loaded
        records.  The index is not updated when the records are reloaded.
        :param str key_field:  the field to index on; defaults to the course name field
        """
        if not key_field:
            key_field = self.store.name_field
        return KeyIndex.build(self.store, key_field)

    def build_prefix_index(self, key_field: str=None, caseins: bool=False) -> PrefixIndex:
        """
        build a :py:class:`~nistoar.catalog.index.prefix.PrefixIndex` over the currently loaded
        records.  The index is not updated when the records are reloaded.
        :param str key_field:  the field to index on; defaults to the course name field
        :param bool caseins:   if True, look-ups will be case-insensitive
        """
        if not key_field:
            key_field = self.store.name_field
        return PrefixIndex.build(self.store, key_field, caseins)

    def status(self) -> Mapping:
        """
        return a status message that indicates if the service appears ready
        """
        rc = self.store.count()
        if rc > 0:
            return {
                "status": "ready",
                "message": f"Ready with {rc} courses",
                "record_count": rc
            }
        return {
            "status": "not ready",
            "message": "No course records loaded",
            "record_count": rc
        }


def create_catalog_service(config: Mapping, log: logging.Logger=None) -> CatalogService:
    """
    instantiate a :py:class:`CatalogService` instance based on the given configuration.  The
    returned service has not yet been started.
    """
    if not isinstance(config, Mapping):
        raise ConfigurationException("catalog config: not a dictionary: "+str(config))
    return CatalogService(config, log=log)
