"""
The substring search over the records in a :py:class:`~nistoar.catalog.records.RecordStore`.

A search constrains two fields, the course name and the instructor.  A record matches if each
non-empty filter string appears as a substring of the corresponding field.  Matching is
case-sensitive with no normalization.  An empty filter matches every record, including records
lacking the field; a non-empty filter never matches a record lacking it.
"""
import logging, threading
from typing import List

from . import system
from .records import Record, RecordStore

deflog = logging.getLogger(system.system_abbrev).getChild('search')

def matches(rec: Record, name_filter: str, instructor_filter: str) -> bool:
    """
    return True if the given record satisfies both filters
    """
    return (not name_filter or name_filter in rec.name) and \
           (not instructor_filter or instructor_filter in rec.instructor)

class SearchEngine(object):
    """
    an engine that executes two-field substring queries by scanning a RecordStore.  The store's
    shared lock is held for the whole of each scan, so a scan always sees a single, complete
    version of the store even if a reload is requested mid-way.
    """

    def __init__(self, store: RecordStore, log: logging.Logger=None):
        """
        :param RecordStore store:  the store to search
        :param Logger log:         the Logger to send messages to
        """
        if not log:
            log = deflog
        self.log = log
        self.store = store
        self._scans = 0
        self._cntlock = threading.Lock()

    @property
    def scan_count(self) -> int:
        """
        the number of scans of the store this engine has carried out
        """
        return self._scans

    def search(self, name_filter: str="", instructor_filter: str="") -> List[Record]:
        """
        return the records matching the given filters, in store order.
        :param str name_filter:        a string that must appear in a matching record's course
                                       name; if empty or None, the name is not constrained.
        :param str instructor_filter:  a string that must appear in a matching record's
                                       instructor field; if empty or None, the instructor is not
                                       constrained.
        """
        name_filter = name_filter or ""
        instructor_filter = instructor_filter or ""

        with self.store.read_locked():
            recs = self.store.snapshot()
            if not name_filter and not instructor_filter:
                out = list(recs)
            else:
                out = [r for r in recs if matches(r, name_filter, instructor_filter)]

        with self._cntlock:
            self._scans += 1
        self.log.debug("search(%r, %r): %d of %d records matched",
                       name_filter, instructor_filter, len(out), len(recs))
        return out
