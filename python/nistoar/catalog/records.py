"""
The catalog's record model and the in-memory store that holds the loaded records.

A :py:class:`Record` is an immutable, ordered mapping of field names to scalar values describing
one course.  The two fields that searches operate on (the course name and the instructor) are
available as typed properties; all other fields pass through untouched via :py:attr:`Record.extras`.

A :py:class:`RecordStore` holds the full, ordered set of records.  It is loaded once from a
tabular source and thereafter only ever replaced wholesale.  Readers hold its shared lock while
iterating; replacement takes the exclusive lock.
"""
import logging
from collections import OrderedDict
from collections.abc import Mapping
from types import MappingProxyType
from typing import Iterable, Iterator, Tuple, Union

from . import system, LoadError, ParseError
from .csvio import read_records, UNKNOWN
from .locking import ReadWriteLock

deflog = logging.getLogger(system.system_abbrev).getChild('store')

DEF_NAME_FIELD = "course_name"
DEF_INSTRUCTOR_FIELD = "instructor"

Scalar = Union[str, bool, int, float]

class Record(Mapping):
    """
    a single catalog entry:  an ordered, read-only mapping of field names to scalar values.
    """
    __slots__ = ("_data", "_namef", "_instf")

    def __init__(self, data: Mapping, name_field: str=DEF_NAME_FIELD,
                 instructor_field: str=DEF_INSTRUCTOR_FIELD):
        """
        wrap the given field data into a Record.  The data is copied.
        :param Mapping data:        the field names and values
        :param str name_field:      the field holding the course name
        :param str instructor_field:  the field holding the instructor's name
        """
        self._data = OrderedDict(data)
        self._namef = name_field
        self._instf = instructor_field

    def __getitem__(self, field):
        return self._data[field]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self):
        return "Record(%s)" % dict(self._data)

    def __eq__(self, other):
        if isinstance(other, Record):
            return list(self._data.items()) == list(other._data.items())
        return super(Record, self).__eq__(other)

    def _strfield(self, field) -> str:
        val = self._data.get(field, "")
        return val if isinstance(val, str) else ""

    @property
    def name(self) -> str:
        """
        the course name, or an empty string if the record does not have one
        """
        return self._strfield(self._namef)

    @property
    def instructor(self) -> str:
        """
        the instructor's name, or an empty string if the record does not have one
        """
        return self._strfield(self._instf)

    @property
    def extras(self) -> Mapping:
        """
        a read-only view of all fields other than the name and instructor fields
        """
        return MappingProxyType(OrderedDict((k, v) for k, v in self._data.items()
                                            if k != self._namef and k != self._instf))

    def to_dict(self) -> OrderedDict:
        """
        return a copy of this record's data as a (mutable) ordered dictionary
        """
        return OrderedDict(self._data)


class RecordStore(object):
    """
    the full in-memory collection of catalog records.  The records are kept as an immutable
    tuple that is swapped out (under an exclusive lock) whenever the store is reloaded.
    """

    def __init__(self, name_field: str=DEF_NAME_FIELD, instructor_field: str=DEF_INSTRUCTOR_FIELD,
                 unknown: str=UNKNOWN, log: logging.Logger=None):
        """
        create an empty store
        :param str name_field:      the field that holds a course's name
        :param str instructor_field:  the field that holds a course's instructor
        :param str unknown:         the value substituted for missing values when loading
        :param Logger log:          the Logger to send messages to
        """
        if not log:
            log = deflog
        self.log = log
        self.name_field = name_field
        self.instructor_field = instructor_field
        self.unknown = unknown
        self.source = None
        self._records = ()
        self._gen = 0
        self._lock = ReadWriteLock()

    def make_record(self, data: Mapping) -> Record:
        """
        wrap field data into a Record configured with this store's field names
        """
        if isinstance(data, Record):
            data = data._data
        return Record(data, self.name_field, self.instructor_field)

    def read_locked(self):
        """
        return a context manager that holds this store's shared (read) lock
        """
        return self._lock.shared()

    def write_locked(self):
        """
        return a context manager that holds this store's exclusive (write) lock
        """
        return self._lock.exclusive()

    def snapshot(self) -> Tuple[Record]:
        """
        return the current records.  The returned tuple is never modified; a reload installs a
        new tuple instead.  To see a store that is consistent with other reads, call this while
        holding the shared lock (see :py:meth:`read_locked`).
        """
        return self._records

    @property
    def generation(self) -> int:
        """
        a counter that is incremented each time the store's contents are replaced.  A result
        computed from the store can be tagged with the generation read before computing it; if
        the generation has since changed, the result may be stale.
        """
        return self._gen

    def count(self) -> int:
        """
        return the number of records currently loaded
        """
        with self.read_locked():
            return len(self._records)

    def replace(self, records: Iterable[Mapping]):
        """
        install the given records as the store's new contents
        :param Iterable[Mapping] records:  the new records; mappings that are not already Records
                                           will be converted
        """
        recs = tuple(self.make_record(r) for r in records)
        with self.write_locked():
            self._records = recs
            self._gen += 1
        self.log.debug("Installed %d records", len(recs))

    def load(self, source) -> "RecordStore":
        """
        (re-)load the store from a tabular (CSV) source file.  The file is parsed before the store
        is locked; the previous contents are left in place if the load fails.
        :param str source:  the path to the CSV file
        :return:  this store
        :raises LoadError:  if the source cannot be read or parsed
        """
        try:
            data = read_records(source, self.unknown)
        except OSError as ex:
            raise LoadError(source, cause=ex) from ex
        except ParseError as ex:
            raise LoadError(source, cause=ex.cause or ex) from ex

        self.replace(data)
        self.source = source
        self.log.info("Loaded %d records from %s", len(data), str(source))
        return self

    def __len__(self):
        return self.count()
