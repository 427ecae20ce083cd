"""
Utility functions for reading and writing the tabular (CSV) files that catalog records are loaded
from and that new submissions are appended to.

The reader is tolerant of loosely formatted files:  the first row is always taken as the header
of field names, rows may have fewer or more fields than the header, and empty values are
replaced with a sentinel string (:py:data:`UNKNOWN`) rather than being left blank.
"""
import csv, os
from collections import OrderedDict
from collections.abc import Mapping
from typing import List, Iterable

from . import ParseError

__all__ = [ 'UNKNOWN', 'read_records', 'write_records', 'append_record' ]

UNKNOWN = "unknown"

def read_records(filepath, unknown: str=UNKNOWN, encoding: str="utf-8-sig") -> List[Mapping]:
    """
    read the records from a CSV file.  The first row is taken to be the header providing the
    field names; each subsequent non-blank row becomes an ordered dictionary mapping each field
    name to its value.  A row shorter than the header is padded out with the ``unknown`` value;
    values beyond the length of the header are ignored.  Empty values are also replaced with
    the ``unknown`` value.

    :param str filepath:  the path to the CSV file to read
    :param str  unknown:  the value to substitute for missing or empty values
    :param str encoding:  the file's character encoding; the default, "utf-8-sig", will accept
                          UTF-8 with or without a leading byte-order mark.
    :return:  the list of records in file order
              :rtype: List[OrderedDict]
    :raises OSError:     if the file cannot be opened or read
    :raises ParseError:  if the contents cannot be decoded or parsed as CSV
    """
    try:
        with open(filepath, newline='', encoding=encoding) as fd:
            rows = list(csv.reader(fd, strict=False))
    except (csv.Error, UnicodeDecodeError) as ex:
        raise ParseError(filepath, cause=ex) from ex

    rows = [r for r in rows if r]
    if not rows:
        return []

    headers = rows[0]
    out = []
    for row in rows[1:]:
        rec = OrderedDict()
        for i, field in enumerate(headers):
            val = row[i] if i < len(row) else ""
            rec[field] = val if val != "" else unknown
        out.append(rec)

    return out

def _to_row(rec: Mapping, headers: List[str], unknown: str) -> List[str]:
    return [str(rec[h]) if h in rec else unknown for h in headers]

def write_records(filepath, records: Iterable[Mapping], headers: List[str], unknown: str=UNKNOWN):
    """
    write the given records to a new CSV file (overwriting any existing one).  A header row is
    written first; each record is then written in the order of ``headers``, using ``unknown`` for
    any field the record lacks.
    :param str          filepath:  the path to the file to write
    :param Iterable[Mapping] records:  the records to write
    :param List[str]     headers:  the field names, in column order
    :param str           unknown:  the value to write for missing fields
    """
    with open(filepath, 'w', newline='', encoding="utf-8") as fd:
        wrtr = csv.writer(fd)
        wrtr.writerow(headers)
        for rec in records:
            wrtr.writerow(_to_row(rec, headers, unknown))

def append_record(filepath, record: Mapping, headers: List[str], unknown: str=UNKNOWN):
    """
    append a single record to a CSV file.  If the file does not yet exist, it will be created
    with a header row first.  The record's values are written in the order of ``headers``, using
    ``unknown`` for any field the record lacks.
    """
    if not os.path.exists(filepath):
        write_records(filepath, [record], headers, unknown)
        return

    with open(filepath, 'a', newline='', encoding="utf-8") as fd:
        csv.writer(fd).writerow(_to_row(record, headers, unknown))
