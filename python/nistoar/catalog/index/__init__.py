"""
a package providing lookup indexes over the records in a :py:class:`~nistoar.catalog.records.RecordStore`.

Two kinds of index are offered:

:py:class:`~nistoar.catalog.index.keyed.KeyIndex`
    a hash index mapping each exact value of a chosen field to the record holding it.
:py:class:`~nistoar.catalog.index.prefix.PrefixIndex`
    a trie over a chosen field supporting both exact look-ups and look-ups of all records whose
    value starts with a given prefix (e.g. for autocompletion).

Both are built on demand from a snapshot of a store and are not updated when the store is
reloaded; callers must rebuild them.  Neither is used by the substring search path
(:py:mod:`~nistoar.catalog.search`).
"""
from collections.abc import Mapping
from typing import Iterable, Iterator, Tuple, Union

from .. import MissingFieldError, TypeMismatchError
from ..records import RecordStore

Indexable = Union[RecordStore, Iterable[Mapping]]

def keyed_records(data: Indexable, key_field: str) -> Iterator[Tuple[str, Mapping]]:
    """
    iterate through the given records, yielding each record's (string) value for ``key_field``
    along with the record itself.  If ``data`` is a RecordStore, a snapshot is taken while holding
    its shared lock.
    :raises MissingFieldError:  if a record does not have the ``key_field`` field
    :raises TypeMismatchError:  if a record's ``key_field`` value is not a string
    """
    if isinstance(data, RecordStore):
        with data.read_locked():
            data = data.snapshot()

    for i, rec in enumerate(data):
        if key_field not in rec:
            raise MissingFieldError(key_field, i)
        key = rec[key_field]
        if not isinstance(key, str):
            raise TypeMismatchError(key_field, i, key)
        yield key, rec

from .keyed import KeyIndex
from .prefix import PrefixIndex
