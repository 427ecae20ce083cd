"""
a hash index that maps the exact value of a record field to the record holding it
"""
from collections.abc import Mapping
from typing import Iterator

from . import Indexable, keyed_records

class KeyIndex(object):
    """
    a look-up object for finding the record that has a particular value for a chosen field.
    Each value maps to a single record:  if several records share a value, the one that appeared
    last in the indexed data wins.
    """

    def __init__(self, key_field: str):
        """
        create an empty index
        :param str key_field:  the name of the record field being indexed
        """
        self.key_field = key_field
        self._data = {}

    @classmethod
    def build(cls, data: Indexable, key_field: str) -> "KeyIndex":
        """
        create an index over the given records.
        :param data:  the records to index, given either as a
                      :py:class:`~nistoar.catalog.records.RecordStore` (which will be read under its
                      shared lock) or as an iterable of record mappings
        :param str key_field:  the record field to index on; every record must have it and its
                      value must be a string.
        :raises MissingFieldError:  if any record lacks ``key_field``
        :raises TypeMismatchError:  if any record's ``key_field`` value is not a string
        """
        out = cls(key_field)
        out._data = dict(keyed_records(data, key_field))
        return out

    def lookup(self, key: str) -> Mapping:
        """
        return the record having the given value for the indexed field, or None if there is no
        such record.
        """
        return self._data.get(key)

    def keys(self) -> Iterator[str]:
        """
        return the indexed field values
        """
        return self._data.keys()

    def __contains__(self, key):
        """
        return True if some record has the given value for the indexed field
        """
        return key in self._data

    def __len__(self):
        """
        return the number of distinct values indexed
        """
        return len(self._data)
