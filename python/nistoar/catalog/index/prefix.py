"""
a trie-based index supporting exact and prefix look-ups on the value of a record field
"""
import heapq
from collections.abc import Mapping
from typing import Iterator, List, Tuple

from . import Indexable, keyed_records

class _Node(object):
    __slots__ = ("children", "entries")

    def __init__(self):
        self.children = {}
        self.entries = []     # (insertion seqno, record) pairs whose key ends at this node

class PrefixIndex(object):
    """
    a look-up object for finding records where the value of a chosen field either equals or
    starts with a given string.

    Each string inserted into the trie is associated with its record (by reference).  Several
    records may be inserted under the same string:  :py:meth:`lookup_prefix` will return all of
    them, while :py:meth:`lookup_exact` returns the one inserted last (the same policy followed
    by :py:class:`~nistoar.catalog.index.keyed.KeyIndex`).
    """

    def __init__(self, key_field: str=None, caseins: bool=False):
        """
        create an empty index
        :param str key_field:  the name of the record field being indexed
        :param bool caseins:   if True, treat key values as case-insensitive; the default is
                               False (keys must match exactly).
        """
        self.key_field = key_field
        self._root = _Node()
        self._size = 0
        self._seq = 0
        self._mkt = str
        if caseins:
            self._mkt = lambda s: s.lower()

    @classmethod
    def build(cls, data: Indexable, key_field: str, caseins: bool=False) -> "PrefixIndex":
        """
        create an index over the given records.
        :param data:  the records to index, given either as a
                      :py:class:`~nistoar.catalog.records.RecordStore` (which will be read under its
                      shared lock) or as an iterable of record mappings
        :param str key_field:  the record field to index on; every record must have it and its
                      value must be a string.
        :param bool caseins:   if True, treat key values as case-insensitive
        :raises MissingFieldError:  if any record lacks ``key_field``
        :raises TypeMismatchError:  if any record's ``key_field`` value is not a string
        """
        out = cls(key_field, caseins)
        for key, rec in keyed_records(data, key_field):
            out.insert(key, rec)
        return out

    def insert(self, key: str, record: Mapping):
        """
        add a record to this index under the given key value
        """
        node = self._root
        for ch in self._mkt(key):
            nxt = node.children.get(ch)
            if nxt is None:
                nxt = node.children[ch] = _Node()
            node = nxt
        node.entries.append((self._seq, record))
        self._seq += 1
        self._size += 1

    def _find(self, key: str) -> _Node:
        node = self._root
        for ch in self._mkt(key):
            node = node.children.get(ch)
            if node is None:
                return None
        return node

    def lookup_exact(self, key: str) -> Mapping:
        """
        return the record inserted under exactly the given key, or None if no record was.  If
        several records share the key, the last one inserted is returned.
        """
        node = self._find(key)
        if node is None or not node.entries:
            return None
        return node.entries[-1][1]

    def lookup_prefix(self, prefix: str) -> Iterator[Mapping]:
        """
        return an iterator over the records whose key starts with the given prefix, in the order
        they were inserted.  The empty prefix matches every record in the index.  The trie is not
        searched until iteration begins.
        """
        node = self._find(prefix)
        if node is None:
            return
        for seq, rec in heapq.merge(*self._collect(node)):
            yield rec

    def _collect(self, node: _Node) -> List[List[Tuple[int, Mapping]]]:
        # gather the entry lists below a node; each list is already in insertion order
        out = []
        stack = [node]
        while stack:
            n = stack.pop()
            if n.entries:
                out.append(n.entries)
            stack.extend(n.children.values())
        return out

    def __contains__(self, key):
        return self.lookup_exact(key) is not None

    def __len__(self):
        return self._size
