"""
Support for the in-memory course catalog search service.

A catalog is a bounded set of course records loaded from a tabular (CSV) source.  The
:py:class:`~nistoar.catalog.service.CatalogService` holds the loaded records, answers substring
queries against them, and caches the results.  The :py:mod:`.wsgi module<nistoar.catalog.wsgi>` is
responsible for exposing the service through a web interface.
"""
try:
    from .version import __version__
except ImportError:
    __version__ = "(unset)"

_CATSYSNAME = "Course Catalog Search"
_CATSYSABBREV = "catalog"

class CatalogSystem(object):
    """
    a description of the overall catalog search system
    """
    def __init__(self, subsysname="", subsysabbrev=""):
        self.system_name = _CATSYSNAME
        self.system_abbrev = _CATSYSABBREV
        self.subsystem_name = subsysname
        self.subsystem_abbrev = subsysabbrev
        self.system_version = __version__

system = CatalogSystem()

class CatalogException(Exception):
    """
    A general base class for exceptions that occur while loading, indexing, or searching a catalog
    """
    pass

class ConfigurationException(CatalogException):
    """
    An exception indicating that the service configuration is missing required information or
    is otherwise unusable.
    """
    pass

class ParseError(CatalogException):
    """
    An exception indicating that a tabular source could not be parsed.
    """

    def __init__(self, source=None, message=None, cause=None):
        if not message:
            message = "Unable to parse tabular source"
            if source:
                message += ": " + str(source)
            if cause:
                message += ": " + str(cause)
        super(ParseError, self).__init__(message)
        self.source = source
        self.cause = cause

class LoadError(CatalogException):
    """
    An exception indicating that the catalog records could not be loaded from their source.  When
    raised at startup, the service should not be started.
    """

    def __init__(self, source=None, message=None, cause=None):
        if not message:
            message = "Failed to load catalog records"
            if source:
                message += " from " + str(source)
            if cause:
                message += ": " + str(cause)
        super(LoadError, self).__init__(message)
        self.source = source
        self.cause = cause

class IndexBuildError(CatalogException):
    """
    An exception indicating that an index could not be built over the loaded records.  This
    includes two extra public properties: ``field``, the name of the field being indexed, and
    ``position``, the (zero-based) position within the store of the offending record.
    """

    def __init__(self, field, position=None, message=None):
        if not message:
            message = f"Unable to index on field {field}"
            if position is not None:
                message += f" (record #{position})"
        super(IndexBuildError, self).__init__(message)
        self.field = field
        self.position = position

class MissingFieldError(IndexBuildError):
    """
    An error indicating that a record lacks the field an index is being built on.
    """

    def __init__(self, field, position=None, message=None):
        if not message:
            message = f"Record is missing index key field: {field}"
            if position is not None:
                message += f" (record #{position})"
        super(MissingFieldError, self).__init__(field, position, message)

class TypeMismatchError(IndexBuildError):
    """
    An error indicating that a record's value for the index key field is not a string.  The
    offending value is available via the ``value`` property.
    """

    def __init__(self, field, position=None, value=None, message=None):
        if not message:
            message = f"Value of index key field, {field}, is not a string"
            if value is not None:
                message += f": {type(value).__name__}"
            if position is not None:
                message += f" (record #{position})"
        super(TypeMismatchError, self).__init__(field, position, message)
        self.value = value

class CacheUnavailable(CatalogException):
    """
    An exception indicating that the result cache's backing store could not be reached or
    returned an error.  This is never fatal:  the caller should fall back to a live search.
    """

    def __init__(self, operation=None, message=None, cause=None):
        if not message:
            message = "Result cache unavailable"
            if operation:
                message += f" during {operation}"
            if cause:
                message += ": " + str(cause)
        super(CacheUnavailable, self).__init__(message)
        self.operation = operation
        self.cause = cause
