"""
Utilities for obtaining the configuration for the catalog service and for setting up logging.

The configuration is a (nested) dictionary, typically read from a YAML or JSON file.  See
:py:data:`DEFAULT_CONFIG` for the recognized parameters and their default values.
"""
import os, json, logging, copy
from collections.abc import Mapping
from pathlib import Path

import yaml

from . import ConfigurationException

__all__ = [ 'DEFAULT_CONFIG', 'load_from_file', 'merge_config', 'resolve_configuration',
            'configure_log', 'blab', 'BLAB' ]

CONFIG_FILE_ENV = "CATALOG_CONFIG_FILE"

DEFAULT_CONFIG = {
    "name": "catalog",
    "data": {
        "source": "courses.csv",
        "name_field": "course_name",
        "instructor_field": "instructor",
        "unknown_value": "unknown",
        "submissions_file": None
    },
    "cache": {
        "factory": "memory",
        "url": "redis://localhost:6379/0",
        "socket_timeout": 2.0,
        "socket_connect_timeout": 2.0,
        "ttl": 86400,
        "key_prefix": "search",
        "flush_on_start": True
    },
    "logging": {
        "loglevel": "INFO"
    },
    "web": {
        "cache_control": "public, max-age=7200",
        "gzip": True
    }
}

BLAB = logging.DEBUG - 1

def blab(log, msg, *args, **kwargs):
    """
    log a verbose message. This uses a log level, BLAB, that is lower than DEBUG; in other words
    when a log's level is set to DEBUG, this message will not be displayed.  This is intended for
    messages that would appear voluminously (e.g. one per query) if the level were set to BLAB.

    :param Logger log:  the Logger object to record to
    :param str    msg:  the message to write
    :param args:        treat msg as a template and insert these values
    :param kwargs:      other arbitrary keywords to pass to log.log()
    """
    log.log(BLAB, msg, *args, **kwargs)

def load_from_file(configfile) -> Mapping:
    """
    read the configuration from the given file.  The format is determined by the file's
    extension:  ".yml" and ".yaml" are read as YAML, ".json" as JSON.

    :raises ConfigurationException:  if the extension is not recognized or the file does not
                                     contain a dictionary
    :raises OSError:                 if the file cannot be opened or read
    :raises ValueError:              if the file contents cannot be parsed
    """
    ext = Path(configfile).suffix.lower()
    with open(configfile) as fd:
        if ext in (".yml", ".yaml"):
            data = yaml.safe_load(fd)
        elif ext == ".json":
            data = json.load(fd)
        else:
            raise ConfigurationException(f"{configfile}: config file format not supported "
                                         "(by extension)")

    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigurationException(f"{configfile}: config data is not a dictionary")
    return data

def merge_config(primary: Mapping, defaults: Mapping) -> dict:
    """
    merge two configurations, returning the result as a new dictionary.  Values in ``primary``
    take precedence; dictionary values found in both are merged recursively.
    """
    out = copy.deepcopy(dict(defaults))
    for key, val in primary.items():
        if isinstance(val, Mapping) and isinstance(out.get(key), Mapping):
            out[key] = merge_config(val, out[key])
        else:
            out[key] = copy.deepcopy(val)
    return out

def resolve_configuration(configfile=None) -> dict:
    """
    return the complete configuration for the service.  The configuration is read from
    ``configfile`` if given; otherwise, it is read from the file named by the CATALOG_CONFIG_FILE
    environment variable, if set.  The result is merged over :py:data:`DEFAULT_CONFIG`.
    """
    if not configfile:
        configfile = os.environ.get(CONFIG_FILE_ENV)
    cfg = {}
    if configfile:
        cfg = load_from_file(configfile)
    return merge_config(cfg, DEFAULT_CONFIG)

_log_handler = None
DEF_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"

def configure_log(logfile=None, level=None, format=None, config=None, addstderr=False):
    """
    configure the root logger to send messages to a file.  If the log file is given as a relative
    path, it is taken to be relative to the ``logdir`` logging parameter (or the current directory
    if not set).

    :param str logfile:    the log file to write to; defaults to the ``logfile`` logging parameter
    :param int   level:    the level of messages to capture; defaults to the ``loglevel`` logging
                           parameter, or INFO
    :param str  format:    the format to use for messages
    :param dict config:    the service configuration; only the ``logging`` parameter is consulted
    :param bool addstderr: if True, also send messages to standard error
    """
    global _log_handler
    if config is None:
        config = {}
    logcfg = config.get("logging", {}) or {}

    if not logfile:
        logfile = logcfg.get("logfile")
    if level is None:
        level = logcfg.get("loglevel", logging.INFO)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ConfigurationException("logging.loglevel: unrecognized level name")
    if not format:
        format = logcfg.get("format", DEF_FORMAT)

    rootlogger = logging.getLogger()
    rootlogger.setLevel(level)

    if logfile:
        if not os.path.isabs(logfile) and logcfg.get("logdir"):
            logfile = os.path.join(logcfg["logdir"], logfile)
        if _log_handler:
            rootlogger.removeHandler(_log_handler)
            _log_handler.close()
        _log_handler = logging.FileHandler(logfile)
        _log_handler.setLevel(logging.DEBUG)
        _log_handler.setFormatter(logging.Formatter(format))
        rootlogger.addHandler(_log_handler)
        rootlogger.info("Logging initialized to %s", logfile)

    if addstderr:
        hdlr = logging.StreamHandler()
        hdlr.setLevel(level)
        hdlr.setFormatter(logging.Formatter(format))
        rootlogger.addHandler(hdlr)
