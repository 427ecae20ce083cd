"""
a command-line interface to the catalog search service.  The :py:func:`main` function provides the
implementation; see also ``scripts/catsearch.py``.

The command loads the catalog records and runs a query against them, printing the results as JSON.
Alternatively, it can trigger a running web service to reload its records.
"""
import argparse, sys, os, re, logging, json
from argparse import ArgumentParser

import yaml, requests

from . import config, CatalogException, ConfigurationException, LoadError, IndexBuildError
from .cache import InMemoryCacheBackend
from .service import CatalogService

prog = re.sub(r'\.py$', '', os.path.basename(sys.argv[0]))

class Failure(CatalogException):
    """
    an exception indicating that the command failed and should exit with a given exit code
    """
    def __init__(self, message, exitcode=1, cause=None):
        super(Failure, self).__init__(message)
        self.exitcode = exitcode
        self.cause = cause

def define_options(progname):
    """
    return an ArgumentParser instance that is configured with options
    for the command-line interface.
    """
    description = "Search an in-memory course catalog loaded from a CSV file, or trigger a " \
                  "running catalog service to reload its records"
    epilog = "If none of -p, -k, --stats, or -t is given, a substring search is run using the " \
             "-n and -i filters (both optional)."

    parser = ArgumentParser(progname, None, description, epilog)

    parser.add_argument('-c', '--config-file', type=str, dest='cfgfile', metavar='FILE',
                        help="a file containing the configuration to use.  If not provided, the "+
                             config.CONFIG_FILE_ENV+" environment variable will be consulted.")
    parser.add_argument('-s', '--source', type=str, dest='source', metavar='CSV',
                        help="the CSV file to load course records from; this overrides the "+
                             "'data.source' config property")
    parser.add_argument('-n', '--name', type=str, dest='name', metavar='TEXT', default="",
                        help="select courses whose name contains TEXT")
    parser.add_argument('-i', '--instructor', type=str, dest='instructor', metavar='TEXT',
                        default="", help="select courses whose instructor contains TEXT")
    parser.add_argument('-p', '--prefix', type=str, dest='prefix', metavar='TEXT',
                        help="list the courses whose FIELD value starts with TEXT")
    parser.add_argument('-k', '--key', type=str, dest='key', metavar='TEXT',
                        help="show the course whose FIELD value is exactly TEXT")
    parser.add_argument('-f', '--field', type=str, dest='field', metavar='FIELD',
                        help="the field to look up with -p or -k (default: the course name field)")
    parser.add_argument('--stats', action='store_true', dest='stats',
                        help="print the catalog statistics")
    parser.add_argument('-t', '--trigger-url', type=str, dest='trigrurl', metavar='URL',
                        help="instead of searching locally, request that the catalog web service "+
                             "at URL reload its records")
    parser.add_argument('-l', '--logfile', action='store', dest='logfile', type=str, metavar='FILE',
                        help="write messages that normally go to standard error to FILE as well.  "+
                             "If -q is also specified, the messages will only go to the logfile")
    parser.add_argument('-v', '--verbose', action='store_true', dest='verbose',
                        help="print more (debug) messages to standard error and/or the log file")
    parser.add_argument('-q', '--quiet', action='store_true', dest='quiet',
                        help="suppress all error and warning messages to standard error")
    return parser

def request_reload(svcep):
    """
    trigger a reload of the records in a running catalog web service
    """
    try:
        resp = requests.request("LOAD", svcep)
    except requests.RequestException as ex:
        raise Failure(f"Failed to trigger reload: {str(ex)}", 1, ex) from ex

    if resp.status_code == 405:
        raise Failure("Reload API appears not to be supported (check trigger URL)")
    if resp.status_code >= 300 or resp.status_code < 200:
        raise Failure(f"Unexpected catalog server response: {resp.reason} ({resp.status_code})")

def main(progname, args):
    """
    load the catalog and execute the requested query (or trigger a remote reload)
    """
    parser = define_options(progname)
    opts = parser.parse_args(args)

    rootlog = logging.getLogger()
    level = (opts.verbose and logging.DEBUG) or logging.INFO
    if opts.logfile:
        # write messages to a log file
        fmt = "%(asctime)s " + progname + ".%(name)s %(levelname)s: %(message)s"
        hdlr = logging.FileHandler(opts.logfile)
        hdlr.setFormatter(logging.Formatter(fmt))
        hdlr.setLevel(logging.DEBUG)
        rootlog.addHandler(hdlr)
        rootlog.setLevel(level)

    # configure a default log handler
    if not opts.quiet:
        fmt = progname + ": %(levelname)s: %(message)s"
        hdlr = logging.StreamHandler(sys.stderr)
        hdlr.setFormatter(logging.Formatter(fmt))
        hdlr.setLevel(logging.WARNING if not opts.verbose else logging.DEBUG)
        rootlog.addHandler(hdlr)
        rootlog.setLevel(level)
    elif not rootlog.handlers:
        rootlog.addHandler(logging.NullHandler())

    if opts.trigrurl:
        request_reload(opts.trigrurl)
        return

    cfg = read_config(opts.cfgfile)
    if opts.source:
        cfg.setdefault('data', {})['source'] = opts.source

    try:
        # a local run needs no shared cache
        svc = CatalogService(cfg, InMemoryCacheBackend())
        svc.start()
    except ConfigurationException as ex:
        raise Failure(str(ex)) from ex
    except LoadError as ex:
        raise Failure(str(ex), 2, ex) from ex

    try:
        if opts.stats:
            out = svc.stats()
        elif opts.prefix is not None:
            idx = svc.build_prefix_index(opts.field)
            out = [r.to_dict() for r in idx.lookup_prefix(opts.prefix)]
        elif opts.key is not None:
            rec = svc.build_key_index(opts.field).lookup(opts.key)
            out = rec.to_dict() if rec is not None else None
        else:
            out = [r.to_dict() for r in svc.search(opts.name, opts.instructor)]
    except IndexBuildError as ex:
        raise Failure("Unable to index records: "+str(ex), 1, ex) from ex

    print(json.dumps(out, indent=2, ensure_ascii=False))

def read_config(filepath=None):
    """
    read the configuration from a file having the given filepath (or from the file set by the
    environment), merged with the defaults.

    :except Failure:  if the contents contains syntax or format errors or the file cannot be read
    """
    try:
        return config.resolve_configuration(filepath)
    except EnvironmentError as ex:
        raise Failure("problem reading config file, {0}: {1}"
                      .format(filepath or os.environ.get(config.CONFIG_FILE_ENV), ex.strerror)) from ex
    except ConfigurationException as ex:
        raise Failure(str(ex)) from ex
    except (ValueError, yaml.YAMLError) as ex:
        raise Failure("Config parsing error: "+str(ex), 3, ex) from ex
