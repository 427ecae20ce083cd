"""
A web service interface to the :py:class:`~nistoar.catalog.service.CatalogService`.

The service supports the following resource paths (relative to the configured base endpoint):

``GET /search?course_name=...&instructor=...``
    return a JSON array of the course records matching the given filters.  Either parameter may
    be omitted.  The parameter names are fixed regardless of the column names configured for
    the records (``data.name_field``, ``data.instructor_field``).  The response carries a ``Cache-Control`` header and is gzip-compressed if the
    client accepts it.
``GET /stats``
    return the catalog statistics as a JSON object
``GET /``
    return a readiness status message
``LOAD /``
    reload the records from their source (and clear the result cache)
"""
import logging, json, gzip, re
from collections.abc import Mapping, Callable
from typing import List
from urllib.parse import parse_qs
from wsgiref.headers import Headers

from .service import CatalogService, create_catalog_service
from . import system, CatalogException, LoadError

deflog = logging.getLogger(system.system_abbrev).getChild('wsgi')

DEF_BASE_PATH = "/"
DEF_CACHE_CONTROL = "public, max-age=7200"
NAME_PARAM = "course_name"
INSTRUCTOR_PARAM = "instructor"

class Handler(object):
    """
    a default web request handler that also serves as a base class for the handlers specialized
    for the supported resource paths.
    """

    def __init__(self, path: str, wsgienv: Mapping, start_resp: Callable, config: Mapping={},
                 log: logging.Logger=None):
        self._path = path
        self._env = wsgienv
        self._start = start_resp
        self._hdr = Headers([])
        self.cfg = config
        if not log:
            log = deflog
        self.log = log
        self._meth = self._env.get('REQUEST_METHOD', 'GET')

    def send_error(self, code: int, message: str, ashead: bool=None):
        """
        respond to the client with an error of a given code and reason
        :param int code:        the HTTP response code to assign
        :param str message:     the briefly-stated reason to give for the error; this text
                                is sent as the message that accompanies the code in the HTTP
                                response header
        :param bool ashead:     True if this is being sent as if in response to a HEAD request
        """
        return self._send(code, message, None, None, ashead)

    def send_ok(self, content=None, contenttype=None, message="OK", ashead=None):
        """
        respond to the client with a response of success.
        :param content:  the body to return; a str is encoded as UTF-8
                         :type content: str or bytes
        """
        return self._send(200, message, content, contenttype, ashead)

    def send_json(self, data, message="OK", ashead=False):
        """
        Send some data formatted as JSON.
        :param data:     the data to encode in JSON
                         :type data: dict, list, or string
        """
        return self._send(200, message, json.dumps(data, indent=2), "application/json", ashead)

    def send_options(self, allowed_methods: List[str]=None, origin: str=None):
        """
        send a response to a OPTIONS request, as for a CORS preflight request
        :param List[str] allowed_methods:   a list of the HTTP methods that are allowed for request
        :param str                origin:   the origin to allow requests from
        """
        meths = list(allowed_methods or [])
        if 'OPTIONS' not in meths:
            meths.append('OPTIONS')
        self.add_header('Access-Control-Allow-Methods', ", ".join(meths))
        if origin:
            self.add_header('Access-Control-Allow-Origin', origin)
        self.add_header('Access-Control-Allow-Headers', "Content-Type")

        return self.send_ok(message="No Content")

    def _send(self, code, message, content, contenttype, ashead):
        if ashead is None:
            ashead = self._meth.upper() == "HEAD"

        if isinstance(content, str):
            content = content.encode('utf-8')
        if content:
            if not contenttype:
                contenttype = "application/octet-stream"
            self.add_header("Content-Type", contenttype)
            self.add_header("Content-Length", str(len(content)))

        self._start("{0} {1}".format(code, message), self._hdr.items(), None)
        return [content] if content and not ashead else []

    def add_header(self, name, value):
        """
        record a name-value pair to be sent as part of the response header.
        :raises UnicodeEncodeError:  if name or value includes Unicode characters (see PEP 333)
        """
        e = "ISO-8859-1"
        (name.encode(e), value.encode(e))
        self._hdr.add_header(name, value)

    def handle(self):
        """
        handle the request encapsulated in this Handler (at construction time).

        This looks for a Handler method of the form, `do_`METH(), where METH is the HTTP method
        requested (e.g. GET, LOAD, etc.) and calls it with the requested URL path.  If the
        requested method is HEAD and there is no ``do_HEAD()``, ``do_GET()`` is called with
        ``ashead=True``.
        """
        meth_handler = 'do_'+self._meth

        try:
            if hasattr(self, meth_handler):
                return getattr(self, meth_handler)(self._path)
            elif self._meth == "HEAD" and hasattr(self, "do_GET"):
                return self.do_GET(self._path, ashead=True)
            else:
                return self.send_error(405, self._meth + " not supported on this resource")
        except Exception as ex:
            self.log.exception("Unexpected failure: "+str(ex))
            return self.send_error(500, "Server failure")

class NotFoundHandler(Handler):
    """
    a request Handler that always returns 404 Not Found.
    """
    def do_GET(self, path, ashead=False):
        return self.send_error(404, "Not Found", ashead=ashead)

    def do_OPTIONS(self, path):
        return self.send_options(["GET"])


class CatalogHandler(Handler):
    """
    Base Handler class for catalog requests
    """

    def __init__(self, service: CatalogService, path: str, wsgienv: Mapping, start_resp: Callable,
                 config: Mapping={}, log: logging.Logger=None):
        super(CatalogHandler, self).__init__(path, wsgienv, start_resp, config, log)
        self.svc = service
        self._qp = parse_qs(self._env.get('QUERY_STRING', ""))

    def get_param(self, name: str) -> str:
        """
        return the (first) value of the query parameter with the given name, or an empty string
        if the client did not provide it.
        """
        vals = self._qp.get(name)
        return vals[0] if vals else ""

    def accepts_gzip(self) -> bool:
        """
        return True if the client indicated that it can accept a gzip-encoded response
        """
        encs = self._env.get('HTTP_ACCEPT_ENCODING', "")
        encs = [e.split(';')[0].strip().lower() for e in encs.split(',')]
        return "gzip" in encs

    def do_OPTIONS(self, path):
        return self.send_options(["GET"], origin="*")


class SearchHandler(CatalogHandler):
    """
    Handle search queries (i.e. requests to "/search")
    """

    def do_GET(self, path, ashead=False):
        name = self.get_param(NAME_PARAM)
        instr = self.get_param(INSTRUCTOR_PARAM)

        try:
            recs = self.svc.search(name, instr)
        except CatalogException as ex:
            self.log.error("Failed to execute search (%r, %r): %s", name, instr, str(ex))
            return self.send_error(500, "Server error")

        body = json.dumps([r.to_dict() for r in recs], indent=2).encode('utf-8')
        self.add_header("Cache-Control", self.cfg.get("cache_control", DEF_CACHE_CONTROL))
        if self.cfg.get("gzip", True):
            self.add_header("Vary", "Accept-Encoding")
            if self.accepts_gzip():
                body = gzip.compress(body)
                self.add_header("Content-Encoding", "gzip")

        return self.send_ok(body, "application/json", ashead=ashead)


class StatsHandler(CatalogHandler):
    """
    Handle requests for catalog statistics (i.e. "/stats")
    """

    def do_GET(self, path, ashead=False):
        return self.send_json(self.svc.stats(), ashead=ashead)


class ReadyHandler(CatalogHandler):
    """
    Handle requests on the base endpoint:  GET returns the service status; LOAD reloads the
    records.
    """

    def do_GET(self, path, ashead=False):
        return self.send_json(self.svc.status(), ashead=ashead)

    def do_LOAD(self, path):
        try:
            count = self.svc.reload()
        except LoadError as ex:
            self.log.error("Reload failed: %s", str(ex))
            return self.send_error(500, "Reload failed")

        self.log.info("Reloaded %d records upon request", count)
        return self.send_json({"record_count": count}, message="Reloaded")


class CatalogApp(object):
    """
    a WSGI application that exposes a catalog search service
    """

    def __init__(self, config: Mapping, service: CatalogService=None, log: logging.Logger=None,
                 base_ep: str=None):
        """
        initialize the app.  If a service is not provided, one will be created from the
        configuration and started (i.e. its records loaded).
        :param Mapping config:  the collected configuration for the App
        :param CatalogService service:  the (started) service to expose
        :param Logger log:      the Logger to send messages to
        :param str base_ep:     the resource path to assume as the base of all services provided by
                                this App.  If not provided, a value set in the configuration is
                                used (which itself defaults to "").
        :raises LoadError:      if the service could not be started
        """
        if not log:
            log = deflog
        self.log = log
        self.cfg = config
        if base_ep is None:
            base_ep = self.cfg.get('base_endpoint', DEF_BASE_PATH)
        self.base_ep = base_ep.strip('/')

        if not service:
            service = create_catalog_service(self.cfg).start()
        self.svc = service

        self.handlers = {
            "":       ReadyHandler,
            "search": SearchHandler,
            "stats":  StatsHandler
        }

    def create_handler(self, env: Mapping, start_resp: Callable, path: str) -> Handler:
        """
        return a handler instance to handle a particular request to a path
        """
        hdlrcls = self.handlers.get(path)
        if not hdlrcls:
            return NotFoundHandler(path, env, start_resp, log=self.log)
        return hdlrcls(self.svc, path, env, start_resp, self.cfg.get('web', {}) or {},
                       self.log)

    def handle_request(self, env, start_resp):
        path = re.sub(r'/+', '/', env.get('PATH_INFO', '/'))
        if self.base_ep:
            be = f"/{self.base_ep}/"
            if path.startswith(be):
                path = path[len(be):]
            elif path.rstrip('/') == be.rstrip('/'):
                path = ''
            else:
                return Handler(path, env, start_resp, log=self.log).send_error(404, "Not Found")

        return self.create_handler(env, start_resp, path.strip('/')).handle()

    def __call__(self, env, start_resp):
        return self.handle_request(env, start_resp)

app = CatalogApp
