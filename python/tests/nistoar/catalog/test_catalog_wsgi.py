import os, json, pdb, logging, tempfile, gzip, shutil
from collections import OrderedDict
from pathlib import Path
from unittest import mock
import unittest as test

from nistoar.catalog import wsgi, service, config, cache, LoadError

testdir = Path(__file__).parents[0]
datadir = testdir / 'data'
coursesfile = datadir / "courses.csv"
courses2file = datadir / "courses2.csv"

tmpdir = tempfile.TemporaryDirectory(prefix="_test_wsgi.")
loghdlr = None
rootlog = None
def setUpModule():
    global loghdlr
    global rootlog
    rootlog = logging.getLogger()
    loghdlr = logging.FileHandler(os.path.join(tmpdir.name,"test_wsgi.log"))
    loghdlr.setLevel(logging.DEBUG)
    loghdlr.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    rootlog.addHandler(loghdlr)

def tearDownModule():
    global loghdlr
    if loghdlr:
        if rootlog:
            rootlog.removeHandler(loghdlr)
            loghdlr.flush()
            loghdlr.close()
        loghdlr = None
    tmpdir.cleanup()

class TestCatalogApp(test.TestCase):

    def start(self, status, headers=None, extup=None):
        self.resp.append(status)
        for head in headers:
            self.resp.append("{0}: {1}".format(head[0], head[1]))

    def body2data(self, body):
        return json.loads(b"".join(body).decode(), object_pairs_hook=OrderedDict)

    def header(self, name):
        name = name.lower() + ":"
        for line in self.resp[1:]:
            if line.lower().startswith(name):
                return line.split(":", 1)[1].strip()
        return None

    def setUp(self):
        self.source = Path(tmpdir.name) / "courses.csv"
        shutil.copy(coursesfile, self.source)
        self.cfg = config.merge_config({"data": {"source": str(self.source)}}, config.DEFAULT_CONFIG)
        self.svc = service.CatalogService(self.cfg, cache.InMemoryCacheBackend()).start()
        self.app = wsgi.app(self.cfg, self.svc)
        self.resp = []

    def test_create_app(self):
        app = wsgi.CatalogApp(self.cfg)
        self.assertEqual(app.svc.store.count(), 5)

        cfg = config.merge_config({"data": {"source": "/goob/courses.csv"}}, config.DEFAULT_CONFIG)
        with self.assertRaises(LoadError):
            wsgi.CatalogApp(cfg)

    def test_search(self):
        req = {
            "REQUEST_METHOD": "GET",
            "PATH_INFO": "/search",
            "QUERY_STRING": "course_name=Alg"
        }
        body = self.app(req, self.start)
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.header("Content-Type"), "application/json")
        self.assertEqual(self.header("Cache-Control"), "public, max-age=7200")
        self.assertIsNone(self.header("Content-Encoding"))
        data = self.body2data(body)
        self.assertEqual([r["course_name"] for r in data],
                         ["Algorithms", "Linear Algebra", "Algebraic Topology"])
        self.assertEqual(list(data[0].keys()), "course_name instructor department credits".split())

    def test_search_both(self):
        req = {
            "REQUEST_METHOD": "GET",
            "PATH_INFO": "/search/",
            "QUERY_STRING": "course_name=Data&instructor=Lee"
        }
        data = self.body2data(self.app(req, self.start))
        self.assertEqual([r["course_name"] for r in data], ["Data Mining"])

    def test_search_all(self):
        req = {
            "REQUEST_METHOD": "GET",
            "PATH_INFO": "/search"
        }
        data = self.body2data(self.app(req, self.start))
        self.assertEqual(len(data), 5)

        self.resp = []
        req["QUERY_STRING"] = "course_name=zzz"
        self.assertEqual(self.body2data(self.app(req, self.start)), [])

    def test_search_unicode(self):
        self.svc.store.replace([{"course_name": "数据结构", "instructor": "陈"}])
        self.svc.cache.flush_all()
        req = {
            "REQUEST_METHOD": "GET",
            "PATH_INFO": "/search",
            "QUERY_STRING": "course_name=%E6%95%B0%E6%8D%AE"
        }
        data = self.body2data(self.app(req, self.start))
        self.assertEqual(data, [{"course_name": "数据结构", "instructor": "陈"}])

    def test_search_custom_fields(self):
        source = Path(tmpdir.name) / "courses_zh.csv"
        source.write_text("课程名称,授课老师\nAlgorithms,Lee\nCompilers,Aho\n", encoding="utf-8")
        cfg = config.merge_config({"data": {"source": str(source), "name_field": "课程名称",
                                            "instructor_field": "授课老师"}},
                                  config.DEFAULT_CONFIG)
        svc = service.CatalogService(cfg, cache.InMemoryCacheBackend()).start()
        app = wsgi.app(cfg, svc)

        req = {
            "REQUEST_METHOD": "GET",
            "PATH_INFO": "/search",
            "QUERY_STRING": "course_name=Algo"
        }
        data = self.body2data(app(req, self.start))
        self.assertEqual(data, [{"课程名称": "Algorithms", "授课老师": "Lee"}])

        self.resp = []
        req["QUERY_STRING"] = "instructor=Aho"
        data = self.body2data(app(req, self.start))
        self.assertEqual([r["课程名称"] for r in data], ["Compilers"])

    def test_search_gzip(self):
        req = {
            "REQUEST_METHOD": "GET",
            "PATH_INFO": "/search",
            "QUERY_STRING": "instructor=Lee",
            "HTTP_ACCEPT_ENCODING": "deflate, gzip;q=1.0"
        }
        body = self.app(req, self.start)
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.header("Content-Encoding"), "gzip")
        self.assertEqual(self.header("Vary"), "Accept-Encoding")
        content = b"".join(body)
        self.assertEqual(int(self.header("Content-Length")), len(content))
        data = json.loads(gzip.decompress(content))
        self.assertEqual([r["course_name"] for r in data], ["Algorithms", "Data Mining"])

    def test_search_nogzip(self):
        self.cfg["web"]["gzip"] = False
        self.cfg["web"]["cache_control"] = "no-cache"
        app = wsgi.CatalogApp(self.cfg, self.svc)
        req = {
            "REQUEST_METHOD": "GET",
            "PATH_INFO": "/search",
            "HTTP_ACCEPT_ENCODING": "gzip"
        }
        data = self.body2data(app(req, self.start))
        self.assertEqual(len(data), 5)
        self.assertIsNone(self.header("Content-Encoding"))
        self.assertEqual(self.header("Cache-Control"), "no-cache")

    def test_search_head(self):
        req = {
            "REQUEST_METHOD": "HEAD",
            "PATH_INFO": "/search"
        }
        body = self.app(req, self.start)
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(body, [])
        self.assertGreater(int(self.header("Content-Length")), 0)

    def test_stats(self):
        req = {
            "REQUEST_METHOD": "GET",
            "PATH_INFO": "/stats"
        }
        body = self.app(req, self.start)
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.body2data(body), {"record_count": 5})

    def test_ready(self):
        req = {
            "REQUEST_METHOD": "GET",
            "PATH_INFO": "/"
        }
        data = self.body2data(self.app(req, self.start))
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(data["status"], "ready")
        self.assertEqual(data["record_count"], 5)

    def test_load(self):
        req = {
            "REQUEST_METHOD": "GET",
            "PATH_INFO": "/search",
            "QUERY_STRING": "course_name=Algorithms"
        }
        data = self.body2data(self.app(req, self.start))
        self.assertEqual(data[0]["instructor"], "Lee")

        shutil.copy(courses2file, self.source)
        self.resp = []
        body = self.app({"REQUEST_METHOD": "LOAD", "PATH_INFO": "/"}, self.start)
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.body2data(body), {"record_count": 2})

        self.resp = []
        data = self.body2data(self.app(req, self.start))
        self.assertEqual(data[0]["instructor"], "Tarjan")

    def test_load_fails(self):
        os.remove(self.source)
        body = self.app({"REQUEST_METHOD": "LOAD", "PATH_INFO": "/"}, self.start)
        self.assertIn("500 ", self.resp[0])
        self.assertEqual(self.svc.store.count(), 5)

    def test_not_found(self):
        body = self.app({"REQUEST_METHOD": "GET", "PATH_INFO": "/goob"}, self.start)
        self.assertIn("404 ", self.resp[0])
        self.assertEqual(body, [])
        self.assertIsNone(self.header("Content-Type"))

        self.resp = []
        body = self.app({"REQUEST_METHOD": "OPTIONS", "PATH_INFO": "/goob"}, self.start)
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.header("Access-Control-Allow-Methods"), "GET, OPTIONS")
        self.assertIsNone(self.header("Access-Control-Allow-Origin"))

    def test_bad_method(self):
        body = self.app({"REQUEST_METHOD": "POST", "PATH_INFO": "/search"}, self.start)
        self.assertIn("405 ", self.resp[0])

        self.resp = []
        body = self.app({"REQUEST_METHOD": "LOAD", "PATH_INFO": "/search"}, self.start)
        self.assertIn("405 ", self.resp[0])

    def test_server_error(self):
        with mock.patch.object(self.svc, "stats", side_effect=RuntimeError("oops")):
            body = self.app({"REQUEST_METHOD": "GET", "PATH_INFO": "/stats"}, self.start)
        self.assertIn("500 ", self.resp[0])

    def test_options(self):
        body = self.app({"REQUEST_METHOD": "OPTIONS", "PATH_INFO": "/search"}, self.start)
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.header("Access-Control-Allow-Origin"), "*")
        self.assertEqual(self.header("Access-Control-Allow-Methods"), "GET, OPTIONS")

    def test_base_ep(self):
        app = wsgi.CatalogApp(self.cfg, self.svc, base_ep="/catalog/api")
        body = app({"REQUEST_METHOD": "GET", "PATH_INFO": "/catalog/api/stats"}, self.start)
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.body2data(body), {"record_count": 5})

        self.resp = []
        body = app({"REQUEST_METHOD": "GET", "PATH_INFO": "/catalog/api"}, self.start)
        self.assertIn("200 ", self.resp[0])
        self.assertEqual(self.body2data(body)["status"], "ready")

        self.resp = []
        body = app({"REQUEST_METHOD": "GET", "PATH_INFO": "/stats"}, self.start)
        self.assertIn("404 ", self.resp[0])


if __name__ == '__main__':
    test.main()
