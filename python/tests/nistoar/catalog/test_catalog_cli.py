import os, json, pdb, logging, tempfile
from io import StringIO
from pathlib import Path
from unittest import mock
import unittest as test

import requests

from nistoar.catalog import cli, config

testdir = Path(__file__).parents[0]
datadir = testdir / 'data'
coursesfile = datadir / "courses.csv"

class TestCLI(test.TestCase):

    def setUp(self):
        self.tf = tempfile.TemporaryDirectory(prefix="_test_cli.")
        self.workdir = Path(self.tf.name)
        self.rootlog = logging.getLogger()
        self.handlers = list(self.rootlog.handlers)
        self.level = self.rootlog.level

    def tearDown(self):
        for h in list(self.rootlog.handlers):
            if h not in self.handlers:
                self.rootlog.removeHandler(h)
                h.close()
        self.rootlog.setLevel(self.level)
        self.tf.cleanup()

    def run_main(self, *args):
        with mock.patch('sys.stdout', new_callable=StringIO) as out:
            cli.main("catsearch", ["-q"] + list(args))
        return json.loads(out.getvalue())

    def test_define_options(self):
        opts = cli.define_options("catsearch").parse_args("-n Algo -i Lee".split())
        self.assertEqual(opts.name, "Algo")
        self.assertEqual(opts.instructor, "Lee")
        self.assertIsNone(opts.prefix)
        self.assertFalse(opts.stats)

    def test_search(self):
        out = self.run_main("-s", str(coursesfile), "-n", "Alg")
        self.assertEqual([r["course_name"] for r in out],
                         ["Algorithms", "Linear Algebra", "Algebraic Topology"])

        out = self.run_main("-s", str(coursesfile), "-i", "Lee")
        self.assertEqual([r["course_name"] for r in out], ["Algorithms", "Data Mining"])

        out = self.run_main("-s", str(coursesfile))
        self.assertEqual(len(out), 5)

    def test_stats(self):
        self.assertEqual(self.run_main("-s", str(coursesfile), "--stats"), {"record_count": 5})

    def test_prefix(self):
        out = self.run_main("-s", str(coursesfile), "-p", "Data")
        self.assertEqual([r["course_name"] for r in out], ["Data Structures", "Data Mining"])

        out = self.run_main("-s", str(coursesfile), "-p", "Che", "-f", "instructor")
        self.assertEqual([r["course_name"] for r in out], ["Data Structures", "Linear Algebra"])

    def test_key(self):
        out = self.run_main("-s", str(coursesfile), "-k", "Lee", "-f", "instructor")
        self.assertEqual(out["course_name"], "Data Mining")
        self.assertIsNone(self.run_main("-s", str(coursesfile), "-k", "Goob"))

        with self.assertRaises(cli.Failure) as cm:
            self.run_main("-s", str(coursesfile), "-k", "Lee", "-f", "goob")
        self.assertEqual(cm.exception.exitcode, 1)

    def test_config_file(self):
        cfgfile = self.workdir / "catalog.yml"
        cfgfile.write_text(f"data:\n  source: {coursesfile}\ncache:\n  factory: redis\n")
        self.assertEqual(self.run_main("-c", str(cfgfile), "--stats"), {"record_count": 5})

    def test_logfile(self):
        logfile = self.workdir / "cli.log"
        self.run_main("-s", str(coursesfile), "-l", str(logfile), "--stats")
        self.assertTrue(logfile.exists())

    def test_load_failure(self):
        with self.assertRaises(cli.Failure) as cm:
            self.run_main("-s", str(self.workdir / "goob.csv"))
        self.assertEqual(cm.exception.exitcode, 2)

    def test_config_failure(self):
        with self.assertRaises(cli.Failure) as cm:
            self.run_main("-c", str(self.workdir / "goob.yml"))
        self.assertEqual(cm.exception.exitcode, 1)

        cfgfile = self.workdir / "bad.yml"
        cfgfile.write_text("data: [\n")
        with self.assertRaises(cli.Failure) as cm:
            self.run_main("-c", str(cfgfile))
        self.assertEqual(cm.exception.exitcode, 3)

        cfgfile = self.workdir / "bad.json"
        cfgfile.write_text("{")
        with self.assertRaises(cli.Failure) as cm:
            self.run_main("-c", str(cfgfile))
        self.assertEqual(cm.exception.exitcode, 3)

    @mock.patch('requests.request')
    def test_trigger(self, req):
        req.return_value = mock.Mock(status_code=200, reason="Reloaded")
        cli.main("catsearch", ["-q", "-t", "http://localhost:9090/catalog/"])
        req.assert_called_once_with("LOAD", "http://localhost:9090/catalog/")

    @mock.patch('requests.request')
    def test_trigger_fails(self, req):
        req.return_value = mock.Mock(status_code=405, reason="Method Not Allowed")
        with self.assertRaises(cli.Failure) as cm:
            cli.main("catsearch", ["-q", "-t", "http://localhost:9090/"])
        self.assertEqual(cm.exception.exitcode, 1)

        req.return_value = mock.Mock(status_code=500, reason="Reload failed")
        with self.assertRaises(cli.Failure):
            cli.main("catsearch", ["-q", "-t", "http://localhost:9090/"])

        req.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(cli.Failure) as cm:
            cli.main("catsearch", ["-q", "-t", "http://localhost:9090/"])
        self.assertIsInstance(cm.exception.cause, requests.ConnectionError)


if __name__ == '__main__':
    test.main()
