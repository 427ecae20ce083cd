import os, pdb
from pathlib import Path
import unittest as test

from nistoar.catalog import search
from nistoar.catalog.records import Record, RecordStore

testdir = Path(__file__).parents[0]
coursesfile = testdir / 'data' / "courses.csv"

class TestMatches(test.TestCase):

    def test_matches(self):
        rec = Record({"course_name": "Algorithms", "instructor": "Lee"})
        self.assertTrue(search.matches(rec, "", ""))
        self.assertTrue(search.matches(rec, "Algo", ""))
        self.assertTrue(search.matches(rec, "rithm", "Le"))
        self.assertFalse(search.matches(rec, "algo", ""))
        self.assertFalse(search.matches(rec, "Algo", "Chen"))

    def test_missing_fields(self):
        rec = Record({"credits": "3"})
        self.assertTrue(search.matches(rec, "", ""))
        self.assertFalse(search.matches(rec, "A", ""))
        self.assertFalse(search.matches(rec, "", "L"))

class TestSearchEngine(test.TestCase):

    def setUp(self):
        self.store = RecordStore()
        self.store.replace([{"course_name": "Algorithms", "instructor": "Lee"},
                            {"course_name": "Data Structures", "instructor": "Chen"}])
        self.eng = search.SearchEngine(self.store)

    def test_examples(self):
        self.assertEqual(self.eng.search("Algo", ""),
                         [{"course_name": "Algorithms", "instructor": "Lee"}])
        self.assertEqual(self.eng.search("", "Ch"),
                         [{"course_name": "Data Structures", "instructor": "Chen"}])
        self.assertEqual(self.eng.search("zzz", ""), [])
        self.assertEqual(self.eng.scan_count, 3)

    def test_all(self):
        out = self.eng.search("", "")
        self.assertEqual(out, list(self.store.snapshot()))
        self.assertIsInstance(out, list)
        self.assertEqual(self.eng.search(None, None), out)
        self.assertEqual(self.eng.search(), out)

    def test_sound_and_complete(self):
        self.store.load(coursesfile)
        recs = self.store.snapshot()
        for name, instr in [("Alg", ""), ("", "Lee"), ("Data", "Lee"), ("a", "e"), ("", "unknown"),
                            ("Topology", "Lee")]:
            out = self.eng.search(name, instr)
            expected = [r for r in recs if name in r.name and instr in r.instructor]
            self.assertEqual(out, expected)
            for r in out:
                self.assertIn(name, r.name)
                self.assertIn(instr, r.instructor)

        self.assertEqual([r.name for r in self.eng.search("Alg", "")],
                         ["Algorithms", "Linear Algebra", "Algebraic Topology"])

    def test_case_sensitive(self):
        self.assertEqual(self.eng.search("algorithms", ""), [])
        self.assertEqual(self.eng.search("", "lee"), [])

    def test_empty_store(self):
        eng = search.SearchEngine(RecordStore())
        self.assertEqual(eng.search("", ""), [])
        self.assertEqual(eng.search("A", ""), [])


if __name__ == '__main__':
    test.main()
