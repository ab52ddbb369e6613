from pathlib import Path
import tempfile
import time
import unittest

from domain.models import LogRecord, RecipeKind
from domain.recipes import (
    InvalidRecipeError,
    constant_current,
    constant_pressure,
    parse_descriptor,
    ramp,
    read_descriptor,
)
from domain.sleeper import InterruptibleSleeper
from domain.validation import read_records, records_match, records_mismatch


class ScheduleTests(unittest.TestCase):
    def test_constant_pressure_holds_pressure_and_ramps_current(self):
        step = constant_pressure(20)
        self.assertEqual([step(i) for i in range(3)], [(120, 0), (120, 2), (120, 4)])

    def test_constant_current_pressure_floors_at_ten(self):
        step = constant_current(30)
        self.assertEqual(step(0), (50, 80))
        self.assertEqual(step(5), (40, 80))
        self.assertEqual(step(20), (10, 80))
        self.assertEqual(step(40), (10, 80))

    def test_ramp_caps_pressure_not_current(self):
        step = ramp(60)
        self.assertEqual(step(3), (30, 120))
        self.assertEqual(step(15), (100, 360))

    def test_ramp_rejects_small_part_size(self):
        with self.assertRaisesRegex(InvalidRecipeError, "part size below minimum"):
            ramp(40)
        with self.assertRaisesRegex(InvalidRecipeError, "part size below minimum"):
            ramp(50)


class DescriptorTests(unittest.TestCase):
    def test_parses_each_kind(self):
        d = parse_descriptor("ramp_60,Ramp,60\n")
        self.assertEqual(d.reference_name, "ramp_60")
        self.assertIs(d.kind, RecipeKind.RAMP)
        self.assertEqual(d.part_size, 60)
        self.assertIs(parse_descriptor("a,ConstantPressure,1").kind, RecipeKind.CONSTANT_PRESSURE)
        self.assertIs(parse_descriptor("a,ConstantCurrent,1").kind, RecipeKind.CONSTANT_CURRENT)

    def test_kind_match_is_exact(self):
        with self.assertRaisesRegex(InvalidRecipeError, "unknown recipe kind 'ramp'"):
            parse_descriptor("a,ramp,60")

    def test_rejects_bad_part_size_and_field_count(self):
        with self.assertRaisesRegex(InvalidRecipeError, "not an integer"):
            parse_descriptor("a,Ramp,sixty")
        with self.assertRaisesRegex(InvalidRecipeError, "expected 3 fields"):
            parse_descriptor("a,Ramp")
        with self.assertRaises(InvalidRecipeError):
            parse_descriptor(",Ramp,60")

    def test_fields_are_not_trimmed_or_loosely_parsed(self):
        with self.assertRaisesRegex(InvalidRecipeError, "unknown recipe kind ' Ramp'"):
            parse_descriptor("a, Ramp,60")
        for raw in ("1_0", "\u0666\u0660", " 60", "6 0", ""):
            with self.assertRaisesRegex(InvalidRecipeError, "not an integer"):
                parse_descriptor(f"a,Ramp,{raw}")
        self.assertEqual(parse_descriptor("a,Ramp,+60").part_size, 60)
        self.assertEqual(parse_descriptor("a,Ramp,-3").part_size, -3)

    def test_reads_only_first_line(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "recipe.txt"
            path.write_text("ref,ConstantCurrent,12\nignored,Bogus,x\n")
            d = read_descriptor(path)
            self.assertEqual((d.reference_name, d.part_size), ("ref", 12))

            empty = Path(tmpdir) / "empty.txt"
            empty.write_text("")
            with self.assertRaisesRegex(InvalidRecipeError, "empty"):
                read_descriptor(empty)


class ValidationTests(unittest.TestCase):
    def test_identical_records_match(self):
        records = [LogRecord(0, 10, 10), LogRecord(1, 20, 20)]
        self.assertTrue(records_match(list(records), list(records)))

    def test_length_difference_never_matches(self):
        reference = [LogRecord(0, 10, 10), LogRecord(1, 20, 20)]
        self.assertFalse(records_match(reference[:1], reference))
        self.assertFalse(records_match(reference + [LogRecord(2, 30, 30)], reference))
        self.assertFalse(records_match([], reference))

    def test_lenient_rule_needs_every_field_to_differ(self):
        expected = LogRecord(0, 10, 10)
        self.assertFalse(records_mismatch(LogRecord(0, 99, 99), expected))
        self.assertFalse(records_mismatch(LogRecord(5, 10, 99), expected))
        self.assertTrue(records_mismatch(LogRecord(1, 11, 11), expected))

    def test_strict_rule_flags_any_difference(self):
        expected = LogRecord(0, 10, 10)
        self.assertTrue(records_mismatch(LogRecord(0, 10, 11), expected, strict=True))
        self.assertFalse(records_mismatch(LogRecord(0, 10, 10), expected, strict=True))
        self.assertFalse(records_match([LogRecord(0, 10, 11)], [expected], strict=True))
        self.assertTrue(records_match([LogRecord(0, 10, 11)], [expected]))

    def test_read_records_in_file_order(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "ref.csv"
            path.write_text("1,20,20\n0,10,10\n\n")
            self.assertEqual(read_records(path), [LogRecord(1, 20, 20), LogRecord(0, 10, 10)])

    def test_read_records_rejects_malformed_lines(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "bad.csv"
            path.write_text("0,10,10\n1,20")
            with self.assertRaisesRegex(ValueError, "line 2"):
                read_records(path)
            path.write_text("0,ten,10")
            with self.assertRaisesRegex(ValueError, "non-integer"):
                read_records(path)


class SleeperTests(unittest.TestCase):
    def test_interruptible_sleeper_raises_when_flagged(self):
        sleeper = InterruptibleSleeper(lambda: True, poll_interval=0.01)
        with self.assertRaises(InterruptedError):
            sleeper.sleep(1.0)

    def test_interruptible_sleeper_waits(self):
        sleeper = InterruptibleSleeper(lambda: False, poll_interval=0.01)
        started = time.time()
        sleeper.sleep(0.05)
        self.assertGreaterEqual(time.time() - started, 0.04)


if __name__ == "__main__":
    unittest.main()
