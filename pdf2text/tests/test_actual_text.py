import unittest

from pypdf.generic import (
    DictionaryObject,
    NameObject,
    NumberObject,
    TextStringObject,
)

from pdf2text.extractors.pdf.actual_text import ActualTextTracker, resolve_actual_text

tc = unittest.TestCase()


def _properties(value) -> DictionaryObject:
    properties = DictionaryObject()
    properties[NameObject("/ActualText")] = value
    return properties


class _BrokenProperties:
    def get(self, key):
        raise KeyError(key)


def test_resolve_actual_text() -> None:
    tc.assertEqual("fi", resolve_actual_text(_properties(TextStringObject("fi"))))
    tc.assertEqual("", resolve_actual_text(_properties(TextStringObject(""))))
    tc.assertEqual("plain", resolve_actual_text({"/ActualText": "plain"}))


def test_resolve_actual_text_absent_or_invalid() -> None:
    tc.assertIsNone(resolve_actual_text(None))
    tc.assertIsNone(resolve_actual_text(DictionaryObject()))
    tc.assertIsNone(resolve_actual_text(_properties(NumberObject(3))))
    tc.assertIsNone(resolve_actual_text(_BrokenProperties()))


def test_tracker_opens_and_closes_region() -> None:
    tracker = ActualTextTracker()
    tc.assertFalse(tracker.active)

    # BDC pushed the region to depth 1
    tc.assertEqual("R", tracker.begin_marked_content(1, {"/ActualText": "R"}))
    tc.assertTrue(tracker.active)
    tc.assertTrue(tracker.is_suppressed(1))

    # EMC pops back to depth 0
    tracker.end_marked_content(0)
    tc.assertFalse(tracker.active)
    tc.assertFalse(tracker.is_suppressed(0))


def test_tracker_ignores_regions_without_actual_text() -> None:
    tracker = ActualTextTracker()
    tc.assertIsNone(tracker.begin_marked_content(0, None))
    tc.assertIsNone(tracker.begin_marked_content(1, {"/MCID": 3}))
    tc.assertFalse(tracker.active)
    tc.assertFalse(tracker.is_suppressed(2))


def test_tracker_ignores_nested_actual_text() -> None:
    tracker = ActualTextTracker()
    tc.assertEqual("X", tracker.begin_marked_content(1, {"/ActualText": "X"}))
    tc.assertIsNone(tracker.begin_marked_content(2, {"/ActualText": "Y"}))
    tc.assertEqual(1, tracker.open_depth)

    # inner EMC, still inside the outer region
    tracker.end_marked_content(1)
    tc.assertTrue(tracker.is_suppressed(1))

    # outer EMC empties the stack
    tracker.end_marked_content(0)
    tc.assertFalse(tracker.active)


def test_tracker_suppression_is_depth_based() -> None:
    tracker = ActualTextTracker()
    tracker.begin_marked_content(2, {"/ActualText": "R"})

    tc.assertFalse(tracker.is_suppressed(1))
    tc.assertTrue(tracker.is_suppressed(2))
    tc.assertTrue(tracker.is_suppressed(5))
