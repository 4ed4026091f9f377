import unittest

from bucket_browser.models import ObjectItem
from bucket_browser.selection import Selection
from bucket_browser.storage import ValidationFailure
from bucket_browser.view import derive_view, parse_timestamp


def keys(items):
    return [item.key for item in items]


class DeriveViewTests(unittest.TestCase):
    def setUp(self):
        self.items = [
            ObjectItem(key="b.png", content_type="image/png", size=5, last_modified="2024-03-01T10:00:00Z"),
            ObjectItem(key="a/", is_folder=True),
            ObjectItem(key="notes.txt", content_type="text/plain", size=5, last_modified="2024-03-01T10:00:00Z"),
            ObjectItem(key="archive.zip", content_type="application/zip"),
            ObjectItem(key="pics/", is_folder=True),
        ]

    def test_images_filter_keeps_folders(self):
        items = [
            ObjectItem(key="b.png", content_type="image/png"),
            ObjectItem(key="a/", is_folder=True),
        ]

        self.assertEqual(["a/", "b.png"], keys(derive_view(items, filter_type="images")))

    def test_folders_filter(self):
        self.assertEqual(["a/", "pics/"], keys(derive_view(self.items, filter_type="folders")))

    def test_search_matches_full_key(self):
        self.assertEqual(["pics/"], keys(derive_view(self.items, search_query="PIC")))
        self.assertEqual(5, len(derive_view(self.items, search_query="")))

    def test_missing_size_sorts_as_zero(self):
        view = derive_view(self.items, sort_by="size", sort_order="asc")

        self.assertEqual(["a/", "pics/", "archive.zip", "b.png", "notes.txt"], keys(view))

    def test_equal_values_fall_back_to_key_order_in_both_directions(self):
        ascending = derive_view(self.items, sort_by="modified", sort_order="asc")
        descending = derive_view(self.items, sort_by="modified", sort_order="desc")

        self.assertEqual(["a/", "pics/", "archive.zip", "b.png", "notes.txt"], keys(ascending))
        self.assertEqual(["a/", "pics/", "b.png", "notes.txt", "archive.zip"], keys(descending))

    def test_name_descending_keeps_folders_first(self):
        view = derive_view(self.items, sort_by="name", sort_order="desc")

        self.assertEqual(["pics/", "a/", "notes.txt", "b.png", "archive.zip"], keys(view))

    def test_rejects_unknown_options(self):
        with self.assertRaises(ValidationFailure):
            derive_view(self.items, sort_by="colour")
        with self.assertRaises(ValidationFailure):
            derive_view(self.items, sort_order="sideways")

    def test_parse_timestamp(self):
        self.assertEqual(0.0, parse_timestamp(None))
        self.assertEqual(0.0, parse_timestamp("not a date"))
        self.assertEqual(86400.0, parse_timestamp("1970-01-02T00:00:00Z"))
        self.assertEqual(86400.0, parse_timestamp("1970-01-02T00:00:00"))


class SelectionTests(unittest.TestCase):
    def setUp(self):
        self.view = ["a", "b", "c", "d", "e"]
        self.selection = Selection()

    def test_toggle_flips_membership(self):
        self.selection.toggle("a")
        self.assertIn("a", self.selection)
        self.selection.toggle("a")
        self.assertNotIn("a", self.selection)
        self.assertEqual("a", self.selection.anchor)

    def test_range_is_inclusive_in_either_direction(self):
        self.assertTrue(self.selection.select_range("c", "a", self.view))
        self.assertEqual(frozenset({"a", "b", "c"}), self.selection.keys)

    def test_range_with_unknown_key_is_noop(self):
        self.selection.toggle("e")

        self.assertFalse(self.selection.select_range("a", "zzz", self.view))
        self.assertEqual(frozenset({"e"}), self.selection.keys)

    def test_extend_without_anchor_toggles(self):
        self.selection.extend_to("c", self.view)

        self.assertEqual(frozenset({"c"}), self.selection.keys)

    def test_select_all_and_clear(self):
        self.selection.select_all(["a", "x"])

        self.assertEqual(2, len(self.selection))
        self.selection.clear()
        self.assertEqual(0, len(self.selection))
        self.assertIsNone(self.selection.anchor)


if __name__ == "__main__":
    unittest.main()
