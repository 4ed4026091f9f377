import json
import random
import tempfile
from pathlib import Path
import unittest

from bucket_browser.memory_storage import InMemoryStorageApi
from bucket_browser.models import ObjectItem
from bucket_browser.storage import AlreadyExists, NetworkFailure, NotFound, ValidationFailure


def make_api(*keys, **kwargs):
    return InMemoryStorageApi([ObjectItem(key=key, is_folder=key.endswith("/")) for key in keys], **kwargs)


class ListingTests(unittest.TestCase):
    def test_folds_descendants_into_folder_items(self):
        api = make_api("docs/a.txt", "docs/sub/deep.txt", "top.txt")

        result = api.list("")

        self.assertEqual(["docs/", "top.txt"], [item.key for item in result.items])
        self.assertTrue(result.items[0].is_folder)
        self.assertIsNone(result.cursor)

    def test_lists_direct_children_of_prefix_only(self):
        api = make_api("docs/", "docs/a.txt", "docs/sub/deep.txt")

        result = api.list("docs/")

        self.assertEqual(["docs/sub/", "docs/a.txt"], [item.key for item in result.items])

    def test_cursor_pages_without_gaps_or_duplicates(self):
        keys = [f"dir{i}/" for i in range(3)] + [f"file{i}.txt" for i in range(4)]
        api = make_api(*keys)

        seen = []
        cursor = None
        pages = 0
        while True:
            result = api.list("", cursor, 3)
            seen.extend(item.key for item in result.items)
            pages += 1
            cursor = result.cursor
            if cursor is None:
                break

        self.assertEqual(3, pages)
        self.assertEqual(sorted(keys), sorted(seen))
        self.assertEqual(len(keys), len(set(seen)))

    def test_files_carry_preview_url(self):
        api = make_api("pics/cat photo.png", public_base_url="https://cdn.example.com/")

        item = api.list("pics/").items[0]

        self.assertEqual("https://cdn.example.com/pics/cat%20photo.png", item.preview_url)

    def test_seeded_sample_data(self):
        api = InMemoryStorageApi(seed=True)

        root = [item.key for item in api.list("").items]

        self.assertEqual(["assets/", "blog/", "landing/", "favicon.ico", "logo.png"], root)


class MutationTests(unittest.TestCase):
    def test_rename_folder_cascades(self):
        api = make_api("x/", "x/f.txt", "x/sub/", "x/sub/g.txt")

        api.rename("x/", "y/")

        self.assertEqual(["y/", "y/f.txt", "y/sub/", "y/sub/g.txt"], api.keys)

    def test_rename_missing_source(self):
        api = make_api("a.txt")

        with self.assertRaises(NotFound):
            api.rename("b.txt", "c.txt")

    def test_rename_onto_existing_key(self):
        api = make_api("a.txt", "b.txt")

        with self.assertRaises(AlreadyExists):
            api.rename("a.txt", "b.txt")
        self.assertEqual(["a.txt", "b.txt"], api.keys)

    def test_move_with_overwrite_replaces_target(self):
        api = make_api("a.txt", "dest/a.txt")

        api.move("a.txt", "dest/a.txt", overwrite=True)

        self.assertEqual(["dest/a.txt"], api.keys)

    def test_move_folder_into_itself_is_rejected(self):
        api = make_api("x/", "x/f.txt")

        with self.assertRaises(ValidationFailure):
            api.move("x/", "x/inner/")

    def test_delete_folder_cascades(self):
        api = make_api("a/", "a/1.txt", "a/b/", "a/b/2.txt", "c.txt")

        api.delete(["a/"])

        self.assertEqual(["c.txt"], api.keys)

    def test_create_folder_twice(self):
        api = make_api()

        api.create_folder("new/")

        with self.assertRaises(AlreadyExists):
            api.create_folder("new/")

    def test_upload_and_head(self):
        api = make_api()

        item = api.upload("docs/readme.md", b"hello")

        self.assertEqual(5, item.size)
        self.assertEqual("5d41402abc4b2a76b9719d911017c592", item.etag)
        self.assertEqual("docs/readme.md", api.head("docs/readme.md").key)
        self.assertTrue(api.head("docs/").is_folder)
        self.assertIsNone(api.head("missing.txt"))

    def test_upload_rejects_folder_key(self):
        with self.assertRaises(ValidationFailure):
            make_api().upload("docs/", b"")


class BehaviourTests(unittest.TestCase):
    def test_failure_rate_raises_network_failure(self):
        api = make_api("a.txt", failure_rate=1.0, rng=random.Random(1))

        with self.assertRaises(NetworkFailure):
            api.list("")

    def test_contents_persist_between_instances(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "bucket.json"
            api = InMemoryStorageApi(persist_path=path)
            api.create_folder("kept/")
            api.upload("kept/a.txt", b"abc")

            reopened = InMemoryStorageApi(persist_path=path)

            self.assertEqual(["kept/", "kept/a.txt"], reopened.keys)
            data = json.loads(path.read_text(encoding="utf-8"))
            self.assertIsNone(data[1]["preview_url"])

    def test_unreadable_persisted_file_is_ignored(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "bucket.json"
            path.write_text("not json", encoding="utf-8")

            with self.assertLogs("bucket_browser.memory_storage", level="WARNING"):
                api = InMemoryStorageApi(persist_path=path)

            self.assertEqual([], api.keys)


if __name__ == "__main__":
    unittest.main()
