import unittest

from bucket_browser.controller import BrowserController, NotConnectedError, build_storage_api
from bucket_browser.memory_storage import InMemoryStorageApi
from bucket_browser.models import ObjectItem
from bucket_browser.profiles import ConnectionProfile
from bucket_browser.rest_storage import RestStorageApi
from bucket_browser.services import S3StorageApi
from bucket_browser.settings import AppSettings
from bucket_browser.storage import ValidationFailure
from bucket_browser.tasks import synchronous_runner


class FakeSettingsStorage:
    def __init__(self, settings=None):
        self.settings = settings or AppSettings()
        self.saved = []

    def load(self):
        return self.settings

    def save(self, settings):
        self.saved.append(settings)
        self.settings = settings


class FakeProfileStorage:
    def __init__(self, profiles=None):
        self.profiles = list(profiles or [])
        self.saved = []

    def load(self):
        return list(self.profiles)

    def save(self, profiles):
        self.saved.append([profile.name for profile in profiles])
        self.profiles = list(profiles)


def make_api():
    keys = ["blog/", "blog/2024/", "blog/2024/post.md", "logo.png"]
    return InMemoryStorageApi([ObjectItem(key=key, is_folder=key.endswith("/")) for key in keys])


class BrowserControllerTests(unittest.TestCase):
    def setUp(self):
        self.api = make_api()
        self.factory_calls = []
        self.settings_storage = FakeSettingsStorage()
        self.profile_storage = FakeProfileStorage(
            [ConnectionProfile(name="demo", adapter="memory"), ConnectionProfile(name="prod", bucket="assets")]
        )

    def make_controller(self):
        def factory(profile, settings):
            self.factory_calls.append((profile.name, settings.page_size))
            return self.api

        return BrowserController(
            settings_storage=self.settings_storage,
            profile_storage=self.profile_storage,
            runner=synchronous_runner(),
            api_factory=factory,
        )

    def test_requires_connection(self):
        controller = self.make_controller()

        self.assertFalse(controller.is_connected)
        with self.assertRaises(NotConnectedError):
            controller.store
        with self.assertRaises(NotConnectedError):
            controller.tree

    def test_connect_with_profile_loads_root(self):
        controller = self.make_controller()

        store = controller.connect_with_profile("demo")

        self.assertEqual([("demo", 50)], self.factory_calls)
        self.assertEqual("demo", controller.selected_profile)
        self.assertEqual(["blog/", "logo.png"], [item.key for item in store.items])
        self.assertEqual(["blog"], [node.name for node in controller.tree.roots])

    def test_tree_selection_navigates_store(self):
        controller = self.make_controller()
        controller.connect_with_profile("demo")

        controller.tree.select("blog/")

        self.assertEqual("blog/", controller.store.current_prefix)
        self.assertEqual(["blog/2024/"], [item.key for item in controller.store.items])

    def test_remembers_last_prefix_between_connections(self):
        self.settings_storage.settings = AppSettings(remember_last_prefix=True)
        controller = self.make_controller()
        controller.connect_with_profile("demo")

        controller.store.navigate("blog/2024/")

        self.assertEqual("blog/2024/", self.settings_storage.settings.last_prefix)
        store = controller.connect_with_profile("demo")
        self.assertEqual("blog/2024/", store.current_prefix)
        self.assertEqual(["blog/2024/post.md"], [item.key for item in store.items])

    def test_does_not_track_prefix_when_disabled(self):
        controller = self.make_controller()
        controller.connect_with_profile("demo")

        controller.store.navigate("blog/")

        self.assertEqual([], self.settings_storage.saved)

    def test_disconnect_releases_store(self):
        controller = self.make_controller()
        controller.connect_with_profile("demo")

        controller.disconnect()

        self.assertFalse(controller.is_connected)

    def test_update_page_size_applies_to_next_connection(self):
        controller = self.make_controller()

        controller.update_page_size(0)
        self.assertEqual(1, controller.settings.page_size)
        controller.update_page_size(10)
        store = controller.connect_with_profile("demo")

        self.assertEqual(10, store.page_size)

    def test_profile_management(self):
        controller = self.make_controller()

        controller.save_profile(ConnectionProfile(name="staging", bucket="b"))
        controller.save_profile(ConnectionProfile(name="production", bucket="assets"), original_name="prod")
        controller.delete_profile("demo")

        self.assertEqual(["staging", "production"], [profile.name for profile in controller.list_profiles()])
        self.assertEqual("assets", controller.get_profile("production").bucket)
        with self.assertRaises(ValueError):
            controller.delete_profile("demo")
        with self.assertRaises(ValueError):
            controller.get_profile("prod")


class BuildStorageApiTests(unittest.TestCase):
    def test_memory_profile_is_seeded(self):
        api = build_storage_api(ConnectionProfile(name="demo", adapter="memory"), AppSettings())

        self.assertIsInstance(api, InMemoryStorageApi)
        self.assertTrue(api.keys)

    def test_s3_profile_requires_bucket(self):
        with self.assertRaises(ValidationFailure):
            build_storage_api(ConnectionProfile(name="prod", adapter="s3"), AppSettings())

        api = build_storage_api(ConnectionProfile(name="prod", adapter="s3", bucket="assets"), AppSettings())
        self.assertIsInstance(api, S3StorageApi)
        self.assertEqual("assets", api.bucket_name)

    def test_rest_profile_falls_back_to_settings_url(self):
        settings = AppSettings(api_base_url="https://worker.example.com")

        api = build_storage_api(ConnectionProfile(name="worker", adapter="rest", secret="token"), settings)

        self.assertIsInstance(api, RestStorageApi)
        with self.assertRaises(ValidationFailure):
            build_storage_api(ConnectionProfile(name="worker", adapter="rest"), AppSettings())


if __name__ == "__main__":
    unittest.main()
