"""Tests for SettingsStore class."""

import json

from settings_store import SettingsStore, USERNAME_KEY, REFRESH_TOKEN_KEY


class TestSettingsStore:
    """Test persistent key-value storage."""

    def test_missing_file_is_empty(self, store):
        assert store.get(USERNAME_KEY) is None

    def test_set_and_get(self, store):
        store.set(USERNAME_KEY, 'test_user')

        assert store.get(USERNAME_KEY) == 'test_user'

    def test_values_persist_across_instances(self, store):
        """Values are written to disk under their key names."""
        store.set(REFRESH_TOKEN_KEY, 'refresh')

        assert SettingsStore(str(store.path)).get(REFRESH_TOKEN_KEY) == 'refresh'
        assert json.loads(store.path.read_text()) == {'RefreshToken': 'refresh'}

    def test_set_none_removes(self, store):
        store.set(USERNAME_KEY, 'test_user')
        store.set(USERNAME_KEY, None)

        assert store.get(USERNAME_KEY) is None
        assert USERNAME_KEY not in json.loads(store.path.read_text())

    def test_remove_keys(self, store):
        store.set(USERNAME_KEY, 'test_user')
        store.set(REFRESH_TOKEN_KEY, 'refresh')
        store.set('Other', 'kept')

        store.remove(USERNAME_KEY, REFRESH_TOKEN_KEY, 'NotPresent')

        assert store.get(USERNAME_KEY) is None
        assert store.get(REFRESH_TOKEN_KEY) is None
        assert store.get('Other') == 'kept'

    def test_external_edits_visible(self, store):
        """Changes made to the file by others are picked up."""
        store.set(USERNAME_KEY, 'test_user')
        store.path.write_text(json.dumps({USERNAME_KEY: 'edited'}))

        assert store.get(USERNAME_KEY) == 'edited'

    def test_corrupt_file_treated_as_empty(self, store):
        store.path.write_text('{not json')

        assert store.get(USERNAME_KEY) is None

    def test_non_object_file_treated_as_empty(self, store):
        store.path.write_text('["a", "b"]')

        assert store.get(USERNAME_KEY) is None

    def test_non_string_value_ignored(self, store):
        store.path.write_text(json.dumps({USERNAME_KEY: 42}))

        assert store.get(USERNAME_KEY) is None

    def test_parent_directory_created(self, tmp_path):
        store = SettingsStore(str(tmp_path / 'nested' / 'dir' / 'settings.json'))

        store.set(USERNAME_KEY, 'test_user')

        assert store.get(USERNAME_KEY) == 'test_user'

    def test_default_path_from_config(self, mock_config):
        store = SettingsStore()

        assert str(store.path) == mock_config.settings_file
