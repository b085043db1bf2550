# tests/test_settings.py
"""Test configuration loading"""

import pytest
import yaml

import lyricglow.config.settings as settings_module
from lyricglow.config.settings import Settings, reload_settings, get_settings
from lyricglow.exceptions import ConfigError

ENV_VARS = [
    'CACHE_DURATION_HOURS',
    'LYRICGLOW_CACHE_DIR',
    'SPOTIFY_CLIENT_ID',
    'SPOTIFY_REDIRECT_URL',
    'LYRICGLOW_LOG_LEVEL',
]


@pytest.fixture(autouse=True)
def isolated_env(temp_dir, monkeypatch):
    """Keep the user's home, cwd and environment out of the tests"""
    monkeypatch.setenv('HOME', str(temp_dir))
    monkeypatch.chdir(temp_dir)
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def write_config(path, data):
    path.write_text(yaml.safe_dump(data), encoding='utf-8')
    return path


class TestSettings:
    """Test settings defaults, files and environment"""

    def test_defaults(self):
        settings = Settings()

        assert settings.loaded_from is None
        assert settings.cache.expiry_hours == 168
        assert settings.get_cache_expiry_ms() == 168 * 60 * 60 * 1000
        assert settings.network.probe_cooldown == 60.0
        assert settings.audiodb.api_key == "523532"
        assert settings.spotify.redirect_url == "musicdisplay://callback"
        assert settings.polling.interval == 3.0
        assert settings.validate()

    def test_yaml_overrides_defaults(self, temp_dir):
        path = write_config(temp_dir / "custom.yaml", {
            'cache': {'expiry_hours': 24, 'directory': str(temp_dir / "c")},
            'lyrics': {'enabled': False},
            'unknown_section': {'x': 1},
            'network': {'no_such_key': 5},
        })

        settings = Settings(str(path))

        assert settings.loaded_from == path
        assert settings.cache.expiry_hours == 24
        assert settings.get_cache_directory() == temp_dir / "c"
        assert settings.lyrics.enabled is False
        assert not hasattr(settings.network, 'no_such_key')

    def test_local_config_file_is_found(self, temp_dir):
        write_config(temp_dir / "config.yaml", {'polling': {'interval': 5}})
        assert Settings().polling.interval == 5

    def test_explicit_invalid_yaml_raises(self, temp_dir):
        path = temp_dir / "broken.yaml"
        path.write_text("cache: [unclosed", encoding='utf-8')
        with pytest.raises(ConfigError):
            Settings(str(path))

    def test_explicit_missing_file_raises(self, temp_dir):
        with pytest.raises(ConfigError) as exc_info:
            Settings(str(temp_dir / "missing.yaml"))
        assert exc_info.value.details['file_path'].endswith("missing.yaml")

    def test_searched_invalid_yaml_falls_back_to_defaults(self, temp_dir):
        (temp_dir / "config.yaml").write_text("cache: [unclosed", encoding='utf-8')
        settings = Settings()
        assert settings.loaded_from is None
        assert settings.cache.expiry_hours == 168

    def test_non_mapping_file_is_ignored(self, temp_dir):
        path = temp_dir / "list.yaml"
        path.write_text("- a\n- b\n", encoding='utf-8')
        assert Settings(str(path)).cache.expiry_hours == 168

    def test_environment_overrides(self, temp_dir, monkeypatch):
        write_config(temp_dir / "config.yaml", {'cache': {'expiry_hours': 24}})
        monkeypatch.setenv('CACHE_DURATION_HOURS', '12')
        monkeypatch.setenv('LYRICGLOW_CACHE_DIR', str(temp_dir / "env-cache"))
        monkeypatch.setenv('SPOTIFY_CLIENT_ID', 'abc123')
        monkeypatch.setenv('LYRICGLOW_LOG_LEVEL', 'DEBUG')

        settings = Settings()

        assert settings.cache.expiry_hours == 12
        assert settings.get_cache_directory() == temp_dir / "env-cache"
        assert settings.spotify.client_id == 'abc123'
        assert settings.logging.level == 'DEBUG'

    def test_non_integer_expiry_is_ignored(self, monkeypatch):
        monkeypatch.setenv('CACHE_DURATION_HOURS', 'a week')
        assert Settings().cache.expiry_hours == 168

    def test_validate_rejects_bad_values(self):
        settings = Settings()
        settings.cache.expiry_hours = 0
        assert not settings.validate()

        settings = Settings()
        settings.logging.level = 'LOUD'
        assert not settings.validate()

        settings = Settings()
        settings.network.request_timeout = -1
        assert not settings.validate()

    def test_save_config_blanks_client_id(self, temp_dir):
        settings = Settings()
        settings.spotify.client_id = 'secret-ish'
        settings.cache.expiry_hours = 48

        target = settings.save_config(str(temp_dir / "out" / "config.yaml"))

        data = yaml.safe_load(target.read_text(encoding='utf-8'))
        assert data['spotify']['client_id'] == ""
        assert data['cache']['expiry_hours'] == 48
        assert Settings(str(target)).cache.expiry_hours == 48

    def test_reload_settings_replaces_singleton(self, temp_dir, monkeypatch):
        monkeypatch.setattr(settings_module, '_settings', None)
        path = write_config(temp_dir / "a.yaml", {'polling': {'interval': 7}})

        reloaded = reload_settings(str(path))

        assert get_settings() is reloaded
        assert get_settings().polling.interval == 7
