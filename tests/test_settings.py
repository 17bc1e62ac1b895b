"""Test configuration loading, overrides and validation"""

import pytest
import yaml

from tuneseek.config import settings as settings_module
from tuneseek.config.settings import Settings, get_settings, reload_settings
from tuneseek.exceptions import ConfigError

ENV_VARS = ('TUNESEEK_OUTPUT_DIR', 'TUNESEEK_LOG_LEVEL', 'TUNESEEK_FFMPEG', 'TUNESEEK_LYRICS_URL')


@pytest.fixture
def isolated_home(temp_dir, monkeypatch):
    """Point HOME and the working directory at an empty temp dir"""
    monkeypatch.setenv('HOME', str(temp_dir))
    monkeypatch.chdir(temp_dir)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return temp_dir


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data), encoding='utf-8')
    return path


class TestSettings:
    """Test the Settings container"""

    def test_defaults(self, isolated_home):
        """Test defaults without any file or environment"""
        settings = Settings()

        assert settings.loaded_from is None
        assert settings.catalog.related_artist_cap == 10
        assert settings.playback.seek_step == 5.0
        assert settings.lyrics.base_url == "https://lrclib.net"
        assert settings.validate() == []
        assert (isolated_home / ".tuneseek").is_dir()
        assert not settings.get_output_directory().exists()

    def test_yaml_values_override_defaults(self, isolated_home):
        """Test file values, unknown sections and unknown keys"""
        path = write_yaml(isolated_home / "custom.yaml", {
            'catalog': {'max_results': 5, 'related_artist_cap': 3, 'nonsense': 1},
            'playback': {'seek_step': 10.0},
            'spotify': {'client_id': 'ignored'},
        })
        settings = Settings(str(path))

        assert settings.loaded_from == path
        assert settings.catalog.max_results == 5
        assert settings.catalog.related_artist_cap == 3
        assert settings.playback.seek_step == 10.0
        assert not hasattr(settings.catalog, 'nonsense')

    def test_user_config_directory_is_searched(self, isolated_home):
        """Test ~/.tuneseek/config.yaml is picked up"""
        (isolated_home / ".tuneseek").mkdir()
        write_yaml(isolated_home / ".tuneseek" / "config.yaml", {'lyrics': {'enabled': False}})

        assert Settings().lyrics.enabled is False

    def test_environment_overrides_file(self, isolated_home, monkeypatch):
        """Test environment variables win over the file"""
        path = write_yaml(isolated_home / "custom.yaml", {'download': {'output_directory': '/from/file'}})
        monkeypatch.setenv('TUNESEEK_OUTPUT_DIR', '/from/env')
        monkeypatch.setenv('TUNESEEK_FFMPEG', '/opt/ffmpeg/bin/ffmpeg')

        settings = Settings(str(path))

        assert settings.download.output_directory == '/from/env'
        assert settings.playback.ffmpeg_path == '/opt/ffmpeg/bin/ffmpeg'

    def test_validate_reports_problems(self, isolated_home):
        """Test that every invalid value is reported"""
        settings = Settings()
        settings.catalog.max_results = 0
        settings.playback.channels = 6
        settings.download.quality = "11"
        settings.lyrics.base_url = "ftp://lrclib.net"
        settings.logging.level = "LOUD"

        problems = settings.validate()

        assert len(problems) == 5
        assert any("max_results" in p for p in problems)
        assert any("channels" in p for p in problems)

    def test_save_and_load(self, isolated_home):
        """Test a saved configuration loads back unchanged"""
        settings = Settings()
        settings.catalog.related_artist_cap = 4
        target = settings.save_config(str(isolated_home / "saved.yaml"))

        assert Settings(str(target)).to_dict() == settings.to_dict()

    def test_storage_section_moves_config_directory(self, isolated_home):
        """Test the storage section sets where configuration lives"""
        elsewhere = isolated_home / "elsewhere"
        path = write_yaml(isolated_home / "custom.yaml", {'storage': {'config_directory': str(elsewhere)}})

        settings = Settings(str(path))

        assert settings.get_config_directory() == elsewhere
        assert elsewhere.is_dir()
        assert settings.to_dict()['storage'] == {'config_directory': str(elsewhere)}
        assert 'security' not in settings.to_dict()

    def test_save_failure_raises(self, isolated_home):
        """Test unwritable targets raise ConfigError"""
        blocker = isolated_home / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(ConfigError):
            Settings().save_config(str(blocker / "config.yaml"))

    def test_reload_replaces_global(self, isolated_home, monkeypatch):
        """Test reload_settings swaps the shared instance"""
        monkeypatch.setattr(settings_module, 'settings', settings_module.settings)
        path = write_yaml(isolated_home / "custom.yaml", {'catalog': {'max_results': 7}})

        reloaded = reload_settings(str(path))

        assert get_settings() is reloaded
        assert get_settings().catalog.max_results == 7
