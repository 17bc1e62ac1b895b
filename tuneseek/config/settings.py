"""
Configuration management for tuneseek

Settings come from YAML files and environment variables and are grouped into
dataclass sections, so every component reads only the part it needs:

- Catalog search settings (result limits, timeouts, fallback policy)
- Lyrics service settings (LRCLIB endpoint, timeout)
- Playback engine settings (sample rate, seek step, ticker interval, ffmpeg)
- Download preferences (output directory, encoder quality, cover art)
- Logging settings
- Storage locations (configuration directory)

Environment variables (optionally from a .env file) override file values.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, asdict
from dotenv import load_dotenv

from ..exceptions import ConfigError

# TUNESEEK_* variables may also live in a .env file
load_dotenv()


BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass
class CatalogConfig:
    """
    YouTube Music catalog configuration

    related_artist_cap bounds how many tracks the related-tracks fallback may
    accept on an artist match alone. It is policy, not contract: tune it here.
    """
    max_results: int = 20
    request_timeout: float = 8.0
    rate_limit_delay: float = 0.0
    related_artist_cap: int = 10
    language: str = "en"


@dataclass
class LyricsConfig:
    """
    Lyrics service configuration

    Synced lyrics come from LRCLIB; the timeout applies to every request.
    """
    enabled: bool = True
    base_url: str = "https://lrclib.net"
    timeout: float = 7.0
    user_agent: str = "tuneseek/1.0 (https://github.com/tuneseek/tuneseek)"


@dataclass
class PlaybackConfig:
    """
    Playback engine configuration

    Audio is decoded by ffmpeg into interleaved signed 16-bit PCM at
    sample_rate/channels, buffered, and fed to the output device in chunks of
    chunk_frames frames. tick_interval drives the lyric position sampler.
    """
    sample_rate: int = 44100
    channels: int = 2
    seek_step: float = 5.0
    tick_interval: float = 0.2
    chunk_frames: int = 4410
    startup_timeout: float = 20.0
    ffmpeg_path: str = "ffmpeg"
    user_agent: str = BROWSER_USER_AGENT
    fetch_cover: bool = True


@dataclass
class DownloadConfig:
    """
    Download configuration settings

    quality is passed to libmp3lame as the VBR quality (-q:a); 0 is best, 9 worst.
    """
    output_directory: str = "~/Music/tuneseek"
    format: str = "mp3"
    quality: str = "2"
    embed_cover: bool = True
    timeout: int = 300


@dataclass
class LoggingConfig:
    """
    Logging configuration and output settings
    """
    level: str = "INFO"
    file: str = ""
    max_size: str = "10MB"
    backup_count: int = 3
    console_output: bool = True
    colored_output: bool = True


@dataclass
class StorageConfig:
    """
    Storage locations for configuration and cached data
    """
    config_directory: str = "~/.tuneseek/"


# Environment variable -> (section, attribute)
ENVIRONMENT_OVERRIDES = {
    'TUNESEEK_OUTPUT_DIR': ('download', 'output_directory'),
    'TUNESEEK_LOG_LEVEL': ('logging', 'level'),
    'TUNESEEK_FFMPEG': ('playback', 'ffmpeg_path'),
    'TUNESEEK_LYRICS_URL': ('lyrics', 'base_url'),
}

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class Settings:
    """
    All configuration sections, resolved once

    Precedence is defaults, then the first YAML file found, then the
    environment. Only the configuration directory is created on load.
    """

    SECTIONS = ('catalog', 'lyrics', 'playback', 'download', 'logging', 'storage')

    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: Explicit YAML file, searched before the default locations
        """
        self.config_path = config_path
        self.config_dir = Path.home() / ".tuneseek"
        self.loaded_from: Optional[Path] = None

        self.catalog = CatalogConfig()
        self.lyrics = LyricsConfig()
        self.playback = PlaybackConfig()
        self.download = DownloadConfig()
        self.logging = LoggingConfig()
        self.storage = StorageConfig()

        self._apply_config(self._read_first_config())
        self._apply_environment()
        self._ensure_config_directory()

    def candidate_paths(self) -> List[Path]:
        """Config file locations, in the order they are tried"""
        candidates = [Path(self.config_path)] if self.config_path else []
        return candidates + [self.config_dir / "config.yaml", Path("config") / "config.yaml", Path("config.yaml")]

    def _read_first_config(self) -> Dict[str, Any]:
        for path in self.candidate_paths():
            if not path.is_file():
                continue
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    data = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                print(f"Warning: Skipping unreadable config {path}: {e}")
                continue
            self.loaded_from = path
            return data if isinstance(data, dict) else {}
        return {}

    def _apply_config(self, config_data: Dict[str, Any]) -> None:
        """
        Copy known keys of known sections onto the section dataclasses

        Unknown sections and keys are ignored, so a config written for a
        newer version still loads.
        """
        for section_name in self.SECTIONS:
            values = config_data.get(section_name)
            if not isinstance(values, dict):
                continue
            section = getattr(self, section_name)
            known = {k: v for k, v in values.items() if hasattr(section, k)}
            for key, value in known.items():
                setattr(section, key, value)

    def _apply_environment(self) -> None:
        for variable, (section_name, key) in ENVIRONMENT_OVERRIDES.items():
            value = os.getenv(variable)
            if value:
                setattr(getattr(self, section_name), key, value)

    def _ensure_config_directory(self) -> None:
        # The output directory is created by the downloader on first use
        directory = self.get_config_directory()
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            print(f"Warning: Cannot create {directory}: {e}")

    def get_output_directory(self) -> Path:
        return Path(self.download.output_directory).expanduser()

    def get_config_directory(self) -> Path:
        return Path(self.storage.config_directory).expanduser()

    def save_config(self, path: Optional[str] = None) -> Path:
        """
        Write the current configuration as YAML

        Args:
            path: Target file, defaults to config.yaml in the config directory

        Returns:
            The file written

        Raises:
            ConfigError: If the file cannot be written
        """
        target = Path(path) if path else self.get_config_directory() / "config.yaml"
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False),
                              encoding='utf-8')
        except OSError as e:
            raise ConfigError(f"Failed to save config to {target}: {e}", details={'path': str(target)})
        return target

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {name: asdict(getattr(self, name)) for name in self.SECTIONS}

    def validate(self) -> List[str]:
        """
        Check every value that would fail at runtime

        Returns:
            Problems found, empty when the configuration is usable
        """
        catalog, lyrics, playback, download = self.catalog, self.lyrics, self.playback, self.download
        checks = [
            (catalog.max_results > 0, f"catalog.max_results must be positive: {catalog.max_results}"),
            (catalog.request_timeout > 0, f"catalog.request_timeout must be positive: {catalog.request_timeout}"),
            (catalog.related_artist_cap >= 0,
             f"catalog.related_artist_cap cannot be negative: {catalog.related_artist_cap}"),
            (lyrics.timeout > 0, f"lyrics.timeout must be positive: {lyrics.timeout}"),
            (str(lyrics.base_url).startswith(('http://', 'https://')),
             f"lyrics.base_url is not an HTTP URL: {lyrics.base_url}"),
            (playback.sample_rate > 0, f"playback.sample_rate must be positive: {playback.sample_rate}"),
            (playback.channels in (1, 2), f"playback.channels must be 1 or 2: {playback.channels}"),
            (playback.seek_step > 0, f"playback.seek_step must be positive: {playback.seek_step}"),
            (playback.tick_interval > 0, f"playback.tick_interval must be positive: {playback.tick_interval}"),
            (playback.chunk_frames > 0, f"playback.chunk_frames must be positive: {playback.chunk_frames}"),
            (download.format == 'mp3', f"download.format must be mp3: {download.format}"),
            (str(download.quality) in [str(q) for q in range(10)],
             f"download.quality must be 0-9: {download.quality}"),
            (str(self.logging.level).upper() in LOG_LEVELS, f"Invalid log level: {self.logging.level}"),
        ]
        return [message for ok, message in checks if not ok]

    def __str__(self) -> str:
        return (f"Settings(output={self.download.output_directory}, "
                f"lyrics={'on' if self.lyrics.enabled else 'off'}, "
                f"pcm={self.playback.sample_rate}Hz/{self.playback.channels}ch)")


settings = Settings()


def get_settings() -> Settings:
    """Shared Settings instance"""
    return settings


def reload_settings(config_path: Optional[str] = None) -> Settings:
    """
    Replace the shared Settings instance

    Components that cached the old instance keep it; callers recreate the
    objects that must see the new values.
    """
    global settings
    settings = Settings(config_path)
    return settings
