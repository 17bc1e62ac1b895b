"""
tuneseek: YouTube Music search, album reconstruction and playback with synced lyrics

## Overview

tuneseek looks music up in the YouTube Music catalog, rebuilds album track
lists from plain song searches, streams tracks through ffmpeg to the local
audio device while following along with time-synchronized lyrics from LRCLIB,
and saves tracks or whole albums as tagged MP3 files.

### Packages

**Configuration (`tuneseek/config/`)**
- Dataclass settings sections loaded from YAML with environment overrides

**Catalog (`tuneseek/ytmusic/`)**
- Catalog search returning tracks, albums and playlists
- Album resolver: query variants first, related-tracks expansion as fallback
- Track and album downloads (yt-dlp + ffmpeg)

**Lyrics (`tuneseek/lyrics/`)**
- LRCLIB client, LRC parsing and position-to-line lookup

**Audio (`tuneseek/audio/`)**
- Stream resolution, ffmpeg PCM decoding, pygame output
- Playback session: start/pause/seek/stop with stale-result protection

**Utilities (`tuneseek/utils/`)**
- Text normalization, identifier validation, logging

### Quick Start
```bash
pip install -e .

tuneseek search "daft punk"
tuneseek album "Discovery" --artist "Daft Punk"
tuneseek play "one more time daft punk"
tuneseek album "Discovery" --artist "Daft Punk" --download
```
"""

__version__ = "1.0.0"

__author__ = "tuneseek contributors"

__description__ = "YouTube Music search, album reconstruction and playback with synced lyrics"

__all__ = [
    "__version__",
    "__author__",
    "__description__"
]
