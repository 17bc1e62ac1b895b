"""
Main CLI interface for tuneseek

Command-line entry point built on Click. Commands:
- search: general catalog search (tracks, albums, playlists)
- album: rebuild an album's track list, optionally download it
- play: stream a track with synchronized lyrics and keyboard controls
- download: save a single track as a tagged MP3
- lyrics: fetch and print synced lyrics for a track
- config show: print the active configuration
- doctor: check external tools and configuration
"""

import functools
import queue
import sys
import threading

import click

from . import __version__
from .audio.session import PlaybackSession, PlaybackStatus
from .audio.source import StreamResolver
from .audio.transcoder import Transcoder
from .config.settings import get_settings, reload_settings
from .lyrics.synchronizer import LyricSynchronizer
from .utils.helpers import format_duration, format_file_size
from .utils.logger import configure_from_settings, get_current_log_file, get_logger
from .utils.validation import require_valid_identifier, validate_output_directory, validate_search_query
from .ytmusic.downloader import TrackDownloader
from .ytmusic.models import ItemKind, Track
from .ytmusic.resolver import AlbumResolver
from .ytmusic.searcher import get_catalog_client, reset_catalog_client


# Initialize logging system from configuration settings
configure_from_settings()
logger = get_logger(__name__)

# Keys understood by the interactive player; arrows arrive as escape sequences
PAUSE_KEYS = (' ', 'p')
FORWARD_KEYS = ('f', 'l', '\x1b[C')
BACKWARD_KEYS = ('b', 'h', '\x1b[D')
QUIT_KEYS = ('q', '\x1b', '\x03')


def print_banner():
    """Print application banner to console"""
    banner = """
╔═══════════════════════════════════════════════════════════════╗
║                           tuneseek                            ║
║                                                               ║
║   YouTube Music search, albums and playback with lyrics       ║
║                                                               ║
╚═══════════════════════════════════════════════════════════════╝
    """
    click.echo(click.style(banner, fg='green', bold=True))


def handle_error(func):
    """
    Decorator to handle common CLI errors gracefully

    KeyboardInterrupt exits with 130; any other error is logged, printed in
    red and exits with 1.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            click.echo(click.style("\n\nOperation cancelled by user", fg='yellow'))
            sys.exit(130)
        except Exception as e:
            logger.error(f"Command failed: {e}")
            click.echo(click.style(f"Error: {e}", fg='red'), err=True)
            sys.exit(1)
    return wrapper


def _check_query(query: str) -> None:
    is_valid, error_msg = validate_search_query(query)
    if not is_valid:
        click.echo(click.style(f"Invalid query: {error_msg}", fg='red'), err=True)
        sys.exit(1)


def _check_output(output) -> None:
    if output:
        is_valid, error_msg = validate_output_directory(output)
        if not is_valid:
            click.echo(click.style(f"Invalid output directory: {error_msg}", fg='red'), err=True)
            sys.exit(1)


def _track_from_identifier(identifier: str) -> Track:
    """Build a Track for a bare identifier from the video page metadata"""
    stream = StreamResolver().resolve(require_valid_identifier(identifier))
    return Track(
        identifier=stream.identifier,
        title=stream.title or stream.identifier,
        artist=stream.uploader or "",
        thumbnail_url=stream.thumbnail_url,
        duration_seconds=int(stream.duration) if stream.duration else None,
    )


def _lookup_track(query: str, by_id: bool) -> Track:
    if by_id:
        return _track_from_identifier(query)
    _check_query(query)
    return get_catalog_client().find_track(query)


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.option('--config', type=click.Path(), help='Path to config file')
@click.pass_context
def cli(ctx, version, verbose, config):
    """
    tuneseek - YouTube Music search, albums and playback with synced lyrics
    """
    ctx.ensure_object(dict)

    if version:
        click.echo(f"tuneseek v{__version__}")
        return

    if config:
        reload_settings(config)
        reset_catalog_client()
        configure_from_settings(verbose=verbose)
        click.echo(f"Loaded config: {config}")

    if verbose:
        ctx.obj['verbose'] = True
        configure_from_settings(verbose=True)
        logger.debug("Verbose mode enabled")

    if ctx.invoked_subcommand is None:
        print_banner()
        click.echo(ctx.get_help())


@cli.command()
@click.argument('query')
@click.option('--filter', 'result_filter', type=click.Choice(['all', 'songs', 'albums', 'playlists']),
              default='all', show_default=True, help='Result type')
@click.option('--limit', '-n', type=int, help='Maximum number of results')
@handle_error
def search(query, result_filter, limit):
    """Search the catalog for tracks, albums and playlists"""
    _check_query(query)

    items = get_catalog_client().search(query, filter=result_filter, limit=limit)
    if not items:
        click.echo(f"No results for '{query}'")
        return

    click.echo(f"Results for '{query}':\n")
    for number, item in enumerate(items, 1):
        if item.kind is ItemKind.TRACK:
            click.echo(f"{number:3d}. {item.display_name} [{item.duration_str}]  "
                       f"{click.style(item.identifier, fg='cyan')}")
        elif item.kind is ItemKind.ALBUM:
            count = f", {item.track_count} tracks" if item.track_count else ""
            click.echo(f"{number:3d}. {click.style('album', fg='magenta')} {item.display_name}{count}")
        else:
            count = f", {item.track_count} tracks" if item.track_count else ""
            click.echo(f"{number:3d}. {click.style('playlist', fg='blue')} {item.display_name}{count}")


@cli.command()
@click.argument('title')
@click.option('--artist', '-a', required=True, help='Album artist')
@click.option('--download', 'do_download', is_flag=True, help='Download the album as MP3 files')
@click.option('--output', '-o', type=click.Path(), help='Output directory')
@handle_error
def album(title, artist, do_download, output):
    """
    Rebuild an album's track list from catalog searches

    With --download every track is saved as "NN - <title>.mp3" in a folder
    named after the album.
    """
    _check_output(output)

    result = AlbumResolver().resolve_album_tracks(title, artist)
    if not result.found:
        click.echo(click.style(result.message, fg='yellow'))
        return

    click.echo(f"{title} - {artist} ({len(result.tracks)} tracks, {result.strategy})\n")
    for number, track in enumerate(result.tracks, 1):
        click.echo(f"{number:3d}. {track.display_name} [{track.duration_str}]")

    if not do_download:
        return

    click.echo("")
    summary = TrackDownloader().download_album(title, result.tracks, output_dir=output)

    click.echo(f"\nSaved {len(summary.downloaded)}/{len(summary.results)} tracks to {summary.directory}")
    for failed in summary.failed:
        click.echo(click.style(f"   Failed: {failed.track.title} - {failed.error_message}", fg='red'))
    for skipped in summary.skipped:
        click.echo(click.style(f"   Skipped (no playable id): {skipped.title}", fg='yellow'))


def _read_keys(commands: "queue.Queue[str]", done: threading.Event) -> None:
    while not done.is_set():
        try:
            key = click.getchar()
        except (EOFError, KeyboardInterrupt):
            commands.put('q')
            return
        commands.put(key)


def _print_lyric(index, line) -> None:
    if line is not None:
        click.echo(f"{click.style(format_duration(line.timestamp), fg='cyan')}  {line.text}")


@cli.command()
@click.argument('query')
@click.option('--id', 'by_id', is_flag=True, help='Treat QUERY as a track identifier')
@click.option('--mute', is_flag=True, help='Decode without opening the audio device')
@handle_error
def play(query, by_id, mute):
    """
    Play a track with synchronized lyrics

    Controls: space pause/resume, f/l or right arrow +5s, b/h or left
    arrow -5s, q quit.
    """
    track = _lookup_track(query, by_id)

    session = PlaybackSession(muted=mute)
    finished = threading.Event()
    session.on_finished = lambda _track: finished.set()
    session.on_lyric_change = _print_lyric

    session.start(track)
    step = int(session.seek_step)
    click.echo(click.style(f"[space] pause  [f/l] +{step}s  [b/h] -{step}s  [q] quit\n", dim=True))

    commands: "queue.Queue[str]" = queue.Queue()
    done = threading.Event()
    threading.Thread(target=_read_keys, args=(commands, done), name="tuneseek-keys", daemon=True).start()

    reported_lyrics = False
    try:
        while not finished.is_set():
            if not reported_lyrics:
                state = session.snapshot()
                if state.lyrics is not None:
                    reported_lyrics = True
                    if state.lyrics.is_empty:
                        click.echo(click.style("(no synced lyrics found)", dim=True))

            try:
                key = commands.get(timeout=0.2)
            except queue.Empty:
                continue

            if key in PAUSE_KEYS:
                paused = session.toggle_pause()
                click.echo(click.style("Paused" if paused else "Resumed", fg='yellow'))
            elif key in FORWARD_KEYS or key in BACKWARD_KEYS:
                direction = 1 if key in FORWARD_KEYS else -1
                position = session.seek(direction * session.seek_step)
                if position is not None:
                    click.echo(click.style(f"-> {format_duration(position)}", dim=True))
            elif key in QUIT_KEYS:
                break
    finally:
        done.set()
        session.stop()
        session.join_background(timeout=1.0)

    if finished.is_set():
        click.echo(click.style(f"\nFinished {track.display_name}", fg='green'))
    elif session.status is PlaybackStatus.IDLE:
        click.echo("\nStopped")


@cli.command()
@click.argument('query')
@click.option('--id', 'by_id', is_flag=True, help='Treat QUERY as a track identifier')
@click.option('--output', '-o', type=click.Path(), help='Output directory')
@handle_error
def download(query, by_id, output):
    """Download a single track as a tagged MP3"""
    _check_output(output)
    track = _lookup_track(query, by_id)

    click.echo(f"Downloading {track.display_name}...")
    result = TrackDownloader().download_track(track, output_dir=output)
    if not result.success:
        click.echo(click.style(f"Download failed: {result.error_message}", fg='red'), err=True)
        sys.exit(1)

    click.echo(click.style(f"Saved {result.file_path} ({result.file_size_str})", fg='green'))


@cli.command()
@click.argument('title')
@click.option('--artist', '-a', required=True, help='Track artist')
@click.option('--duration', type=float, help='Track length in seconds')
@handle_error
def lyrics(title, artist, duration):
    """Print synced lyrics for a track"""
    track_lyrics = LyricSynchronizer().fetch_lyrics(title, artist, duration)
    if not track_lyrics:
        click.echo(click.style(f"No synced lyrics found for {artist} - {title}", fg='yellow'))
        return

    for line in track_lyrics.lines:
        _print_lyric(None, line)


@cli.group()
def config():
    """Configuration management"""
    pass


@config.command()
@handle_error
def show():
    """Show current configuration"""
    settings = get_settings()

    source = settings.loaded_from or "defaults"
    click.echo(f"Current Configuration ({source}):\n")

    for section, values in settings.to_dict().items():
        click.echo(f"{section.capitalize()}:")
        for key, value in values.items():
            click.echo(f"   {key.replace('_', ' ').capitalize()}: {value}")
        click.echo("")


@cli.command()
@handle_error
def doctor():
    """
    Run system diagnostics

    Checks ffmpeg, the Python audio and download backends, the output
    directory, the configuration and the current log file.
    """
    click.echo("Running diagnostics...\n")

    issues = []
    settings = get_settings()

    transcoder = Transcoder()
    if transcoder.is_available():
        click.echo(f"ffmpeg: OK ({transcoder.ffmpeg_path})")
    else:
        click.echo(f"ffmpeg: Not found ({transcoder.ffmpeg_path})")
        issues.append("ffmpeg is required for playback and downloads")

    dependencies = [
        ('yt_dlp', 'yt-dlp', 'required for stream resolution and downloads'),
        ('ytmusicapi', 'ytmusicapi', 'required for catalog search'),
        ('pygame', 'pygame', 'required for audio output'),
    ]

    for module_name, display_name, purpose in dependencies:
        try:
            __import__(module_name)
            click.echo(f"{display_name}: OK")
        except ImportError:
            click.echo(f"{display_name}: Not installed")
            issues.append(f"{display_name} is {purpose}")

    output_dir = settings.get_output_directory()
    if output_dir.exists() and output_dir.is_dir():
        click.echo(f"Output directory: {output_dir}")
    else:
        click.echo(f"Output directory: {output_dir} (will be created)")

    problems = settings.validate()
    if problems:
        click.echo("Configuration: invalid")
        issues.extend(problems)
    else:
        click.echo(f"Configuration: OK ({settings.loaded_from or 'defaults'})")

    click.echo(f"Lyrics: {settings.lyrics.base_url}" if settings.lyrics.enabled else "Lyrics: disabled")

    current_log = get_current_log_file()
    if current_log:
        size = format_file_size(current_log.stat().st_size) if current_log.exists() else "empty"
        click.echo(f"Logging: {current_log} ({size})")
    else:
        click.echo("Logging: Console only")

    if issues:
        click.echo(f"\nFound {len(issues)} issues:")
        for issue in issues:
            click.echo(f"   • {issue}")
    else:
        click.echo("\nAll systems operational!")


# Entry point for module execution
if __name__ == '__main__':
    cli()
