"""
Main CLI interface for LyricGlow

Command-line entry point for the offline-first now-playing companion:

- lookup: gather lyrics, artwork and artist metadata for one track
- watch: poll the media player and print updates on every track change
- cache: inspect and maintain the unified cache (list, stats, delete, prune, clear)
- auth: Spotify login/logout/status
- config: show the effective settings or write them to YAML
- doctor: connectivity, connection mode, cache directory and auth diagnostics
"""

import sys
import click
import functools
import webbrowser

from . import __version__
from .cache.images import ImageCacheManager
from .cache.unified import UnifiedCacheManager, CacheType
from .config.settings import get_settings, reload_settings
from .config.auth import get_auth, reset_auth
from .exceptions import AuthError, ConfigError
from .lyrics.lrclib import LyricsManager
from .metadata.audiodb import TheAudioDBManager
from .metadata.spotify import SpotifyMetadataManager
from .models import TrackSnapshot, LyricsRecord
from .network.connectivity import ConnectivityProber, ConnectivityState
from .network.fetch import ResilientFetch
from .now_playing import NowPlayingService, CommandMediaSource, poll
from .utils.helpers import current_time_ms, format_age, format_file_size, format_timestamp
from .utils.logger import configure_from_settings, get_logger, get_current_log_file

logger = get_logger(__name__)

# Number of synced lyric lines shown by lookup/watch
LYRICS_PREVIEW_LINES = 8


def print_banner():
    """Print application banner to console"""
    banner = """
╔═══════════════════════════════════════════════════════════════╗
║                           LyricGlow                           ║
║                                                               ║
║   Synced lyrics and artist info for whatever is playing       ║
║                                                               ║
╚═══════════════════════════════════════════════════════════════╝
    """
    click.echo(click.style(banner, fg='green', bold=True))


def handle_error(func):
    """
    Decorator to handle common CLI errors gracefully

    Ctrl-C exits with 130, any other exception is logged and exits with 1.
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


class AppContext:
    """
    Lazily wired application components shared by the subcommands

    The prober is injected into the cache, and the same fetch wrapper is
    shared by every provider so the connection mode is process-wide.
    """

    def __init__(self, offline: bool = False):
        self.settings = get_settings()
        self.offline = offline
        self._cache = None
        self._fetcher = None

    @property
    def connectivity(self) -> ConnectivityProber:
        return self.cache.connectivity

    @property
    def cache(self) -> UnifiedCacheManager:
        if self._cache is None:
            prober = ConnectivityProber.from_settings(self.settings)
            if self.offline:
                prober.force(ConnectivityState.OFFLINE)
            self._cache = UnifiedCacheManager.from_settings(self.settings, prober)
        return self._cache

    @property
    def fetcher(self) -> ResilientFetch:
        if self._fetcher is None:
            self._fetcher = ResilientFetch.from_settings(self.settings)
        return self._fetcher

    def build_service(self) -> NowPlayingService:
        settings = self.settings
        auth = get_auth()

        if settings.cache.clear_expired_on_start:
            self.cache.clear_expired()

        return NowPlayingService(
            lyrics=LyricsManager(self.cache, self.fetcher, settings.lyrics.base_url)
            if settings.lyrics.enabled else None,
            audiodb=TheAudioDBManager.from_settings(settings, self.cache, self.fetcher)
            if settings.audiodb.enabled else None,
            spotify=SpotifyMetadataManager.from_settings(settings, auth, self.cache, self.fetcher)
            if auth.is_configured else None,
            images=ImageCacheManager(self.cache, self.fetcher),
            connectivity=None if self.offline else self.connectivity,
        )


def print_update(update):
    """Render one TrackUpdate (or a cleared state) to the console"""
    if update is None:
        click.echo(click.style("\n⏹  Nothing playing", fg='yellow'))
        return

    track = update.track
    click.echo(click.style(f"\n♪ {track.artist} - {track.title}", fg='cyan', bold=True))
    if track.album:
        click.echo(f"   Album: {track.album}")
    if track.duration:
        click.echo(f"   Progress: {track.progress_str}")

    record = LyricsRecord.from_dict(update.lyrics)
    if record and record.synced:
        lines = [line for line in record.synced.splitlines() if line.strip()]
        click.echo(f"   Lyrics: {len(lines)} synced lines")
        for line in lines[:LYRICS_PREVIEW_LINES]:
            click.echo(f"      {line}")
        if len(lines) > LYRICS_PREVIEW_LINES:
            click.echo("      ...")
    elif record and record.instrumental:
        click.echo("   Lyrics: instrumental")
    else:
        click.echo("   Lyrics: not found")

    metadata = update.metadata
    if metadata:
        artist = metadata.get('artist') or {}
        details = [artist.get('country'), artist.get('genre'), artist.get('formedYear')]
        click.echo(f"   Artist: {artist.get('name') or track.artist}"
                   + (f" ({', '.join(str(d) for d in details if d)})" if any(details) else ""))
        summary = (artist.get('bio') or {}).get('summary')
        if summary:
            click.echo(f"   Bio: {summary}")
        if metadata.get('hasSpotifyData'):
            click.echo(f"   Spotify followers: {artist.get('spotifyFollowers', artist.get('followers'))}")
            for top in (metadata.get('topTracks') or [])[:5]:
                click.echo(f"      • {top.get('name')}")
        click.echo(f"   Images: {len(artist.get('allImages') or [])}")
    else:
        click.echo("   Artist info: not available")

    if update.artwork:
        click.echo("   Artwork: cached")


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.option('--config', type=click.Path(), help='Path to config file')
@click.option('--offline', is_flag=True, help='Treat the network as down: serve cached data regardless of age')
@click.pass_context
def cli(ctx, version, verbose, config, offline):
    """
    LyricGlow - synced lyrics and artist info for the track you are playing

    Everything fetched is cached on disk, so tracks played once keep their
    lyrics and artist data when the network is gone.
    """
    ctx.ensure_object(dict)

    if version:
        click.echo(f"LyricGlow v{__version__}")
        return

    if config:
        try:
            reload_settings(config)
        except ConfigError as e:
            click.echo(click.style(f"Error: {e} ({e.details.get('file_path')})", fg='red'), err=True)
            sys.exit(1)

    configure_from_settings('DEBUG' if verbose else None)

    if config:
        logger.info(f"Loaded config: {config}")
    if verbose:
        ctx.obj['verbose'] = True
        logger.debug("Verbose mode enabled")

    ctx.obj['app'] = AppContext(offline=offline)

    if ctx.invoked_subcommand is None:
        print_banner()
        click.echo(ctx.get_help())


@cli.command()
@click.argument('title')
@click.argument('artist')
@click.option('--album', default='', help='Album name')
@click.option('--spotify-url', help='Spotify track URL or URI')
@click.option('--artwork-url', help='Artwork URL to download and cache')
@click.pass_context
@handle_error
def lookup(ctx, title, artist, album, spotify_url, artwork_url):
    """
    Look up lyrics and artist info for one track

    Args:
        title: Track title
        artist: Artist name
    """
    app = ctx.obj['app']
    service = app.build_service()

    snapshot = TrackSnapshot(
        title=title,
        artist=artist,
        album=album,
        spotify_url=spotify_url,
        artwork_url=artwork_url,
    )
    update = service.handle_snapshot(snapshot)
    print_update(update)


@cli.command()
@click.option('--command', 'source_command', help='Shell command printing the current track as JSON')
@click.option('--interval', type=float, help='Polling interval in seconds')
@click.pass_context
@handle_error
def watch(ctx, source_command, interval):
    """
    Follow the media player and print each new track

    The source command must print a JSON object with title and artist
    (plus optional album, duration, position, isPlaying, artworkUrl,
    spotifyUrl); "{}" or no output means nothing is playing.
    """
    app = ctx.obj['app']
    settings = app.settings

    source_command = source_command or settings.polling.source_command
    if not source_command:
        click.echo(click.style(
            "No media source configured. Use --command or set polling.source_command.", fg='red'
        ), err=True)
        sys.exit(1)

    interval = interval or settings.polling.interval
    if interval <= 0:
        click.echo(click.style("Interval must be positive", fg='red'), err=True)
        sys.exit(1)

    service = app.build_service()
    click.echo(f"Watching media player every {interval:g}s (Ctrl-C to stop)")
    poll(service, CommandMediaSource(source_command), interval, print_update)


@cli.group()
def cache():
    """Inspect and maintain the unified cache"""
    pass


@cache.command(name='list')
@click.option('--type', 'cache_type', type=click.Choice([t.value for t in CacheType]), help='Only this type')
@click.pass_context
@handle_error
def cache_list(ctx, cache_type):
    """List cached entries with age and size"""
    store = ctx.obj['app'].cache
    entries = store.list_all_entries()
    if cache_type:
        entries = [e for e in entries if e['type'] == cache_type]

    if not entries:
        click.echo("Cache is empty")
        return

    now = current_time_ms()
    total_size = 0
    for entry in sorted(entries, key=lambda e: e['timestamp'], reverse=True):
        size = store.get_entry_size(entry['type'], entry['key'])
        total_size += size
        expired = " (expired)" if store.is_expired(entry['timestamp']) else ""
        key = entry['key'] if len(entry['key']) <= 60 else entry['key'][:57] + "..."
        click.echo(
            f"{entry['type']:<9} {format_age(now - entry['timestamp']):>5}  "
            f"{format_file_size(size):>9}  {key}{expired}"
        )

    click.echo(f"\n{len(entries)} entries, {format_file_size(total_size)}")


@cache.command(name='stats')
@click.pass_context
@handle_error
def cache_stats(ctx):
    """Show cache statistics"""
    store = ctx.obj['app'].cache
    stats = store.get_stats()

    click.echo(f"Cache directory: {store.cache_root}")
    click.echo(f"Total entries: {stats['total']}")
    for type_name in [t.value for t in CacheType]:
        click.echo(f"   {type_name}: {stats['types'].get(type_name, 0)}")
    click.echo(f"Oldest entry: {format_timestamp(stats['oldestEntry'])}")
    click.echo(f"Newest entry: {format_timestamp(stats['newestEntry'])}")


@cache.command(name='delete')
@click.argument('cache_type', type=click.Choice([t.value for t in CacheType]))
@click.argument('key')
@click.pass_context
@handle_error
def cache_delete(ctx, cache_type, key):
    """Delete one entry by type and key"""
    store = ctx.obj['app'].cache
    if store.delete_one(cache_type, key):
        click.echo(f"Deleted {cache_type}/{key}")
    else:
        click.echo(f"Not cached: {cache_type}/{key}")


@cache.command(name='prune')
@click.pass_context
@handle_error
def cache_prune(ctx):
    """Remove expired entries (skipped while offline)"""
    store = ctx.obj['app'].cache
    if not store.connectivity.is_online():
        click.echo("Offline: expired entries are kept")
        return
    removed = store.clear_expired()
    click.echo(f"Removed {removed} expired entries")


@cache.command(name='clear')
@click.confirmation_option(prompt='Delete every cached entry?')
@click.pass_context
@handle_error
def cache_clear(ctx):
    """Delete everything in the cache"""
    ctx.obj['app'].cache.clear_all()
    click.echo("Cache cleared")


@cli.group()
def auth():
    """Spotify authentication"""
    pass


@auth.command()
@click.option('--no-browser', is_flag=True, help='Print the URL instead of opening a browser')
@handle_error
def login(no_browser):
    """
    Log in to Spotify

    Opens the authorization page, then asks for the URL the browser was
    redirected to after approving access.
    """
    auth_manager = get_auth()

    if auth_manager.is_logged_in():
        user_info = auth_manager.get_user_info()
        username = user_info.get('display_name', user_info.get('id', 'Unknown')) if user_info else 'Unknown'
        click.echo(f"Already authenticated as: {username}")
        return

    url = auth_manager.get_authorize_url()
    click.echo("Open this URL to authorize LyricGlow:\n")
    click.echo(f"   {url}\n")
    if not no_browser:
        webbrowser.open(url)

    callback_url = click.prompt("Paste the URL you were redirected to")
    try:
        auth_manager.handle_callback(callback_url.strip())
    except AuthError as e:
        click.echo(click.style(f"Authentication failed: {e}", fg='red'), err=True)
        sys.exit(1)

    user_info = auth_manager.get_user_info()
    username = user_info.get('display_name', user_info.get('id', 'Unknown')) if user_info else 'Unknown'
    click.echo(click.style(f"Successfully authenticated as: {username}", fg='green'))


@auth.command()
@handle_error
def logout():
    """Remove stored Spotify tokens"""
    get_auth().logout()
    reset_auth()
    click.echo("Successfully logged out")


@auth.command()
@handle_error
def status():
    """Show Spotify authentication status"""
    auth_manager = get_auth()

    if not auth_manager.is_configured:
        click.echo("Authentication Status: Spotify client ID not configured")
        click.echo("   Set SPOTIFY_CLIENT_ID to enable Spotify metadata")
        return

    if auth_manager.is_logged_in():
        user_info = auth_manager.get_user_info()
        if user_info:
            click.echo("Authentication Status: Authenticated")
            click.echo(f"   User: {user_info.get('display_name', user_info.get('id', 'Unknown'))}")
            click.echo(f"   Country: {user_info.get('country', 'Unknown')}")
        else:
            click.echo("Authentication Status: Authenticated (limited info)")
    else:
        click.echo("Authentication Status: Not authenticated")
        click.echo("   Run 'lyricglow auth login' to authenticate")


@cli.group()
def config():
    """Configuration management"""
    pass


@config.command()
@handle_error
def show():
    """Show current configuration"""
    settings = get_settings()

    click.echo(f"Configuration file: {settings.loaded_from or 'none (defaults)'}")
    click.echo("\nCache:")
    click.echo(f"   Directory: {settings.get_cache_directory()}")
    click.echo(f"   Expiry: {settings.cache.expiry_hours} hours")
    click.echo(f"   Clear expired on start: {settings.cache.clear_expired_on_start}")
    click.echo("\nNetwork:")
    click.echo(f"   Request timeout: {settings.network.request_timeout}s")
    click.echo(f"   Probe: {settings.network.probe_url} (cooldown {settings.network.probe_cooldown}s)")
    click.echo("\nProviders:")
    click.echo(f"   Lyrics (LRCLIB): {'enabled' if settings.lyrics.enabled else 'disabled'}")
    click.echo(f"   TheAudioDB: {'enabled' if settings.audiodb.enabled else 'disabled'}")
    click.echo(f"   Spotify: {'configured' if settings.spotify.client_id else 'not configured'}")
    click.echo("\nPolling:")
    click.echo(f"   Interval: {settings.polling.interval}s")
    click.echo(f"   Source command: {settings.polling.source_command or '-'}")


@config.command()
@click.option('--path', type=click.Path(), help='Where to write the file')
@handle_error
def init(path):
    """Write the current configuration to a YAML file"""
    target = get_settings().save_config(path)
    click.echo(f"Configuration written to {target}")


@cli.command()
@click.pass_context
@handle_error
def doctor(ctx):
    """
    Run system diagnostics

    Checks configuration, connectivity, TLS connection mode, the cache
    directory and Spotify authentication.
    """
    click.echo("Running diagnostics...\n")
    issues = []

    app = ctx.obj['app']
    settings = app.settings

    if settings.validate():
        click.echo(f"Configuration: OK ({settings.loaded_from or 'defaults'})")
    else:
        click.echo("Configuration: Invalid")
        issues.append("Fix the configuration errors listed in the log")

    if app.connectivity.refresh():
        click.echo("Connectivity: Online")
        try:
            app.fetcher.fetch(settings.network.probe_url, method='HEAD')
            click.echo(f"Connection mode: {app.fetcher.get_connection_mode().value}")
        except Exception as e:
            click.echo(f"Connection mode: Error - {e}")
            issues.append("Outbound HTTPS requests are failing")
    else:
        click.echo("Connectivity: Offline (serving from cache)")

    cache_dir = app.cache.cache_root
    stats = app.cache.get_stats()
    click.echo(f"Cache directory: {cache_dir} ({stats['total']} entries)")

    auth_manager = get_auth()
    if not auth_manager.is_configured:
        click.echo("Spotify: Client ID not configured (optional)")
    elif auth_manager.is_logged_in():
        click.echo("Spotify authentication: OK")
    else:
        click.echo("Spotify authentication: Not authenticated")
        issues.append("Run 'lyricglow auth login' for Spotify metadata")

    current_log = get_current_log_file()
    click.echo(f"Logging: {current_log}" if current_log else "Logging: Console only")

    if issues:
        click.echo(f"\nFound {len(issues)} issues:")
        for issue in issues:
            click.echo(f"   • {issue}")
    else:
        click.echo("\nAll systems operational!")


if __name__ == '__main__':
    cli()
