import sys
import asyncio
import argparse
from typing import Optional
from castplayer.core.logger import Logger
from castplayer.core.config import Config, load_config
from castplayer.sonicast.errors import SonicastError
from castplayer.sonicast.player import SonicastPlayer
from castplayer.sonicast.discovery import find_playing_sonicast
from castplayer.sonicast.models import Track, format_artists


COMMAND_TIMEOUT = 10.0


class PassthroughCatalog:
    """Каталог без нормализации: в CLI треки показываются как пришли с сервера."""

    def normalize_track(self, track: Track) -> Track:
        return track


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="castplayer", description="Sonicast remote playback control")
    parser.add_argument('--timeout', type=float, default=COMMAND_TIMEOUT, help='Seconds to wait for a reply')
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("discover", help="Print the URL of a configured sonicast that is currently playing")

    queue = sub.add_parser("queue", help="Print the play queue of a sonicast")
    queue.add_argument("url")

    control = sub.add_parser("control", help="Send a playback command to a sonicast")
    control.add_argument("url")
    control.add_argument("action", choices=["play", "pause", "next", "prev", "seek", "volume", "shuffle", "repeat"])
    control.add_argument("value", nargs="?")
    return parser


async def discover(config: Config, catalog: PassthroughCatalog) -> int:
    url = await find_playing_sonicast(
        config.sonicast_targets, catalog,
        auth=config.auth,
        timeout=config.discovery_timeout,
        reconnect_delay=config.reconnect_delay,
    )
    if not url:
        print("No playing sonicast found")
        return 1
    print(url)
    return 0


async def print_queue(player: SonicastPlayer) -> int:
    queue = await player.get_play_queue()
    for i, track in enumerate(queue.tracks):
        marker = ">" if i == queue.current_index else " "
        print(f"{marker} {i:3d}. {format_artists(track.artists)} - {track.title}")
    if not queue.tracks:
        print("Queue is empty")
    return 0


def parse_flag(value: Optional[str]) -> bool:
    return (value or "").lower() in ("1", "on", "true", "yes")


async def control(player: SonicastPlayer, action: str, value: Optional[str]) -> int:
    match action:
        case "play":
            await player.play()
        case "pause":
            await player.pause()
        case "next":
            await player.next()
        case "prev":
            await player.previous()
        case "seek":
            await player.seek(float(value or 0))
        case "volume":
            await player.set_volume(float(value or 1))
        case "shuffle":
            await player.set_shuffle(parse_flag(value))
        case "repeat":
            await player.set_repeat(parse_flag(value))
    return 0


async def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config()
    Logger.configure(config.log_dir)
    catalog = PassthroughCatalog()

    if args.command == "discover":
        return await discover(config, catalog)

    player = SonicastPlayer(catalog, args.url, config.auth, reconnect_delay=config.reconnect_delay)
    try:
        if args.command == "queue":
            return await asyncio.wait_for(print_queue(player), args.timeout)
        return await asyncio.wait_for(control(player, args.action, args.value), args.timeout)
    except asyncio.TimeoutError:
        Logger.error(f"No reply from {args.url} within {args.timeout}s")
        return 2
    except SonicastError as e:
        Logger.error(f"Command failed: {e}")
        return 1
    finally:
        await player.dispose()


def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass


if __name__ == '__main__':
    run()
