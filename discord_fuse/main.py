#!/usr/bin/env python3
"""
Discord FUSE Driver

Mounts the guilds and text channels visible to a bot as a filesystem.

Usage:
    DISCORD_TOKEN=... discord-fuse /mnt/discord
"""

import argparse
import logging
import sys

import pyfuse3
import trio

from .api_client import DiscordClient, RemoteUnavailable
from .config import TOKEN_ENV, FuseConfig, load_config
from .filesystem import DiscordFS
from .namespace import NamespaceTree

log = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Mount Discord guilds and channels as a FUSE filesystem"
    )
    parser.add_argument(
        "mountpoint",
        help="Directory to mount the filesystem",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="Discord API base URL (default: https://discord.com/api/v10)",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        default=None,
        help="Messages requested per history page (1-100, default: 100)",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="History pages fetched per channel read (default: 10)",
    )
    parser.add_argument(
        "--timestamps",
        action="store_const",
        const=True,
        default=None,
        dest="show_timestamps",
        help="Prefix each rendered message with its timestamp",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


async def run_mount(mountpoint: str, config: FuseConfig, debug: bool = False) -> None:
    """List guilds/channels, mount, and serve until unmounted.

    Raises RemoteUnavailable if the initial listing fails; nothing is
    mounted in that case.
    """
    api = DiscordClient(config.token, config.api_url, timeout=config.request_timeout)
    try:
        tree = await NamespaceTree.fetch(api)
    except RemoteUnavailable:
        await api.close()
        raise

    fs = DiscordFS(tree, api, config)

    # FUSE options
    fuse_options = set(pyfuse3.default_options)
    fuse_options.add(f"fsname={config.fsname}")
    if debug:
        fuse_options.add("debug")

    log.info(f"Mounting Discord at {mountpoint}")
    log.info(f"API: {config.api_url}")

    pyfuse3.init(fs, mountpoint, fuse_options)
    try:
        async with trio.open_nursery() as nursery:
            fs.set_nursery(nursery)
            await pyfuse3.main()
            # Send pending buffers and close the client while the nursery is open
            await fs.destroy()
            # Unmounted: abandon any detached fetches/sends still running
            nursery.cancel_scope.cancel()
    finally:
        pyfuse3.close(unmount=True)
        log.info("Unmounted")


def main() -> None:
    args = parse_args()

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(cli_overrides={
        "api_url": args.api_url,
        "page_size": args.page_size,
        "max_pages": args.max_pages,
        "show_timestamps": args.show_timestamps,
    })

    if not config.token:
        print(f"Error: {TOKEN_ENV} is not set.\n")
        print("Create a bot at https://discord.com/developers/applications and export its token:")
        print(f"  export {TOKEN_ENV}=...")
        sys.exit(1)

    if not 1 <= config.page_size <= 100:
        print(f"Error: --page-size must be between 1 and 100, got {config.page_size}")
        sys.exit(1)

    if config.max_pages < 1:
        print(f"Error: --max-pages must be at least 1, got {config.max_pages}")
        sys.exit(1)

    try:
        trio.run(run_mount, args.mountpoint, config, args.debug)
    except RemoteUnavailable as e:
        log.error(f"Could not list guilds and channels, not mounting: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        log.info("Interrupted, unmounting...")


if __name__ == "__main__":
    main()
