"""Command-line entry point: ``emojimap``."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from collections.abc import Sequence

from emojimap.client import EmojiMapClient
from emojimap.config import EmojiMapConfig
from emojimap.models.marker import EmojiMarker
from emojimap.state.events import MarkerDeleted, MarkerInserted, MarkerUpdated
from emojimap.surface import MapSurface


def _format_marker(marker: EmojiMarker) -> str:
    return f"{marker.emoji} {marker.count:>4} {marker.lat:.5f},{marker.lng:.5f} {marker.id}"


def _report_advisory(client: EmojiMapClient) -> None:
    if client.advisory:
        print(f"[emojimap] {client.advisory}", file=sys.stderr)


async def _cmd_list(config: EmojiMapConfig, _args: argparse.Namespace) -> int:
    async with EmojiMapClient(dataclasses.replace(config, realtime_enabled=False)) as client:
        markers = await client.load()
        _report_advisory(client)
    for marker in markers:
        print(_format_marker(marker))
    return 0


async def _cmd_add(config: EmojiMapConfig, args: argparse.Namespace) -> int:
    async with EmojiMapClient(dataclasses.replace(config, realtime_enabled=False)) as client:
        await client.load()
        surface = MapSurface(client.click_handler(args.glyph))
        marker = await surface.click(args.lat, args.lng)
        _report_advisory(client)
    print(_format_marker(marker))
    return 0


async def _cmd_watch(config: EmojiMapConfig, _args: argparse.Namespace) -> int:
    def _print_change(change: MarkerInserted | MarkerUpdated | MarkerDeleted) -> None:
        if isinstance(change, MarkerDeleted):
            print(f"delete {change.id}")
        else:
            print(f"{change.kind} {_format_marker(change.record)}")

    async with EmojiMapClient(config, on_change=_print_change) as client:
        await client.load()
        _report_advisory(client)
        if not client.is_subscribed:
            print("[emojimap] Realtime updates unavailable", file=sys.stderr)
            return 1
        print(f"[emojimap] Watching {len(client.markers)} markers; Ctrl+C to stop")
        await asyncio.Event().wait()
    return 0


async def _cmd_render(config: EmojiMapConfig, args: argparse.Namespace) -> int:
    async with EmojiMapClient(dataclasses.replace(config, realtime_enabled=False)) as client:
        markers = await client.load()
        _report_advisory(client)
    surface = MapSurface()
    surface.render(markers)
    target = surface.save(args.output)
    print(f"[emojimap] Wrote {len(markers)} markers to {target}")
    return 0


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="emojimap", description="Drop emoji markers on a shared world map.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="Print all markers, newest first")

    add = sub.add_parser("add", help="Click the map at LAT LNG with GLYPH")
    add.add_argument("glyph")
    add.add_argument("lat", type=float)
    add.add_argument("lng", type=float)

    sub.add_parser("watch", help="Print realtime changes until interrupted")

    render = sub.add_parser("render", help="Write the current markers as an HTML map")
    render.add_argument("output")

    return parser.parse_args(argv)


_COMMANDS = {
    "list": _cmd_list,
    "add": _cmd_add,
    "watch": _cmd_watch,
    "render": _cmd_render,
}


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config = EmojiMapConfig.from_env()
    try:
        return asyncio.run(_COMMANDS[args.command](config, args))
    except ValueError as exc:
        print(f"[emojimap] {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
