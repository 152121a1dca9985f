# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Command line entry point.

Usage:
    story-localizer render "https://example.com/story/?zip=92373" --out story.json
    story-localizer render "https://example.com/story/" --follow --lat 34.05 --lon -117.25
    story-localizer surprise "https://example.com/story/?zip=92373"
    story-localizer change-zip "https://example.com/story/?zip=92373" 90210
    story-localizer search "https://example.com/story/?zip=92373"
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from .core import get_logger, settings as default_settings, setup_logging
from .core.config import Settings
from .errors import StoryLocalizerError
from .geolocation import provider_from_options
from .location_resolver import LocationResolver
from .models import Candidate
from .search import CandidateSearchClient, DebouncedSearch, ZipValidator
from .session import PageSession, Redirect, Rendered, RenderFailed, run_until_rendered

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="story-localizer",
        description="Localize a published story to a ZIP code or coordinate",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default from LOG_LEVEL)")
    sub = parser.add_subparsers(dest="command", required=True)

    render = sub.add_parser("render", help="Run one page pass (or follow redirects with --follow)")
    render.add_argument("url", help="Session URL, e.g. https://host/story/?zip=92373")
    render.add_argument("--follow", action="store_true", help="Follow the redirect of a resolving pass")
    render.add_argument("--out", help="Write the localized story JSON to this file")
    render.add_argument("--lat", type=float, help="Device latitude")
    render.add_argument("--lon", type=float, help="Device longitude")
    render.add_argument("--deny-geolocation", action="store_true", help="Simulate denied permission")
    render.add_argument("--ip-geolocation", action="store_true", help="Use IP geolocation as the device fix")
    render.add_argument("--no-reverse-geocode", action="store_true", help="Redirect with coordinates instead of a ZIP")
    render.add_argument("--fallback-zip", help="Fixed fallback ZIP instead of a random pick")

    surprise = sub.add_parser("surprise", help="Print a redirect to a random ZIP")
    surprise.add_argument("url")

    change = sub.add_parser("change-zip", help="Validate a ZIP and print the redirect to it")
    change.add_argument("url")
    change.add_argument("zip")

    search = sub.add_parser("search", help="Interactive address search (one line per keystroke batch)")
    search.add_argument("url")

    return parser


def _resolver_from_args(args: argparse.Namespace, settings: Settings) -> LocationResolver:
    provider = provider_from_options(
        latitude=getattr(args, "lat", None),
        longitude=getattr(args, "lon", None),
        deny=getattr(args, "deny_geolocation", False),
        ip_url=settings.ip_geolocation_url if getattr(args, "ip_geolocation", False) else None,
    )
    return LocationResolver(
        settings,
        geolocation=provider,
        reverse_geocode=not getattr(args, "no_reverse_geocode", False),
        fallback_zip=getattr(args, "fallback_zip", None),
    )


def _print_redirect(redirect: Redirect) -> None:
    print(json.dumps({"redirect": redirect.url, "delay": redirect.delay, "strategy": redirect.strategy}))


async def cmd_render(args: argparse.Namespace, settings: Settings) -> int:
    resolver = _resolver_from_args(args, settings)
    if args.follow:
        result = await run_until_rendered(args.url, settings, resolver)
    else:
        session = PageSession(args.url, settings, resolver)
        try:
            result = await session.run()
        finally:
            session.close()

    if isinstance(result, Redirect):
        _print_redirect(result)
        return EXIT_OK

    if isinstance(result, RenderFailed):
        print(f"Error Loading Data: {result.message}", file=sys.stderr)
        return EXIT_FAILED

    assert isinstance(result, Rendered)
    payload = result.document.to_json()
    if result.scroll_target:
        payload["scrollTo"] = result.scroll_target
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(text)
        logger.info(f"✅ Localized story for {result.query} written to {args.out}")
    else:
        print(text)
    return EXIT_OK


async def cmd_change_zip(args: argparse.Namespace, settings: Settings) -> int:
    session = PageSession(args.url, settings)
    if not await ZipValidator(settings).exists(args.zip):
        print(f"Unknown ZIP code: {args.zip}", file=sys.stderr)
        return EXIT_FAILED
    _print_redirect(session.change_zip(args.zip.strip()))
    return EXIT_OK


async def cmd_search(args: argparse.Namespace, settings: Settings) -> int:
    """
    Each input line replaces the search text. ``:N`` selects candidate N,
    an empty line or EOF cancels.
    """
    session = PageSession(args.url, settings)
    client = CandidateSearchClient(settings)
    loop = asyncio.get_running_loop()
    latest: List[Candidate] = []
    done: "asyncio.Future[Optional[Candidate]]" = loop.create_future()

    def show(candidates: List[Candidate]) -> None:
        latest[:] = candidates
        for index, candidate in enumerate(candidates):
            print(f"  [{index}] {candidate.address}")

    def complete(candidate: Optional[Candidate]) -> None:
        if not done.done():
            done.set_result(candidate)

    search = DebouncedSearch(
        client.find_candidates,
        on_results=show,
        on_complete=complete,
        delay=settings.search_debounce_seconds,
        min_length=settings.search_min_length,
    )

    while not done.done():
        line = await loop.run_in_executor(None, sys.stdin.readline)
        text = line.rstrip("\n")
        if not text:
            search.cancel()
        elif text.startswith(":") and text[1:].isdigit():
            index = int(text[1:])
            if index < len(latest):
                search.select(latest[index])
            else:
                print(f"No candidate {index}", file=sys.stderr)
        else:
            search.input_changed(text)
            await search.wait_idle()

    candidate = done.result()
    if candidate is None:
        logger.debug("Address search cancelled")
        return EXIT_OK

    redirect = await session.change_location(candidate)
    if redirect is None:
        print(f"No ZIP code found for {candidate.address}", file=sys.stderr)
        return EXIT_FAILED
    _print_redirect(redirect)
    return EXIT_OK


async def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    settings = settings or default_settings
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level or settings.log_level)

    try:
        if args.command == "render":
            return await cmd_render(args, settings)
        if args.command == "surprise":
            _print_redirect(PageSession(args.url, settings).surprise_me())
            return EXIT_OK
        if args.command == "change-zip":
            return await cmd_change_zip(args, settings)
        if args.command == "search":
            return await cmd_search(args, settings)
    except StoryLocalizerError as e:
        logger.error(f"❌ {e}")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED
    return EXIT_FAILED


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
