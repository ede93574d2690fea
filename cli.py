"""
CLI entry point for cycle-time. Wires the pipeline: fetch -> enrich -> durations -> aggregate -> report
"""

import argparse
import json
import logging
import os
import sys
import webbrowser
from datetime import datetime, timezone

from config import load_settings
from errors import CycleTimeError
from report.renderer import render
from service import CycleTime
from storage.retry import configure_retry

CACHE_FLAGS = ('cache_info', 'cache_clear', 'cache_list', 'cache_get', 'cache_remove')


def _print_json(obj):
    print(json.dumps(obj, indent=2, default=str))


def _print_cache_get(store, key: str):
    if not store.exists(key):
        print(f"Cache key not found: {key}")
        return
    raw = store.read(key)
    try:
        _print_json(json.loads(raw.decode('utf-8')))
    except ValueError:
        print(raw.decode('utf-8', errors='replace'))


def _remove_cache_key(store, key: str, force: bool):
    if not force:
        confirm = input(f"Are you sure you want to remove cache key '{key}' from {store.path}? [y/N]: ")
        if confirm.strip().lower() not in ("y", "yes"):
            print("Aborted cache key removal.")
            return
    removed = store.remove(key)
    if removed:
        print(f"Removed {removed} entry for key: {key}")
    else:
        print(f"Cache key not found: {key}")


def _clear_cache(store, force: bool):
    if not force:
        confirm = input(f"Are you sure you want to clear the cache at {store.path}? This cannot be undone. [y/N]: ")
        if confirm.strip().lower() not in ("y", "yes"):
            print("Aborted cache clear.")
            return
    store.clear()
    print(f"Cleared cache at {store.path}")


def _wants_cache_action(args) -> bool:
    return any(getattr(args, flag, None) for flag in CACHE_FLAGS)


def _handle_cache_actions(args, settings):
    """Run the first requested cache inspection/management action against the configured store."""
    if not settings.cache_path:
        settings.cache_path = "cache.db"
    store = settings.open_store()
    try:
        flag_actions = [
            (args.cache_info, lambda: _print_json(store.stats())),
            (args.cache_clear, lambda: _clear_cache(store, args.force)),
            (args.cache_list, lambda: _print_json(store.list_keys(limit=1000))),
            (bool(args.cache_get), lambda: _print_cache_get(store, args.cache_get)),
            (bool(args.cache_remove), lambda: _remove_cache_key(store, args.cache_remove, args.force)),
        ]
        for enabled, handler in flag_actions:
            if enabled:
                handler()
                return
    finally:
        store.close()


def run_pipeline(args, settings):
    """Execute the requested command and return the rendered output."""
    store = settings.open_store()
    try:
        service = CycleTime.from_settings(settings, cache=store)
        fmt = (args.output or "text").lower()
        scope = f"{settings.org}/{settings.repo or '*'} since {settings.since or 'the beginning'}"
        generated_at = datetime.now(timezone.utc).isoformat()
        tickets = service.tickets(settings.since)
        if args.command == "tickets":
            return render(tickets=tickets, fmt=fmt, generated_at=generated_at, scope=scope)
        metrics = service.metrics(tickets)
        return render(metrics=metrics, fmt=fmt, generated_at=generated_at, scope=scope)
    finally:
        store.close()


def _open_file_in_browser(path: str):
    """Open a file URL in the system default web browser."""
    webbrowser.open("file://" + os.path.abspath(path))


def write_output(rendered: str, args):
    """Write output to a file (when --out-file is given) or stdout; optionally open HTML in the browser."""
    out_path = (args.out_file or "").strip()
    if not out_path:
        print(rendered)
        return
    out_dir = os.path.dirname(out_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(out_path, "w", encoding="utf-8", newline="") as f:
        f.write(rendered)
    print(f"Wrote report to {out_path}")
    if args.open and (args.output or "").lower() in ("html", "htm"):
        _open_file_in_browser(out_path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ticket cycle-time metrics for GitHub issues and pull requests")
    parser.add_argument("command", nargs="?", choices=("tickets", "metrics"), default="metrics", help="What to report (default: metrics)")
    parser.add_argument("--since", type=str, default=None, help="Only tickets updated at or after this ISO-8601 timestamp")
    parser.add_argument("--org", type=str, default=None, help="GitHub organization (or env GITHUB_ORG)")
    parser.add_argument("--repo", type=str, default=None, help="Restrict to one repository (or env GITHUB_REPO)")
    parser.add_argument("--token", type=str, default=None, help="GitHub token (or env GITHUB_TOKEN)")
    parser.add_argument("--base-url", type=str, default=None, help="GitHub API base URL (or env GITHUB_API_URL)")
    parser.add_argument("--config", type=str, default=None, help="YAML config file")
    parser.add_argument("--cache", type=str, default=None, help="SQLite file (*.db) or directory for cached responses (or env CYCLE_TIME_CACHE)")
    parser.add_argument("--delay", type=float, default=None, help="Seconds to wait between timeline requests (or env CYCLE_TIME_DELAY)")
    parser.add_argument("--phases", type=str, default=None, help="Comma-separated phases to compute (or env CYCLE_TIME_PHASES)")
    parser.add_argument("--include-max", action="store_true", default=None, help="Also report the maximum of each phase")
    parser.add_argument("--output", type=str, default="text", help="Output format (text, md, csv, json, html)")
    parser.add_argument("--out-file", type=str, default="", help="Output file path. If omitted the report is printed")
    parser.add_argument("--open", action="store_true", help="Open the generated HTML report in the default browser")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    # retry/backoff knobs: optional CLI overrides. Environment variables CYCLE_TIME_MAX_RETRIES, CYCLE_TIME_BACKOFF_BASE,
    # CYCLE_TIME_BACKOFF_JITTER, CYCLE_TIME_MAX_BACKOFF may also be used to set defaults.
    parser.add_argument("--max-retries", type=int, default=None, help="Maximum attempts for HTTP requests (overrides CYCLE_TIME_MAX_RETRIES env)")
    parser.add_argument("--backoff-base", type=float, default=None, help="Base backoff seconds (overrides CYCLE_TIME_BACKOFF_BASE env)")
    parser.add_argument("--backoff-jitter", type=float, default=None, help="Jitter seconds added to backoff (overrides CYCLE_TIME_BACKOFF_JITTER env)")
    parser.add_argument("--max-backoff", type=float, default=None, help="Maximum backoff cap in seconds (overrides CYCLE_TIME_MAX_BACKOFF env)")
    parser.add_argument("--cache-info", action="store_true", help="Show cache statistics (uses --cache or cache.db)")
    parser.add_argument("--cache-clear", action="store_true", help="Clear the persistent cache (uses --cache or cache.db)")
    parser.add_argument("--cache-list", action="store_true", help="List cache keys (uses --cache or cache.db)")
    parser.add_argument("--cache-get", type=str, default="", help="Print a specific cache entry (uses --cache or cache.db)")
    parser.add_argument("--cache-remove", type=str, default="", help="Remove a specific cache key to force a refetch (uses --cache or cache.db)")
    parser.add_argument("--force", action="store_true", help="Force actions without confirmation (use with --cache-clear or --cache-remove)")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # CLI flags take precedence over environment variables
    configure_retry(max_retries=args.max_retries, backoff_base=args.backoff_base, backoff_jitter=args.backoff_jitter, max_backoff=args.max_backoff)

    overrides = {
        "org": args.org,
        "repo": args.repo,
        "token": args.token,
        "base_url": args.base_url,
        "cache_path": args.cache,
        "delay": args.delay,
        "phases": args.phases,
        "include_max": args.include_max,
        "since": args.since,
    }
    try:
        settings = load_settings(overrides, config_path=args.config)
        if _wants_cache_action(args):
            _handle_cache_actions(args, settings)
            return 0
        rendered = run_pipeline(args, settings)
    except CycleTimeError as ex:
        print(f"error: {ex}", file=sys.stderr)
        return 1
    write_output(rendered, args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
