#!/usr/bin/env python3
"""
Form Autofill - fills a saved profile into the form on the current page.

Main entry point for running the autofill against a browser page.
"""

import argparse
import asyncio
import sys
from typing import Optional

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from rich.console import Console

from autofill.browser import BrowserManager
from autofill.config import get_available_profiles, is_blacklisted, load_profile, load_settings
from autofill.errors import FillFailedError, ProfileValidationError, SettingsValidationError
from autofill.logger import setup_logging
from autofill.manager import AutofillManager, RescanTrigger
from autofill.notifications import CompositeNotifier, ConsoleNotifier, PageToastNotifier


console = Console()


def print_profiles():
    profiles = get_available_profiles()
    if profiles:
        console.print("[bold]Available profiles:[/bold]")
        for p in profiles:
            console.print(f"  - {p}")
    else:
        console.print("[yellow]No profiles found. Create one in config/profiles/<name>/profile.yaml[/yellow]")


async def fill_and_review(manager, profile, url, settings, reviewer):
    """Run one invocation and print the review table of what was and was not filled."""
    if is_blacklisted(url, settings):
        console.print(f"[yellow]Autofill disabled for {url}[/yellow]")
        return None
    try:
        result = await manager.perform_autofill(profile)
    except FillFailedError as e:
        reviewer.display_summary(e.outcomes, url)
        return None
    if result.outcomes:
        reviewer.display_summary(result.outcomes, url)
    return result


async def main(
    url: Optional[str] = None,
    profile_name: Optional[str] = None,
    profile_path: Optional[str] = None,
    settings_path: Optional[str] = None,
    cdp_url: Optional[str] = None,
    headless: bool = False,
    verbose: bool = False,
    watch: bool = False,
):
    """Main entry point."""
    try:
        settings = load_settings(settings_path)
    except SettingsValidationError as e:
        console.print(f"[red]Invalid settings:[/red] {e}")
        return 1

    setup_logging(verbose or settings.verbose, console)

    try:
        profile = load_profile(profile_name=profile_name, config_path=profile_path, settings=settings)
        display_name = profile_name or profile_path or settings.active_profile
        console.print(f"[green]✓[/green] Profile loaded: [bold]{display_name}[/bold]")
    except FileNotFoundError as e:
        console.print(f"[red]Error loading profile:[/red] {e}")
        return 1
    except ProfileValidationError as e:
        console.print(f"[red]Invalid profile:[/red] {e}")
        return 1

    if cdp_url:
        console.print(f"[dim]Connecting to Chrome at {cdp_url}...[/dim]")

    try:
        async with BrowserManager(cdp_url=cdp_url, headless=headless) as browser:
            console.print("[green]✓[/green] Browser ready")
            page = browser.page
            console_notifier = ConsoleNotifier(console)
            manager = AutofillManager(
                page,
                settings=settings,
                notifier=CompositeNotifier(console_notifier, PageToastNotifier(page)),
            )

            async def run_once():
                current_url = await browser.get_current_url()
                await fill_and_review(manager, profile, current_url, settings, console_notifier)

            watching = watch or settings.auto_fill_enabled
            trigger = RescanTrigger(run_once, debounce_seconds=1.0)
            if watching:
                await browser.on_document_change(trigger.notify)

            if url:
                if not await browser.navigate(url):
                    console.print(f"[red]Could not open {url}[/red]")
                    return 1
            else:
                current_url = await browser.get_current_url()
                if not current_url or current_url == "about:blank":
                    console.print("[red]No URL available. Pass --url or navigate to a form first.[/red]")
                    return 1
                console.print(f"Using current page: {current_url}")

            if not watching:
                await run_once()
                return 0

            console.print("[dim]Watching for page changes. Press Ctrl+C to stop.[/dim]")
            trigger.notify()
            try:
                while True:
                    await asyncio.sleep(1)
            except asyncio.CancelledError:
                trigger.cancel()

    except ConnectionError as e:
        console.print(f"[red]Browser connection failed:[/red] {e}")
        console.print("\n[yellow]Make sure Chrome is running with debugging enabled:[/yellow]")
        console.print("  google-chrome --remote-debugging-port=9222 --user-data-dir=/tmp/chrome-autofill")
        return 1

    return 0


def cli():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Form Autofill - fill a saved profile into web forms"
    )
    parser.add_argument(
        "--url",
        help="Form URL to open (default: use the current page of an attached browser)",
    )
    parser.add_argument(
        "--profile", "-p",
        help="Profile name (e.g., 'default'). Profiles are stored in config/profiles/",
        dest="profile_name",
    )
    parser.add_argument(
        "--profile-path",
        help="Direct path to profile YAML file (overrides --profile)",
        dest="profile_path",
    )
    parser.add_argument(
        "--settings",
        help="Path to settings YAML file (default: config/settings.yaml)",
        dest="settings_path",
    )
    parser.add_argument(
        "--cdp-url",
        help="Chrome DevTools Protocol URL, e.g. http://localhost:9222. "
             "Without it a Chromium instance is launched.",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Launch Chromium headless (ignored with --cdp-url)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show per-field matching and fill diagnostics",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep running and re-fill when the page's form changes",
    )
    parser.add_argument(
        "--list-profiles",
        action="store_true",
        help="List available profiles and exit",
    )

    args = parser.parse_args()

    if args.list_profiles:
        print_profiles()
        return 0

    try:
        return asyncio.run(main(
            url=args.url,
            profile_name=args.profile_name,
            profile_path=args.profile_path,
            settings_path=args.settings_path,
            cdp_url=args.cdp_url,
            headless=args.headless,
            verbose=args.verbose,
            watch=args.watch,
        ))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")
        return 0


if __name__ == "__main__":
    sys.exit(cli())
