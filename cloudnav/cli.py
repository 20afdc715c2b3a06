#!/usr/bin/env python3
"""
CloudNav - command-line front end for the bookmark dashboard.

Every invocation is one session: state is loaded (remote, then local cache,
then defaults), the command runs, and pending pushes are flushed before exit.
"""
import sys
import argparse
import getpass
import json
import logging
from contextlib import contextmanager
from dataclasses import asdict, replace
from pathlib import Path
from typing import Iterator, List

from rich.console import Console
from rich.table import Table

from cloudnav.ai import AIConfig, fill_missing_descriptions
from cloudnav.config import SyncOptions, get_config, init_config
from cloudnav.db import LocalStore
from cloudnav.exceptions import AuthRequiredError, NetworkFailureError, UnauthorizedError
from cloudnav.locks import CategoryLockManager
from cloudnav.models import CardStyle, LinkItem, Snapshot
from cloudnav.remote import RemoteStore
from cloudnav.sync import SyncController, SyncStatus
from cloudnav.utils import jmespath_query, parse_add_link, pinned_links, search_links, visible_links
from cloudnav.webdav import WebDavClient, WebDavConfig

logger = logging.getLogger(__name__)


console = Console()


def open_store() -> LocalStore:
    config = get_config()
    return LocalStore(path=str(config.get_database_path()), echo=config.database_echo)


@contextmanager
def open_controller(initialize: bool = True) -> Iterator[SyncController]:
    """Build and initialize a controller from the active configuration."""
    config = get_config()
    store = open_store()
    remote = RemoteStore(
        config.remote_url,
        timeout=config.timeout,
        user_agent=config.user_agent,
        verify_ssl=config.verify_ssl
    )
    controller = SyncController(store, remote, options=SyncOptions.from_config(config))
    try:
        if initialize:
            source = controller.initialize()
            logger.info(f"State loaded from {source.value}")
        yield controller
    finally:
        controller.close()
        remote.close()
        store.close()


def report_sync(controller: SyncController, quiet: bool = False):
    """Wait for pushes and tell the user where the change ended up."""
    controller.flush()
    if quiet:
        return
    if controller.status == SyncStatus.ERROR:
        if controller.auth_prompt_open:
            console.print("[red]Credential rejected; changes kept locally. Run 'cloudnav login'.[/red]")
        else:
            console.print("[red]Remote sync failed; changes kept locally.[/red]")
    elif controller.is_authenticated:
        console.print("[green]Synced[/green]")
    else:
        console.print("[yellow]Saved locally only (offline)[/yellow]")


def output_links(links: List[LinkItem], snapshot: Snapshot, format: str = "table"):
    """Output links in the specified format."""
    names = {c.id: c.name for c in snapshot.categories}

    if format == "json":
        print(json.dumps([l.to_dict() for l in links], indent=2, ensure_ascii=False))
    elif format == "urls":
        for link in links:
            print(link.url)
    else:
        table = Table(title="Links")
        table.add_column("ID", style="cyan")
        table.add_column("Title", style="green")
        table.add_column("URL", style="blue")
        table.add_column("Category", style="yellow")
        table.add_column("📌", style="red")

        for link in links:
            table.add_row(
                link.id,
                link.title[:40],
                link.url[:50],
                names.get(link.category_id, link.category_id),
                "📌" if link.pinned else ""
            )

        console.print(table)


def parse_unlocks(values: List[str]) -> List[tuple]:
    pairs = []
    for value in values or []:
        category_id, sep, password = value.partition("=")
        if not sep:
            raise ValueError(f"Expected CATEGORY=PASSWORD, got '{value}'")
        pairs.append((category_id, password))
    return pairs


def cmd_status(args):
    """Show where state came from and the sync state."""
    with open_controller(initialize=False) as controller:
        source = controller.initialize()
        snapshot = controller.snapshot
        console.print(f"Source:     [cyan]{source.value}[/cyan]")
        console.print(f"Remote:     {controller.remote.endpoint}")
        console.print(f"Logged in:  {'yes' if controller.is_authenticated else 'no'}")
        console.print(f"Links:      {len(snapshot.links)}")
        console.print(f"Categories: {len(snapshot.categories)}")
        console.print(f"Title:      {snapshot.settings.title}")


def cmd_list(args):
    """List links, hiding locked categories."""
    with open_controller() as controller:
        snapshot = controller.snapshot

        if args.query:
            print(json.dumps(jmespath_query(snapshot, args.query), indent=2, ensure_ascii=False))
            return

        locks = CategoryLockManager()
        for category_id, password in parse_unlocks(args.unlock):
            category = controller.find_category(category_id)
            if category is None:
                console.print(f"[yellow]Category not found: {category_id}[/yellow]")
            elif not locks.unlock(category, password):
                console.print(f"[red]Wrong password for category {category.name}[/red]")

        if args.pinned:
            links = pinned_links(snapshot, locks)
        else:
            links = visible_links(snapshot, locks)
        if args.category:
            links = [l for l in links if l.category_id == args.category]
        if args.search:
            links = search_links(links, args.search)

        output_links(links, snapshot, args.output)

        locked = [c.name for c in snapshot.categories if locks.is_locked(c)]
        if locked and not args.quiet:
            console.print(f"[dim]Locked: {', '.join(locked)}[/dim]")


def cmd_add(args):
    """Add a link."""
    url, title = args.url, args.title
    if args.from_link:
        prefill, _ = parse_add_link(args.from_link)
        if prefill is None:
            raise ValueError("Link has no add_url parameter")
        url = url or prefill["url"]
        title = title or prefill["title"]
    if not url:
        raise ValueError("A URL is required")

    with open_controller() as controller:
        link = controller.add_link(
            title=title or url,
            url=url,
            category_id=args.category or controller.options.fallback_category_id,
            description=args.description,
            icon=args.icon,
            pinned=args.pin
        )
        if args.quiet:
            print(link.id)
        else:
            output_links([link], controller.snapshot, args.output)
        report_sync(controller, args.quiet)


def cmd_edit(args):
    """Edit a link."""
    patch = {}
    if args.title is not None:
        patch["title"] = args.title
    if args.url is not None:
        patch["url"] = args.url
    if args.category is not None:
        patch["category_id"] = args.category
    if args.description is not None:
        patch["description"] = args.description or None
    if args.icon is not None:
        patch["icon"] = args.icon or None
    if not patch:
        console.print("[yellow]Nothing to change[/yellow]")
        return

    with open_controller() as controller:
        link = controller.edit_link(args.id, **patch)
        if not args.quiet:
            output_links([link], controller.snapshot, args.output)
        report_sync(controller, args.quiet)


def cmd_delete(args):
    """Delete links."""
    with open_controller() as controller:
        deleted = 0
        for link_id in args.ids:
            try:
                controller.delete_link(link_id)
            except KeyError:
                console.print(f"[yellow]Link not found: {link_id}[/yellow]")
                continue
            deleted += 1
            if not args.quiet:
                console.print(f"[green]Deleted link {link_id}[/green]")
        report_sync(controller, args.quiet)
        if args.quiet:
            print(deleted)


def cmd_pin(args):
    """Toggle the pinned flag."""
    with open_controller() as controller:
        pinned = controller.toggle_pin(args.id)
        if not args.quiet:
            console.print(f"[green]{'Pinned' if pinned else 'Unpinned'} {args.id}[/green]")
        report_sync(controller, args.quiet)


def cmd_move(args):
    """Move a link to another link's position."""
    with open_controller() as controller:
        controller.reorder_links(args.source, args.target)
        report_sync(controller, args.quiet)


def cmd_category(args):
    """Category management."""
    with open_controller() as controller:
        if args.category_command == "list":
            table = Table(title="Categories")
            table.add_column("ID", style="cyan")
            table.add_column("Name", style="green")
            table.add_column("Icon", style="blue")
            table.add_column("Links", style="magenta")
            table.add_column("🔒", style="red")
            for category in controller.snapshot.categories:
                count = sum(1 for l in controller.snapshot.links if l.category_id == category.id)
                table.add_row(category.id, category.name, category.icon, str(count),
                              "🔒" if category.is_protected else "")
            console.print(table)
            return

        if args.category_command == "add":
            category = controller.add_category(args.name, icon=args.icon, password=args.password)
            if not args.quiet:
                console.print(f"[green]Added category {category.name} ({category.id})[/green]")
        elif args.category_command == "edit":
            patch = {k: v for k, v in (("name", args.name), ("icon", args.icon), ("password", args.password))
                     if v is not None}
            category = controller.edit_category(args.id, **patch)
            if not args.quiet:
                console.print(f"[green]Updated category {category.name}[/green]")
        elif args.category_command == "delete":
            controller.delete_category(args.id)
            if not args.quiet:
                console.print(f"[green]Deleted category {args.id}; its links moved to "
                              f"{controller.options.fallback_category_id}[/green]")
        report_sync(controller, args.quiet)


def cmd_import(args):
    """Import links and categories from a JSON file."""
    with open(args.file, "r", encoding="utf-8") as f:
        data = json.load(f)
    imported = Snapshot.from_dict(data)

    with open_controller() as controller:
        result = controller.import_bookmarks(imported.links, imported.categories)
        if not args.quiet:
            console.print(f"[green]Imported {result.links_added} new links[/green]")
        report_sync(controller, args.quiet)


def cmd_login(args):
    """Log in with the shared password."""
    password = args.password or getpass.getpass("Password: ")
    with open_controller() as controller:
        if controller.login(password):
            console.print("[green]Logged in[/green]")
        else:
            console.print("[red]Login failed[/red]")
            sys.exit(1)


def cmd_logout(args):
    """Forget the stored credential."""
    with open_controller(initialize=False) as controller:
        controller.logout()
        if not args.quiet:
            console.print("[green]Logged out[/green]")


def cmd_settings(args):
    """Show or change site settings."""
    with open_controller() as controller:
        settings = controller.snapshot.settings
        patch = {}
        if args.title is not None:
            patch["title"] = args.title
        if args.nav_title is not None:
            patch["nav_title"] = args.nav_title
        if args.favicon is not None:
            patch["favicon"] = args.favicon
        if args.card_style is not None:
            patch["card_style"] = CardStyle(args.card_style)

        if not patch:
            print(json.dumps(settings.to_dict(), indent=2, ensure_ascii=False))
            return

        controller.update_settings(replace(settings, **patch))
        report_sync(controller, args.quiet)


def cmd_webdav(args):
    """WebDAV backup management."""
    store = open_store()
    try:
        webdav_config = WebDavConfig.load(store)
        if args.webdav_command == "config":
            for key in ("url", "username", "password"):
                value = getattr(args, key)
                if value is not None:
                    setattr(webdav_config, key, value)
            if args.enable is not None:
                webdav_config.enabled = args.enable
            webdav_config.save(store)
            shown = asdict(webdav_config)
            shown["password"] = "***" if shown["password"] else ""
            print(json.dumps(shown, indent=2))
            return
    finally:
        store.close()

    client = WebDavClient(webdav_config)
    if args.webdav_command == "check":
        if client.check():
            console.print("[green]WebDAV reachable[/green]")
        else:
            console.print("[red]WebDAV not reachable[/red]")
            sys.exit(1)
        return

    with open_controller() as controller:
        if args.webdav_command == "backup":
            client.backup(controller.snapshot)
            console.print(f"[green]Backed up to {client.file_url}[/green]")
        elif args.webdav_command == "restore":
            links, categories = client.restore()
            if args.merge:
                result = controller.import_bookmarks(links, categories)
                console.print(f"[green]Merged {result.links_added} links from backup[/green]")
            else:
                controller.restore_backup(links, categories)
                console.print(f"[green]Restored {len(links)} links from backup[/green]")
            report_sync(controller, args.quiet)


def cmd_ai(args):
    """AI description settings and generation."""
    if args.ai_command == "config":
        store = open_store()
        try:
            ai_config = AIConfig.load(store)
            for key in ("provider", "api_key", "base_url", "model"):
                value = getattr(args, key)
                if value is not None:
                    setattr(ai_config, key, value)
            ai_config.save(store)
        finally:
            store.close()
        shown = ai_config.to_dict()
        shown["apiKey"] = "***" if shown["apiKey"] else ""
        print(json.dumps(shown, indent=2))
        return

    with open_controller() as controller:
        ai_config = AIConfig.load(controller.store)
        updated = fill_missing_descriptions(controller, ai_config, show_progress=not args.quiet)
        if not args.quiet:
            console.print(f"[green]Generated {updated} descriptions[/green]")
        report_sync(controller, args.quiet)


def cmd_config(args):
    """Manage configuration."""
    config = get_config()

    if args.action == "show":
        if args.key:
            value = getattr(config, args.key, None)
            if value is not None:
                print(value)
            else:
                console.print(f"[red]Unknown config key: {args.key}[/red]")
                sys.exit(1)
        else:
            print(json.dumps(asdict(config), indent=2))

    elif args.action == "init":
        config_path = Path.home() / ".config" / "cloudnav" / "config.toml"
        config.save(config_path)
        console.print(f"[green]Created config at {config_path}[/green]")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cloudnav",
        description="CloudNav - personal bookmark dashboard with remote sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cloudnav login
  cloudnav add https://example.com --title "Example" --category dev
  cloudnav list --search python --unlock private=secret
  cloudnav list --query "links[?pinned].url"
  cloudnav category delete dev
  cloudnav import exported.json
  cloudnav webdav backup

Configuration:
  Config file: ~/.config/cloudnav/config.toml or ./cloudnav.toml
  Environment: CLOUDNAV_REMOTE_URL, CLOUDNAV_DATABASE, CLOUDNAV_LOG_LEVEL
        """
    )

    parser.add_argument("--db", help="Local cache database file")
    parser.add_argument("--remote", help="Remote dashboard URL")
    parser.add_argument("--config", help="Config file path")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-o", "--output", choices=["table", "json", "urls"], help="Output format")

    subparsers = parser.add_subparsers(dest="command", required=True)

    status = subparsers.add_parser("status", help="Show sync state")
    status.set_defaults(func=cmd_status)

    ls = subparsers.add_parser("list", help="List links")
    ls.add_argument("--category", help="Only this category id")
    ls.add_argument("--search", help="Filter by title, url or description")
    ls.add_argument("--pinned", action="store_true", help="Only pinned links")
    ls.add_argument("--unlock", action="append", metavar="CATEGORY=PASSWORD",
                    help="Unlock a protected category for this listing")
    ls.add_argument("--query", help="JMESPath query over the snapshot")
    ls.set_defaults(func=cmd_list)

    add = subparsers.add_parser("add", help="Add a link")
    add.add_argument("url", nargs="?", help="URL to add")
    add.add_argument("--title", help="Title (defaults to the URL)")
    add.add_argument("--category", help="Category id")
    add.add_argument("--description", help="Description")
    add.add_argument("--icon", help="Icon URL or glyph")
    add.add_argument("--pin", action="store_true", help="Pin the link")
    add.add_argument("--from-link", help="Page URL carrying add_url/add_title parameters")
    add.set_defaults(func=cmd_add)

    edit = subparsers.add_parser("edit", help="Edit a link")
    edit.add_argument("id", help="Link id")
    edit.add_argument("--title")
    edit.add_argument("--url")
    edit.add_argument("--category")
    edit.add_argument("--description", help="Empty string clears it")
    edit.add_argument("--icon", help="Empty string clears it")
    edit.set_defaults(func=cmd_edit)

    delete = subparsers.add_parser("delete", help="Delete links")
    delete.add_argument("ids", nargs="+", help="Link ids")
    delete.set_defaults(func=cmd_delete)

    pin = subparsers.add_parser("pin", help="Toggle pinned state")
    pin.add_argument("id", help="Link id")
    pin.set_defaults(func=cmd_pin)

    move = subparsers.add_parser("move", help="Move a link to another link's position")
    move.add_argument("source", help="Link id to move")
    move.add_argument("target", help="Link id whose position to take")
    move.set_defaults(func=cmd_move)

    category = subparsers.add_parser("category", help="Category management")
    category_sub = category.add_subparsers(dest="category_command", required=True)
    category_sub.add_parser("list", help="List categories")
    cat_add = category_sub.add_parser("add", help="Add a category")
    cat_add.add_argument("name")
    cat_add.add_argument("--icon")
    cat_add.add_argument("--password", help="Lock the category with a password")
    cat_edit = category_sub.add_parser("edit", help="Edit a category")
    cat_edit.add_argument("id")
    cat_edit.add_argument("--name")
    cat_edit.add_argument("--icon")
    cat_edit.add_argument("--password", help="Empty string removes the lock")
    cat_delete = category_sub.add_parser("delete", help="Delete a category")
    cat_delete.add_argument("id")
    category.set_defaults(func=cmd_category)

    imp = subparsers.add_parser("import", help="Import links/categories from JSON")
    imp.add_argument("file", help="JSON file with links and categories")
    imp.set_defaults(func=cmd_import)

    login = subparsers.add_parser("login", help="Log in with the shared password")
    login.add_argument("--password", help="Password (prompted when omitted)")
    login.set_defaults(func=cmd_login)

    logout = subparsers.add_parser("logout", help="Forget the stored credential")
    logout.set_defaults(func=cmd_logout)

    settings = subparsers.add_parser("settings", help="Show or change site settings")
    settings.add_argument("--title")
    settings.add_argument("--nav-title")
    settings.add_argument("--favicon")
    settings.add_argument("--card-style", choices=[s.value for s in CardStyle])
    settings.set_defaults(func=cmd_settings)

    webdav = subparsers.add_parser("webdav", help="WebDAV backup")
    webdav_sub = webdav.add_subparsers(dest="webdav_command", required=True)
    wd_config = webdav_sub.add_parser("config", help="Configure WebDAV")
    wd_config.add_argument("--url")
    wd_config.add_argument("--username")
    wd_config.add_argument("--password")
    wd_config.add_argument("--enable", dest="enable", action="store_true", default=None)
    wd_config.add_argument("--disable", dest="enable", action="store_false")
    webdav_sub.add_parser("check", help="Check the WebDAV connection")
    webdav_sub.add_parser("backup", help="Upload a backup")
    wd_restore = webdav_sub.add_parser("restore", help="Restore the backup")
    wd_restore.add_argument("--merge", action="store_true", help="Merge instead of replacing")
    webdav.set_defaults(func=cmd_webdav)

    ai = subparsers.add_parser("ai", help="AI link descriptions")
    ai_sub = ai.add_subparsers(dest="ai_command", required=True)
    ai_config = ai_sub.add_parser("config", help="Configure the AI provider")
    ai_config.add_argument("--provider", choices=["gemini", "openai"])
    ai_config.add_argument("--api-key")
    ai_config.add_argument("--base-url")
    ai_config.add_argument("--model")
    ai_sub.add_parser("describe", help="Generate missing descriptions")
    ai.set_defaults(func=cmd_ai)

    config = subparsers.add_parser("config", help="Configuration")
    config.add_argument("action", choices=["show", "init"])
    config.add_argument("key", nargs="?")
    config.set_defaults(func=cmd_config)

    return parser


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = init_config(
        config_file=Path(args.config) if args.config else None,
        database=args.db,
        remote_url=args.remote,
        output_format=args.output
    )
    if not args.output:
        args.output = config.output_format

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.log_level.upper(),
        format='%(levelname)s: %(message)s'
    )

    try:
        args.func(args)
    except AuthRequiredError:
        console.print("[yellow]Login required: run 'cloudnav login' first[/yellow]")
        sys.exit(2)
    except (UnauthorizedError, NetworkFailureError) as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
