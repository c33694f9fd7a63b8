"""zkvault — zero-knowledge password vault on the command line.

Commands
--------
  signup    Create account keys and an empty encrypted vault
  add       Add a login
  get       Show a login (optionally copy password to clipboard)
  list      List all logins in a rich table
  update    Update fields on an existing login
  delete    Remove a login
  search    Full-text search across all fields
  generate  Generate strong random passwords
  export    Dump vault to a plaintext JSON export (handle with care)
  import    Merge or replace the vault from a JSON export
  info      Show vault metadata

The master password never leaves this process: the account file only holds
the email, the public salt and the derived auth key, and the vault file only
holds the ``{encrypted, iv}`` envelope.
"""

from __future__ import annotations

import asyncio
import hmac
import json
import logging
from collections.abc import Awaitable
from pathlib import Path
from typing import Annotated, Optional, TypeVar

import typer
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from . import __version__
from .codec import ImportStrategy, VaultCodec, parse_export
from .config import VaultConfig
from .crypto import derive_auth_key
from .exceptions import AuthenticationFailed, VaultError
from .models import VaultItem
from .passwords import generate_password
from .store import AccountFile, AccountRecord, FileEnvelopeStorage, atomic_write

T = TypeVar("T")

# ---------------------------------------------------------------------------
# App & consoles
# ---------------------------------------------------------------------------

_THEME = Theme(
    {
        "success": "bold green",
        "warning": "bold yellow",
        "danger": "bold red",
        "muted": "dim",
        "label": "cyan",
        "highlight": "bold white",
    }
)

console = Console(theme=_THEME)
err = Console(stderr=True, theme=_THEME)

app = typer.Typer(
    name="zkvault",
    help="[bold cyan]zkvault[/bold cyan] — zero-knowledge password vault.",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    add_completion=True,
)


@app.callback()
def _main(
    verbose: Annotated[bool, typer.Option("--verbose", "-V", help="Log vault operations to stderr.")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(console=err, show_path=False)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _config() -> VaultConfig:
    return VaultConfig.from_env()


def _codec(config: VaultConfig) -> VaultCodec:
    return VaultCodec(FileEnvelopeStorage(config.vault_path), config=config)


def _run(coro: Awaitable[T]) -> T:
    """Run a codec coroutine, turning vault errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except VaultError as exc:
        err.print(f"[danger]{exc}[/danger]")
        raise typer.Exit(1) from exc


def _require_account(config: VaultConfig) -> AccountRecord:
    account = AccountFile(config.account_path)
    if not account.exists():
        err.print(
            "[danger]No account found.[/danger] Run [bold]zkvault signup[/bold] first.",
        )
        raise typer.Exit(1)
    try:
        return account.load()
    except VaultError as exc:
        err.print(f"[danger]{exc}[/danger]")
        raise typer.Exit(1) from exc


async def _signin(codec: VaultCodec, record: AccountRecord, password: str) -> None:
    vault_key = await codec.signin(record.email, password, record.salt)
    auth_key = await asyncio.to_thread(derive_auth_key, vault_key, record.email)
    if not hmac.compare_digest(auth_key, record.auth_key):
        codec.sign_out()
        raise AuthenticationFailed("Wrong master password.")


def _unlock() -> tuple[VaultCodec, list[VaultItem]]:
    """Prompt for the master password; return a keyed codec and the vault."""
    config = _config()
    record = _require_account(config)
    password = Prompt.ask("Master password", password=True, console=console)
    codec = _codec(config)

    async def _open() -> list[VaultItem]:
        await _signin(codec, record, password)
        return await codec.read_vault()

    return codec, _run(_open())


def _find_one(items: list[VaultItem], site: str) -> VaultItem:
    """Return the unique item matching *site* (exact then partial, or by id)."""
    site_l = site.lower()
    by_id = [i for i in items if i.id == site]
    if by_id:
        return by_id[0]

    exact = [i for i in items if i.site.lower() == site_l]
    if len(exact) == 1:
        return exact[0]
    if len(exact) > 1:
        err.print(f"[warning]Multiple logins for '{site}' — pass the id instead.[/warning]")
        for i in exact:
            err.print(f"  • {i.site} / {i.username} ({i.id[:8]})")
        raise typer.Exit(1)

    partial = [i for i in items if site_l in i.site.lower()]
    if len(partial) == 1:
        return partial[0]
    if len(partial) > 1:
        err.print(f"[warning]Multiple partial matches for '{site}':[/warning]")
        for i in partial:
            err.print(f"  • {i.site} ({i.id[:8]})")
        raise typer.Exit(1)

    err.print(f"[danger]No login found matching '[bold]{site}[/bold]'.[/danger]")
    raise typer.Exit(1)


def _split_tags(tags: Optional[str]) -> Optional[list[str]]:
    if not tags:
        return None
    return [t.strip() for t in tags.split(",") if t.strip()]


def _render_item(item: VaultItem, *, show_password: bool = False) -> None:
    body = Text()

    def row(label: str, value: str, style: str = "highlight") -> None:
        body.append(f"  {label:<12}", style="label")
        body.append(value + "\n", style=style)

    row("Username", item.username)
    row("Password", item.password if show_password else "••••••••••••", style="bold green" if show_password else "muted")
    if item.notes:
        row("Notes", item.notes, style="italic")
    if item.tags:
        row("Tags", "  ".join(f"#{t}" for t in item.tags), style="yellow")
    row("Created", item.created_at, style="muted")
    row("ID", item.id[:8] + "…", style="muted")

    console.print(
        Panel(body, title=f"[bold cyan]{item.site}[/bold cyan]", expand=False, border_style="cyan")
    )


def _render_table(items: list[VaultItem], title: str = "Logins") -> None:
    table = Table(
        title=title,
        box=box.ROUNDED,
        header_style="bold cyan",
        show_lines=False,
        highlight=True,
        title_style="bold",
    )
    table.add_column("#", style="muted", justify="right", no_wrap=True)
    table.add_column("Site", style="bold white", min_width=16)
    table.add_column("Username", style="dim", min_width=14)
    table.add_column("Tags", style="yellow")
    table.add_column("Created", style="muted", no_wrap=True)

    for n, item in enumerate(sorted(items, key=lambda x: x.site.lower()), 1):
        table.add_row(
            str(n),
            item.site,
            item.username,
            " ".join(f"#{t}" for t in item.tags or []),
            item.created_at[:10],
        )
    console.print(table)


def _copy(value: str, message: str) -> None:
    try:
        import pyperclip  # noqa: PLC0415

        pyperclip.copy(value)
        console.print(f"[success]{message}[/success]")
    except Exception:
        console.print("[warning]Could not access clipboard. Is pyperclip installed and configured?[/warning]")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def signup(
    email: Annotated[str, typer.Option("--email", "-e", prompt=True, help="Account email.")],
) -> None:
    """Create account keys and an empty encrypted vault."""
    config = _config()
    account = AccountFile(config.account_path)

    if account.exists():
        overwrite = Confirm.ask(
            "[warning]An account already exists here. Overwrite it (the old vault becomes unreadable)?[/warning]",
            default=False,
            console=console,
        )
        if not overwrite:
            raise typer.Exit(0)

    console.print(
        Panel(
            "[bold]Welcome to zkvault[/bold]\n"
            "[muted]Choose a strong master password — it cannot be recovered if lost.[/muted]",
            title="[bold cyan]Account Creation[/bold cyan]",
            border_style="cyan",
            expand=False,
        )
    )

    pw = Prompt.ask("  Master password", password=True, console=console)
    if not pw:
        err.print("[danger]Master password cannot be empty.[/danger]")
        raise typer.Exit(1)
    confirm = Prompt.ask("  Confirm password", password=True, console=console)
    if pw != confirm:
        err.print("[danger]Passwords do not match.[/danger]")
        raise typer.Exit(1)

    codec = _codec(config)

    async def _create() -> AccountRecord:
        keys = await codec.signup(email, pw)
        await codec.signin(email, pw, keys.salt)
        await codec.write_vault([])
        codec.sign_out()
        return AccountRecord(email=email, salt=keys.salt, auth_key=keys.auth_key)

    account.save(_run(_create()))
    console.print(f"\n[success]Account created →[/success] [bold]{config.home}[/bold]")
    console.print("[muted]Only the salt and auth key are stored; your master password is not.[/muted]")


@app.command()
def add(
    site: Annotated[str, typer.Argument(help="Site or service name.")],
    username: Annotated[Optional[str], typer.Option("--username", "-u", help="Username or email.")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", "-n", help="Free-form notes.")] = None,
    tags: Annotated[Optional[str], typer.Option("--tags", "-t", help="Comma-separated tags.")] = None,
    generate: Annotated[bool, typer.Option("--generate", "-g", help="Auto-generate a password.")] = False,
    length: Annotated[int, typer.Option("--length", "-l", help="Generated password length.")] = 20,
    no_symbols: Annotated[bool, typer.Option("--no-symbols", help="Exclude symbols from generated password.")] = False,
) -> None:
    """Add a new login to the vault."""
    codec, _ = _unlock()

    console.print(f"\n[bold cyan]Adding[/bold cyan] [bold]{site}[/bold]\n")

    if username is None:
        username = Prompt.ask("  Username", console=console)
    if generate:
        item_pw = generate_password(length, symbols=not no_symbols)
        console.print(f"  [muted]Generated:[/muted] [bold green]{item_pw}[/bold green]")
    else:
        item_pw = Prompt.ask("  Password", password=True, console=console)
    if notes is None:
        notes = Prompt.ask("  Notes    [muted](blank to skip)[/muted]", default="", console=console) or None

    if not username or not item_pw:
        err.print("[danger]Username and password are required.[/danger]")
        raise typer.Exit(1)

    item = VaultItem(site=site, username=username, password=item_pw, notes=notes, tags=_split_tags(tags))
    _run(codec.add_item(item))
    console.print(f"\n[success]Login for '[bold]{site}[/bold]' saved.[/success]")


@app.command()
def get(
    site: Annotated[str, typer.Argument(help="Site name (exact or partial) or item id.")],
    show: Annotated[bool, typer.Option("--show", "-s", help="Display password in plain text.")] = False,
    copy: Annotated[bool, typer.Option("--copy", "-c", help="Copy password to clipboard.")] = False,
) -> None:
    """Retrieve a login and display its details."""
    _, items = _unlock()
    item = _find_one(items, site)
    _render_item(item, show_password=show)

    if copy:
        _copy(item.password, "Password copied to clipboard.")


@app.command("list")
def list_items(
    tag: Annotated[Optional[str], typer.Option("--tag", "-t", help="Filter by tag.")] = None,
) -> None:
    """List all logins in a formatted table."""
    _, items = _unlock()

    if tag:
        items = [i for i in items if tag.lower() in (t.lower() for t in i.tags or [])]

    if not items:
        console.print("[muted]No logins match your query.[/muted]")
        return

    _render_table(items, title=f"Logins ({len(items)} total)")


@app.command()
def update(
    site: Annotated[str, typer.Argument(help="Site name (exact or partial) or item id.")],
    new_site: Annotated[Optional[str], typer.Option("--site", help="Rename the site.")] = None,
    username: Annotated[Optional[str], typer.Option("--username", "-u", help="New username.")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", "-n", help="New notes.")] = None,
    tags: Annotated[Optional[str], typer.Option("--tags", "-t", help="Replace tags (comma-separated).")] = None,
    generate: Annotated[bool, typer.Option("--generate", "-g", help="Auto-generate a new password.")] = False,
    length: Annotated[int, typer.Option("--length", "-l", help="Generated password length.")] = 20,
    no_symbols: Annotated[bool, typer.Option("--no-symbols", help="Exclude symbols from generated password.")] = False,
) -> None:
    """Update an existing login."""
    codec, items = _unlock()
    item = _find_one(items, site).model_copy()

    changed = False

    if new_site and new_site != item.site:
        item.site = new_site
        changed = True
    if username:
        item.username = username
        changed = True
    if notes is not None:
        item.notes = notes or None
        changed = True
    if tags is not None:
        item.tags = _split_tags(tags)
        changed = True

    if generate:
        item.password = generate_password(length, symbols=not no_symbols)
        console.print(f"  [muted]New password:[/muted] [bold green]{item.password}[/bold green]")
        changed = True
    else:
        new_pw = Prompt.ask(
            "  New password [muted](blank to keep current)[/muted]",
            password=True,
            default="",
            console=console,
        )
        if new_pw:
            item.password = new_pw
            changed = True

    if not changed:
        console.print("[muted]No changes made.[/muted]")
        return

    _run(codec.update_item(item))
    console.print(f"[success]Login '[bold]{item.site}[/bold]' updated.[/success]")


@app.command()
def delete(
    site: Annotated[str, typer.Argument(help="Site name (exact or partial) or item id.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
) -> None:
    """Permanently delete a login."""
    codec, items = _unlock()
    item = _find_one(items, site)

    if not yes:
        confirmed = Confirm.ask(
            f"  Delete '[bold]{item.site}[/bold]' ({item.username})? [muted]This cannot be undone.[/muted]",
            default=False,
            console=console,
        )
        if not confirmed:
            raise typer.Exit(0)

    _run(codec.delete_item(item.id))
    console.print(f"[danger]Login '[bold]{item.site}[/bold]' deleted.[/danger]")


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Search term (matches site, username, notes, tags).")],
) -> None:
    """Search logins across all fields."""
    _, items = _unlock()

    q = query.lower()
    results = [
        i
        for i in items
        if q in i.site.lower()
        or q in i.username.lower()
        or (i.notes and q in i.notes.lower())
        or any(q in t.lower() for t in i.tags or [])
    ]

    if not results:
        console.print(f"[muted]No results for '[bold]{query}[/bold]'.[/muted]")
        return

    _render_table(results, title=f"Search: {query}  ({len(results)} match{'es' if len(results) != 1 else ''})")


@app.command()
def generate(
    length: Annotated[int, typer.Option("--length", "-l", help="Password length.")] = 20,
    count: Annotated[int, typer.Option("--count", "-c", help="Number of passwords to generate.")] = 1,
    no_symbols: Annotated[bool, typer.Option("--no-symbols", help="Exclude symbols.")] = False,
    no_digits: Annotated[bool, typer.Option("--no-digits", help="Exclude digits.")] = False,
    no_uppercase: Annotated[bool, typer.Option("--no-uppercase", help="Exclude uppercase letters.")] = False,
    copy: Annotated[bool, typer.Option("--copy", help="Copy first password to clipboard.")] = False,
) -> None:
    """Generate one or more strong random passwords."""
    try:
        passwords = [
            generate_password(length, uppercase=not no_uppercase, digits=not no_digits, symbols=not no_symbols)
            for _ in range(count)
        ]
    except VaultError as exc:
        err.print(f"[danger]{exc}[/danger]")
        raise typer.Exit(1) from exc

    if count == 1:
        console.print(
            Panel(
                f"[bold green]{passwords[0]}[/bold green]",
                title=f"[bold]Generated password ({length} chars)[/bold]",
                border_style="green",
                expand=False,
            )
        )
    else:
        console.print(f"\n[bold]Generated {count} passwords ({length} chars each)[/bold]\n")
        for n, pw in enumerate(passwords, 1):
            console.print(f"  [muted]{n:>3}.[/muted]  [bold green]{pw}[/bold green]")
        console.print()

    if copy and passwords:
        _copy(passwords[0], "First password copied to clipboard.")


@app.command("export")
def export_cmd(
    output: Annotated[Path, typer.Option("--output", "-o", help="Output file path.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
) -> None:
    """Export the vault as plaintext JSON (handle with care)."""
    codec, _ = _unlock()

    console.print(
        "[warning]WARNING:[/warning] The exported file will contain [bold]plaintext[/bold] passwords."
    )
    if not yes and not Confirm.ask("  Continue?", default=False, console=console):
        raise typer.Exit(0)

    document = _run(codec.export_vault())
    atomic_write(output, json.dumps(document.to_wire(), indent=2, ensure_ascii=False).encode("utf-8"))
    console.print(
        f"\n[success]Exported {len(document.data)} login(s) →[/success] [bold]{output}[/bold]"
    )


@app.command("import")
def import_cmd(
    source: Annotated[Path, typer.Argument(help="JSON file to import (from 'zkvault export').")],
    strategy: Annotated[
        ImportStrategy,
        typer.Option("--strategy", "-s", help="merge keeps existing items; replace discards them."),
    ] = ImportStrategy.MERGE,
) -> None:
    """Import logins from a JSON export file."""
    if not source.exists():
        err.print(f"[danger]File not found: {source}[/danger]")
        raise typer.Exit(1)

    try:
        document = json.loads(source.read_text())
    except json.JSONDecodeError as exc:
        err.print(f"[danger]Invalid JSON: {exc}[/danger]")
        raise typer.Exit(1) from exc

    codec, before = _unlock()

    async def _import() -> list[VaultItem]:
        return await codec.import_vault(parse_export(document), strategy)

    result = _run(_import())
    console.print(
        f"[success]Import complete ({strategy.value}):[/success] "
        f"{len(before)} → {len(result)} login(s)."
    )


@app.command()
def info() -> None:
    """Show vault metadata and location."""
    config = _config()
    account = AccountFile(config.account_path)
    vault_path = config.vault_path

    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Version", __version__)
    table.add_row("Home", str(config.home))
    table.add_row("KDF", f"PBKDF2-HMAC-SHA512, {config.kdf_iterations:,} iterations")
    table.add_row("Cipher", "AES-256-GCM")
    table.add_row("Account", "[green]yes[/green]" if account.exists() else "[red]no[/red]")

    if account.exists():
        record = _require_account(config)
        table.add_row("Email", record.email)
        table.add_row("Salt", record.salt)

    if vault_path.exists():
        size_kb = vault_path.stat().st_size / 1024
        table.add_row("Vault size", f"{size_kb:.1f} KB")

    console.print(Panel(table, title="[bold cyan]zkvault info[/bold cyan]", border_style="cyan", expand=False))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    app()


if __name__ == "__main__":
    main()
