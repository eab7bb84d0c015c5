"""CLI entry point for filterfolders.

Commands:
    filterfolders accounts    - list the configured IMAP account
    filterfolders analyze     - report folders missing for a rules file
    filterfolders create      - create missing folders (from rules or paths)
    filterfolders discover    - find new senders and propose rules for them
    filterfolders infer-root  - guess the root folder used by existing rules
    filterfolders sort        - sort a rules file by target folder
    filterfolders set-types   - rewrite the trigger type of every rule
    filterfolders history     - show recent creation batches
"""

import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path

import click

from filterfolders.config import (
    AUDIT_LOG_PATH,
    IMAP_ACCOUNT_NAME,
    ConfigError,
    load_account_config,
    load_preferences,
)
from filterfolders.schemas.config import Preferences
from filterfolders.schemas.folders import (
    ErrorEvent,
    FolderCompleteEvent,
    FolderEvent,
    PathState,
    ProgressEvent,
)

logger = logging.getLogger("filterfolders")

_rules_file = click.Path(exists=True, dir_okay=False, path_type=Path)


def _open_host():
    """Build the IMAP host from config (not yet connected)."""
    from filterfolders.integrations.imap import ImapMailHost

    try:
        account_config = load_account_config()
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        click.echo("Set these in secrets/filterfolders.env or the environment.", err=True)
        sys.exit(1)
    return ImapMailHost(account_config)


def _preferences() -> Preferences:
    try:
        return load_preferences()
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


def _read_rules(path: Path | None) -> str:
    if path is None:
        return ""
    return path.read_text(encoding="utf-8")


def _write_output(text: str, output: Path | None) -> None:
    if output is None:
        click.echo(text, nl=False)
    else:
        output.write_text(text, encoding="utf-8")
        click.echo(f"Wrote {output}", err=True)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """filterfolders: keep Thunderbird filter rules and IMAP folders in step."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


# ------------------------------------------------------------------
# filterfolders accounts
# ------------------------------------------------------------------


@cli.command()
def accounts() -> None:
    """List the configured IMAP account and its top-level folders."""
    asyncio.run(_accounts_async())


async def _accounts_async() -> None:
    from filterfolders.folders.tree import list_imap_accounts

    async with _open_host() as host:
        found = await list_imap_accounts(host)
        if not found:
            click.echo("No IMAP accounts found.")
            return
        for account in found:
            emails = ", ".join(i.email for i in account.identities) or "(no identity)"
            click.echo(f"{account.name} (id={account.id}): {emails}")
            click.echo(f"  Folders: {', '.join(f.name for f in account.folders)}")


# ------------------------------------------------------------------
# filterfolders analyze
# ------------------------------------------------------------------


@cli.command()
@click.argument("rules_file", type=_rules_file)
@click.option("--account", "account_id", default=IMAP_ACCOUNT_NAME, show_default=True)
@click.option(
    "--merge-case/--no-merge-case",
    default=None,
    help="Treat folders differing only in case as present (default from config).",
)
def analyze(rules_file: Path, account_id: str, merge_case: bool | None) -> None:
    """Report which target folders of RULES_FILE are missing."""
    prefs = _preferences()
    if merge_case is None:
        merge_case = prefs.merge_case
    asyncio.run(_analyze_async(_read_rules(rules_file), account_id, merge_case))


async def _analyze_async(rules_text: str, account_id: str, merge_case: bool) -> None:
    from filterfolders.folders.reconcile import analyze as analyze_rules

    async with _open_host() as host:
        result = await analyze_rules(host, account_id, rules_text, merge_case=merge_case)

    click.echo(f"Rules: {result.total_rules}")
    click.echo(f"Target folders: {result.total_leafs}")
    click.echo(f"Missing: {len(result.missing)}")
    if not result.missing:
        click.echo("All folders exist.")
        return
    for path in result.missing:
        click.echo(f"  {path}")


# ------------------------------------------------------------------
# filterfolders create
# ------------------------------------------------------------------


def _echo_event(event: FolderEvent) -> None:
    if isinstance(event, ProgressEvent):
        click.echo(f"[{event.current}/{event.total}] {event.path}")
    elif isinstance(event, FolderCompleteEvent):
        if event.state == PathState.ALREADY_EXISTS:
            click.echo("  already exists")
        elif event.state == PathState.FAILED:
            click.echo("  FAILED", err=True)
    elif isinstance(event, ErrorEvent):
        click.echo(f"Error: {event.error}", err=True)


@contextlib.contextmanager
def _stop_on_interrupt(stop: asyncio.Event):
    """Turn Ctrl+C into a cooperative stop between paths."""
    loop = asyncio.get_running_loop()
    installed = False
    with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
        loop.add_signal_handler(signal.SIGINT, stop.set)
        installed = True
    try:
        yield
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


@cli.command()
@click.option("--rules", "rules_file", type=_rules_file, help="Create folders missing for this rules file.")
@click.option("--path", "extra_paths", multiple=True, help="Folder path to create (repeatable).")
@click.option("--account", "account_id", default=IMAP_ACCOUNT_NAME, show_default=True)
@click.option("--merge-case/--no-merge-case", default=None, help="Default from config.")
def create(
    rules_file: Path | None,
    extra_paths: tuple[str, ...],
    account_id: str,
    merge_case: bool | None,
) -> None:
    """Create missing folders, parents first. Ctrl+C stops after the current path."""
    if rules_file is None and not extra_paths:
        click.echo("Error: give --rules and/or at least one --path.", err=True)
        sys.exit(1)
    prefs = _preferences()
    if merge_case is None:
        merge_case = prefs.merge_case
    ok = asyncio.run(
        _create_async(_read_rules(rules_file), list(extra_paths), account_id, merge_case)
    )
    if not ok:
        sys.exit(1)


async def _create_async(
    rules_text: str, extra_paths: list[str], account_id: str, merge_case: bool
) -> bool:
    from filterfolders.folders.reconcile import analyze as analyze_rules
    from filterfolders.orchestrator.pipelines import run_folder_creation
    from filterfolders.rules.paths import clean_path

    async with _open_host() as host:
        paths: list[str] = []
        if rules_text:
            result = await analyze_rules(host, account_id, rules_text, merge_case=merge_case)
            paths.extend(result.missing)
        paths.extend(clean_path(p) for p in extra_paths if clean_path(p))
        paths = list(dict.fromkeys(paths))
        if not paths:
            click.echo("Nothing to create.")
            return True

        click.echo(f"Creating {len(paths)} folder path(s)…")
        stop = asyncio.Event()
        with _stop_on_interrupt(stop):
            results = await run_folder_creation(
                host=host,
                account_id=account_id,
                paths=paths,
                on_event=_echo_event,
                stop=stop,
                audit_log_path=AUDIT_LOG_PATH,
            )

    if results is None:
        return False

    existing = results.paths_in_state(PathState.ALREADY_EXISTS)
    click.echo(
        f"\nDone. Created: {len(results.created) - len(existing)}, "
        f"Already existed: {len(existing)}, Failed: {len(results.failed)}"
    )
    for failure in results.failed:
        click.echo(f"  {failure.path}: {failure.error}", err=True)
    if results.cancelled:
        click.echo(f"Stopped by user. Not started: {len(results.pending)}")
    return not results.failed


# ------------------------------------------------------------------
# filterfolders discover
# ------------------------------------------------------------------


@cli.command()
@click.argument("folder")
@click.option("--rules", "rules_file", type=_rules_file, help="Existing rules (skip known senders, infer root).")
@click.option("--root", default=None, help="Root folder for new senders (default: config, else inferred).")
@click.option("--limit", "-n", type=int, default=None, help="Messages to scan (default from config).")
@click.option("--account", "account_id", default=IMAP_ACCOUNT_NAME, show_default=True)
@click.option("--generate", "-g", is_flag=True, help="Print rules for the discovered senders.")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write the rules file with generated rules appended.")
@click.option("--sort/--no-sort", "sort_output", default=True, show_default=True, help="Sort the written rules file.")
@click.option("--override-account", is_flag=True, help="Use the account's URI when the rules target another account.")
@click.option("--create-folders", is_flag=True, help="Also create the discovered folders.")
def discover(
    folder: str,
    rules_file: Path | None,
    root: str | None,
    limit: int | None,
    account_id: str,
    generate: bool,
    output: Path | None,
    sort_output: bool,
    override_account: bool,
    create_folders: bool,
) -> None:
    """Scan FOLDER for senders that have no filing rule yet."""
    prefs = _preferences()
    if root is None and prefs.default_root:
        root = prefs.default_root
    asyncio.run(
        _discover_async(
            folder,
            _read_rules(rules_file),
            root=root,
            limit=limit or prefs.scan_limit,
            account_id=account_id,
            prefs=prefs,
            generate=generate,
            output=output,
            sort_output=sort_output,
            override_account=override_account,
            create_folders=create_folders,
        )
    )


async def _discover_async(
    folder: str,
    rules_text: str,
    *,
    root: str | None,
    limit: int,
    account_id: str,
    prefs: Preferences,
    generate: bool,
    output: Path | None,
    sort_output: bool,
    override_account: bool,
    create_folders: bool,
) -> None:
    from filterfolders.folders.tree import get_account
    from filterfolders.orchestrator.pipelines import (
        build_sender_rules,
        run_folder_creation,
        run_sender_discovery,
    )
    from filterfolders.rules.generator import account_base_uri, append_rules, sort_raw_rules

    async with _open_host() as host:
        result = await run_sender_discovery(
            host=host, folder_id=folder, rules_text=rules_text, root=root, limit=limit
        )
        click.echo(f"Found {len(result.senders)} new sender(s) ({result.scanned} scanned).")
        if result.root:
            click.echo(f"Root: {result.root}")
        for sender in sorted(result.senders, key=lambda s: s.email):
            click.echo(f"  {sender.email:<40} {sender.path}")

        if not result.senders:
            return

        if generate or output:
            account = await get_account(host, account_id)
            generated = build_sender_rules(
                rules_text,
                result.senders,
                account_uri=account_base_uri(account),
                type_mask=prefs.type_mask,
                override_account=override_account,
            )
            if generated.mismatch:
                click.echo(
                    f"Warning: rules target {generated.mismatch[1]} "
                    f"but the account is {generated.mismatch[0]}.",
                    err=True,
                )
            if output:
                combined = append_rules(rules_text, generated.text)
                if sort_output:
                    combined = sort_raw_rules(combined)
                _write_output(combined, output)
            else:
                click.echo("")
                click.echo(generated.text)

        if create_folders:
            stop = asyncio.Event()
            with _stop_on_interrupt(stop):
                results = await run_folder_creation(
                    host=host,
                    account_id=account_id,
                    paths=[s.path for s in result.senders if s.selected],
                    on_event=_echo_event,
                    stop=stop,
                    audit_log_path=AUDIT_LOG_PATH,
                )
            if results is not None:
                click.echo(
                    f"Folders done. Succeeded: {len(results.created)}, Failed: {len(results.failed)}"
                )


# ------------------------------------------------------------------
# filterfolders infer-root / sort / set-types (offline)
# ------------------------------------------------------------------


@cli.command("infer-root")
@click.argument("rules_file", type=_rules_file)
def infer_root_cmd(rules_file: Path) -> None:
    """Guess the root folder under which RULES_FILE files its senders."""
    from filterfolders.discovery.senders import infer_root
    from filterfolders.rules.parser import parse_rules

    root = infer_root(parse_rules(_read_rules(rules_file)))
    if root is None:
        click.echo("No root found: no rule files a sender under its reverse-domain path.")
        sys.exit(1)
    click.echo(root or "(top level)")


@cli.command("sort")
@click.argument("rules_file", type=_rules_file)
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Output file (default: stdout).")
@click.option("--in-place", "-i", is_flag=True, help="Rewrite RULES_FILE.")
def sort_cmd(rules_file: Path, output: Path | None, in_place: bool) -> None:
    """Sort the rules of RULES_FILE by target folder."""
    from filterfolders.rules.generator import sort_raw_rules

    sorted_text = sort_raw_rules(_read_rules(rules_file))
    _write_output(sorted_text, rules_file if in_place else output)


@cli.command("set-types")
@click.argument("rules_file", type=_rules_file)
@click.option("--manual/--no-manual", default=None, help="Run when filters are run manually.")
@click.option("--new-mail/--no-new-mail", default=None, help="Run on new mail.")
@click.option("--after-sending/--no-after-sending", default=None, help="Run after sending.")
@click.option("--archiving/--no-archiving", default=None, help="Run when archiving.")
@click.option("--periodic/--no-periodic", default=None, help="Run periodically.")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Output file (default: stdout).")
@click.option("--in-place", "-i", is_flag=True, help="Rewrite RULES_FILE.")
def set_types(
    rules_file: Path,
    manual: bool | None,
    new_mail: bool | None,
    after_sending: bool | None,
    archiving: bool | None,
    periodic: bool | None,
    output: Path | None,
    in_place: bool,
) -> None:
    """Set the trigger type of every rule in RULES_FILE (defaults from config)."""
    from filterfolders.rules.generator import update_filter_types
    from filterfolders.schemas.rules import calculate_type

    options = _preferences().filter_type_options()
    overrides = {
        "manual": manual,
        "new_mail": new_mail,
        "after_sending": after_sending,
        "archiving": archiving,
        "periodic": periodic,
    }
    options = options.model_copy(update={k: v for k, v in overrides.items() if v is not None})
    mask = calculate_type(options)

    text = _read_rules(rules_file)
    updated = update_filter_types(text, mask)
    if updated == text:
        click.echo(f"All rules already use type={mask}.", err=True)
    _write_output(updated, rules_file if in_place else output)


# ------------------------------------------------------------------
# filterfolders history
# ------------------------------------------------------------------


@cli.command()
@click.option("--limit", "-n", default=10, show_default=True, help="Number of batches to show.")
def history(limit: int) -> None:
    """Show recent folder creation batches."""
    from filterfolders.audit.creation_log import CreationAuditLog

    entries = CreationAuditLog(AUDIT_LOG_PATH).read_entries(limit=limit)
    if not entries:
        click.echo("No creation batches recorded.")
        return
    for entry in entries:
        stamp = entry.timestamp.strftime("%Y-%m-%d %H:%M")
        click.echo(
            f"{stamp} {entry.account_id}: requested={entry.requested} "
            f"created={len(entry.created)} existing={len(entry.already_existed)} "
            f"failed={len(entry.failed)}"
            + (" (stopped)" if entry.cancelled else "")
        )
        for failure in entry.failed:
            click.echo(f"  failed {failure.path}: {failure.error}")
