"""CLI entry point for Gmail Gatekeeper."""

from __future__ import annotations

import time
from contextlib import contextmanager

import click

from gmail_gatekeeper import constants
from .action_log import last_action, pop_last_action, record_action
from .auth import check_auth, get_gmail_service
from .cleanup import CleanupWorker
from .display import (
    confirm_sweep,
    console,
    display_label_counts,
    display_screening_result,
    display_senders,
    display_sweep_result,
    display_sync_outcome,
    display_threads,
    display_triage_result,
)
from .engine import Gatekeeper
from .errors import GatekeeperError
from .labels import LabelResolver
from .logging_config import configure_logging
from .models import Settings
from .store import KeyValueStore

_LABEL_ALIASES = {
    "reply-later": constants.LABEL_REPLY_LATER,
    "set-aside": constants.LABEL_SET_ASIDE,
    "screener": constants.LABEL_SCREENER,
    "allowed": constants.LABEL_ALLOWED,
}


def _active_account() -> str:
    with KeyValueStore(db_path=constants.STATE_DB_PATH, namespace=constants.GLOBAL_NAMESPACE) as meta:
        return meta.get(constants.KEY_ACTIVE_ACCOUNT) or constants.USER_ID


def _remember_account(account: str) -> None:
    with KeyValueStore(db_path=constants.STATE_DB_PATH, namespace=constants.GLOBAL_NAMESPACE) as meta:
        meta.set(constants.KEY_ACTIVE_ACCOUNT, account)


def _open_store() -> KeyValueStore:
    """Store of the last account a command ran against (for offline commands)."""
    return KeyValueStore(db_path=constants.STATE_DB_PATH, namespace=_active_account())


@contextmanager
def _session(interactive: bool = True):
    """Yield a Gatekeeper bound to the authenticated account."""
    try:
        service = get_gmail_service(interactive=interactive)
    except (FileNotFoundError, PermissionError) as e:
        raise click.ClickException(str(e)) from e

    try:
        gk = Gatekeeper.for_service(service, db_path=constants.STATE_DB_PATH)
    except GatekeeperError as e:
        raise click.ClickException(str(e)) from e
    _remember_account(gk.store.namespace)

    with gk:
        try:
            yield gk
        except (GatekeeperError, ValueError) as e:
            raise click.ClickException(str(e)) from e


def _label_name(value: str) -> str:
    return _LABEL_ALIASES.get(value.lower(), value)


@click.group()
@click.version_option(version="0.1.0", prog_name="gmail-gatekeeper")
@click.option("--log-level", default=None, help="Log level (default from GATEKEEPER_LOG_LEVEL or INFO).")
def cli(log_level: str | None) -> None:
    """Gmail Gatekeeper - screen unknown senders and triage threads."""
    configure_logging(log_level)


@cli.command()
def auth() -> None:
    """Test or set up Gmail authentication."""
    email, error = check_auth()
    if email is None:
        raise click.ClickException(f"Authentication failed: {error}")
    _remember_account(email.strip().lower())
    console.print(f"Authenticated as [bold]{email}[/bold]")


# --- screening ---


@cli.command()
@click.argument("target")
def allow(target: str) -> None:
    """Approve a sender address or @domain."""
    with _session() as gk:
        result = gk.screener.allow(target)
    record_action("allow", result)
    display_screening_result(result)


@cli.command()
@click.argument("target")
def deny(target: str) -> None:
    """Screen out a sender address or @domain."""
    with _session() as gk:
        result = gk.screener.deny(target)
    record_action("deny", result)
    display_screening_result(result)


@cli.command(name="remove-allowed")
@click.argument("target")
def remove_allowed(target: str) -> None:
    """Withdraw an approval and send the sender's mail back to the Screener."""
    with _session() as gk:
        result = gk.screener.remove_allowed(target)
    display_screening_result(result)


@cli.command(name="remove-denied")
@click.argument("target")
def remove_denied(target: str) -> None:
    """Withdraw a screen-out decision for future mail."""
    with _session() as gk:
        result = gk.screener.remove_denied(target)
    display_screening_result(result)


@cli.command()
def undo() -> None:
    """Reverse the most recent allow or deny on exactly the messages it moved."""
    entry = last_action()
    if entry is None:
        raise click.ClickException("Nothing to undo.")

    with _session() as gk:
        if entry["action"] == "allow":
            result = gk.screener.undo_allow(entry["target"], entry["movedIds"], entry.get("filterId"))
        else:
            result = gk.screener.undo_deny(entry["target"], entry["movedIds"], entry.get("filterId"))
    pop_last_action()
    display_screening_result(result)


@cli.command()
def senders() -> None:
    """List allowed and screened-out senders."""
    with _session() as gk:
        allowed = gk.screener.list_allowed()
        screened_out = gk.screener.list_screened_out()
    display_senders(allowed, screened_out)


# --- triage ---


@cli.command(name="reply-later")
@click.argument("thread_ids", nargs=-1, required=True)
def reply_later(thread_ids: tuple[str, ...]) -> None:
    """Park threads in Reply Later."""
    with _session() as gk:
        display_triage_result(gk.triage.reply_later(list(thread_ids)))


@cli.command(name="set-aside")
@click.argument("thread_ids", nargs=-1, required=True)
def set_aside(thread_ids: tuple[str, ...]) -> None:
    """Park threads in Set Aside."""
    with _session() as gk:
        display_triage_result(gk.triage.set_aside(list(thread_ids)))


@cli.command(name="move-back")
@click.argument("label")
@click.argument("thread_ids", nargs=-1, required=True)
def move_back(label: str, thread_ids: tuple[str, ...]) -> None:
    """Return threads from a triage label (reply-later, set-aside) to the Inbox."""
    with _session() as gk:
        display_triage_result(gk.triage.move_back(_label_name(label), list(thread_ids)))


@cli.command()
@click.argument("thread_ids", nargs=-1, required=True)
def archive(thread_ids: tuple[str, ...]) -> None:
    """Archive threads and drop their triage labels."""
    with _session() as gk:
        display_triage_result(gk.triage.archive(list(thread_ids)))


@cli.command()
def counts() -> None:
    """Show how many threads sit in each gatekeeper label."""
    with _session() as gk:
        display_label_counts(gk.triage.label_counts())


@cli.command()
@click.argument("label")
@click.option("-m", "--max-threads", default=constants.LABELED_THREADS_LIMIT, type=click.IntRange(min=1))
def threads(label: str, max_threads: int) -> None:
    """List threads carrying LABEL (reply-later, set-aside, screener, allowed or a full name)."""
    name = _label_name(label)
    with _session() as gk:
        display_threads(name, gk.triage.labeled_threads(name, max_results=max_threads))


# --- screener mode & sync ---


@cli.command()
@click.option("--sweep", is_flag=True, help="Also move existing Inbox mail into the Screener.")
@click.option("-y", "--yes", is_flag=True, help="Do not ask before sweeping.")
def enable(sweep: bool, yes: bool) -> None:
    """Turn on screener mode."""
    if sweep and not yes and not confirm_sweep():
        console.print("[dim]Cancelled.[/dim]")
        return
    with _session() as gk:
        display_sweep_result(gk.screener.enable_screener(sweep_inbox=sweep))


@cli.command()
@click.option("--restore", is_flag=True, help="Move Screener mail back to the Inbox.")
def disable(restore: bool) -> None:
    """Turn off screener mode."""
    with _session() as gk:
        display_sweep_result(gk.screener.disable_screener(restore_to_inbox=restore))


@cli.command()
def sync() -> None:
    """Run one cleanup sync now."""
    with _session() as gk:
        display_sync_outcome(gk.cleanup.run())


@cli.command()
@click.option(
    "--interval",
    default=constants.CLEANUP_INTERVAL_SECONDS,
    type=click.IntRange(min=30),
    help="Seconds between cleanup runs.",
)
def watch(interval: int) -> None:
    """Run the cleanup sync periodically until interrupted."""
    with _session(interactive=False) as gk:
        worker = CleanupWorker(gk.cleanup, interval=interval)
        worker.start()
        console.print(f"[dim]Cleanup sync every {interval}s. Press Ctrl-C to stop.[/dim]")
        try:
            while worker.is_running():
                time.sleep(1)
        except KeyboardInterrupt:
            pass
        finally:
            worker.stop()


@cli.command()
@click.option("--sweep-cap", type=click.IntRange(min=1), default=None, help="Max messages per relabel pass.")
@click.option("--base-filter", default=None, help="Search filter applied when sweeping the Inbox.")
@click.option(
    "--clear-set-aside/--keep-set-aside",
    default=None,
    help="Whether a sent reply also clears Set Aside.",
)
def config(sweep_cap: int | None, base_filter: str | None, clear_set_aside: bool | None) -> None:
    """Show or change runtime settings."""
    with _open_store() as store:
        settings = Settings.load(store)
        if sweep_cap is not None:
            settings.sweep_cap = sweep_cap
        if base_filter is not None:
            settings.base_filter = base_filter.strip()
        if clear_set_aside is not None:
            settings.clear_set_aside_on_reply = clear_set_aside
        settings.save(store)

    console.print(f"[bold]Screener enabled:[/bold] {settings.screener_enabled}")
    console.print(f"[bold]Sweep cap:[/bold] {settings.sweep_cap}")
    console.print(f"[bold]Base filter:[/bold] {settings.base_filter or '(none)'}")
    console.print(f"[bold]Clear Set Aside on reply:[/bold] {settings.clear_set_aside_on_reply}")


@cli.group(name="cache")
def cache_group() -> None:
    """Manage the local state store."""


@cache_group.command(name="info")
def cache_info() -> None:
    """Show store statistics."""
    with _open_store() as store:
        info = store.get_info()
        labels = store.keys(constants.LABEL_CACHE_PREFIX)
        cursor = store.get(constants.KEY_LAST_HISTORY_ID)

    if info["key_count"] == 0:
        console.print("[dim]Store is empty.[/dim]")
        return

    console.print(f"[bold]Account:[/bold] {info['namespace']}")
    console.print(f"[bold]Database size:[/bold] {info['db_file_size'] / 1024:.1f} KB")
    console.print(f"[bold]Cached labels:[/bold] {len(labels)}")
    console.print(f"[bold]History cursor:[/bold] {cursor or '(not seeded)'}")


@cache_group.command(name="clear")
def cache_clear() -> None:
    """Forget cached label ids (e.g. after switching accounts)."""
    with _open_store() as store:
        LabelResolver(None, store).clear_cache()
    console.print("[green]Label cache cleared.[/green]")
