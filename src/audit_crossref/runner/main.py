"""
CLI main entry point.

Every command works on the stored session of one identity (-u/--user): the
session is opened (recovering a stored one), the command runs, and mutating
commands save the session back before exiting.
"""

import argparse
import getpass
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..config import Config, ConfigValidationError, create_default_config, load_config
from ..errors import AuditCrossrefError
from ..schemas.audit import AuditFileCategory
from ..search import SEARCH_INACTIVE, SearchEngine
from ..services import IngestionService, ReconciliationService, UploadedFile
from ..session import SessionContext, SessionState
from ..session_client import RemoteSessionClient
from ..state_store import SessionBackend, SqliteStateStore

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_backend(config: Config, store: SqliteStateStore) -> SessionBackend:
    """Pick the session backend named in the configuration."""
    errors = config.validate()
    if errors:
        raise ConfigValidationError("; ".join(errors))
    if config.session.backend == "remote":
        return RemoteSessionClient(
            base_url=config.session.remote_url,
            token=config.session.remote_token,
            timeout=config.session.timeout_seconds,
            max_retries=config.session.max_retries,
        )
    return store


@contextmanager
def open_session(config: Config, user: str) -> Iterator[SessionContext]:
    """Open the user's session (recovering a stored one) for one command."""
    store = SqliteStateStore(config.state_db_path)
    ctx = SessionContext(create_backend(config, store), store, config, autosave=False)
    if ctx.start(user) == SessionState.AWAITING_RECOVERY_CHOICE:
        ctx.recover()
    try:
        yield ctx
    finally:
        ctx.stop()


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="audit-crossref",
        description="Cross-reference bank movements, XML exchange records and customs declarations",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-u",
        "--user",
        type=str,
        default=None,
        help="Session identity (default: $AUDIT_USER or the login name)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("init-config", help="Write a default config file")

    # ingest command
    ingest_parser = subparsers.add_parser("ingest", help="Add files to the session")
    ingest_parser.add_argument("files", nargs="+", type=Path, help="Files to add")
    ingest_parser.add_argument(
        "--category",
        choices=[c.value for c in AuditFileCategory],
        default=AuditFileCategory.XMLS.value,
        help="Upload category (default: xmls)",
    )

    # remove command
    remove_parser = subparsers.add_parser("remove", help="Remove an uploaded file")
    remove_parser.add_argument("file_id", help="Registry file id")
    remove_parser.add_argument(
        "--category",
        choices=[c.value for c in AuditFileCategory],
        default=AuditFileCategory.XMLS.value,
        help="Upload category (default: xmls)",
    )

    # search command
    search_parser = subparsers.add_parser("search", help="Search XML lines")
    search_parser.add_argument("term", help="Text to look for (case-insensitive)")
    search_parser.add_argument(
        "--limit", type=int, default=50, help="Maximum hits to print (default: 50)"
    )

    # resolve command
    resolve_parser = subparsers.add_parser(
        "resolve", help="Find the XML line for a declaration number or amount"
    )
    resolve_parser.add_argument("--ndec", type=str, help="Declaration number")
    resolve_parser.add_argument("--amount", type=float, help="Movement amount")
    resolve_parser.add_argument("--date", type=str, help="Movement date (informational)")
    resolve_parser.add_argument("--movement", type=str, help="Movement id to link")

    # link-declaration command
    link_parser = subparsers.add_parser(
        "link-declaration", help="Link a movement to a declaration file"
    )
    link_parser.add_argument("movement", help="Movement id")
    link_target = link_parser.add_mutually_exclusive_group(required=True)
    link_target.add_argument("--file", type=str, help="Declaration file name")
    link_target.add_argument("--ndec", type=str, help="Declaration number")

    # comment command
    comment_parser = subparsers.add_parser("comment", help="Comment an XML line")
    comment_parser.add_argument("file_id", help="Line file id")
    comment_parser.add_argument("line_id", help="Line id")
    comment_parser.add_argument("text", help="Comment text")
    comment_parser.add_argument(
        "--save-for-future",
        action="store_true",
        help="Also add the comment to the comment bank",
    )

    # links command
    links_parser = subparsers.add_parser("links", help="Report dangling links")
    links_parser.add_argument(
        "--prune", action="store_true", help="Remove links whose target is gone"
    )

    subparsers.add_parser("alerts", help="List lines with problem comments")

    # export / import commands
    export_parser = subparsers.add_parser("export", help="Write a portable snapshot file")
    export_parser.add_argument("path", type=Path, help="Output JSON file")
    import_parser = subparsers.add_parser("import", help="Load a portable snapshot file")
    import_parser.add_argument("path", type=Path, help="Snapshot JSON file")

    subparsers.add_parser("sessions", help="List stored sessions")
    subparsers.add_parser("status", help="Show session status")

    return parser


def cmd_init_config(config_path: Path) -> int:
    """Write a default config file."""
    if config_path.exists():
        print(f"❌ Config file already exists: {config_path}")
        return 1
    create_default_config(config_path)
    print(f"✓ Created {config_path}")
    return 0


def cmd_ingest(config: Config, user: str, files: list[Path], category: str) -> int:
    """Add files to the session."""
    uploads = []
    for path in files:
        try:
            uploads.append(UploadedFile.from_path(path))
        except OSError as e:
            print(f"❌ Cannot read {path}: {e}")
            return 1

    with open_session(config, user) as ctx:
        service = IngestionService(ctx.workspace, ctx.blobs)
        report = service.add_files(AuditFileCategory(category), uploads)
        ctx.save_now()

    for entry in report.added:
        print(f"  ✓ {entry.name} ({entry.id})")
    for failure in report.failures:
        print(f"  ❌ {failure}")
    for line_file in report.line_files:
        print(f"    {line_file.name}: {len(line_file)} lines")
    print(f"\n✓ Added {len(report.added)} files, {len(report.failures)} failed")
    return 0 if report.success else 1


def cmd_remove(config: Config, user: str, file_id: str, category: str) -> int:
    """Remove an uploaded file."""
    with open_session(config, user) as ctx:
        removed = IngestionService(ctx.workspace, ctx.blobs).remove_file(
            AuditFileCategory(category), file_id
        )
        if removed:
            ctx.save_now()

    if not removed:
        print(f"❌ No {category} file with id {file_id}")
        return 1
    print(f"✓ Removed {file_id} (links to it are kept as dangling)")
    return 0


def cmd_search(config: Config, user: str, term: str, limit: int) -> int:
    """Search XML lines."""
    with open_session(config, user) as ctx:
        results = SearchEngine(ctx.workspace.line_store, config.search).search(term)

    if results is SEARCH_INACTIVE:
        print(f"ℹ️  Search needs at least {config.search.min_term_length} characters")
        return 1

    print(f"\n🔍 {len(results)} matches for '{term}'")
    for hit in results[:limit]:
        print(f"  {hit.file_name}:{hit.line_number} (page {hit.page})  {hit.content.strip()}")
    if len(results) > limit:
        print(f"  ... {len(results) - limit} more")
    return 0


def cmd_resolve(
    config: Config,
    user: str,
    ndec: str | None,
    amount: float | None,
    date: str | None,
    movement: str | None,
) -> int:
    """Find the XML line for a declaration number or amount."""
    with open_session(config, user) as ctx:
        result = ReconciliationService(ctx.workspace, config).resolve(
            declaration_number=ndec, amount=amount, date=date, movement_id=movement
        )
        if result.status_changed or result.link_created:
            ctx.save_now()

    if not result.found:
        print(f"❌ {result.message}")
        return 1

    print(f"✓ {result.message}")
    print(f"  Line id:        {result.line_id}")
    print(f"  Marked reviewed: {'yes' if result.status_changed else 'already'}")
    if movement:
        print(f"  Link created:   {'yes' if result.link_created else 'already linked'}")
    return 0


def cmd_link_declaration(
    config: Config, user: str, movement: str, file_name: str | None, ndec: str | None
) -> int:
    """Link a movement to a declaration file."""
    with open_session(config, user) as ctx:
        service = ReconciliationService(ctx.workspace, config)
        if ndec:
            updated = service.link_declaration_by_number(movement, ndec)
        else:
            updated = service.link_declaration(movement, file_name)
        if updated is not None:
            ctx.save_now()

    if updated is None:
        print(f"❌ No processed declaration with number {ndec}")
        return 1
    print(f"✓ Movement {movement} has {len(updated.linked_declarations)} declaration links")
    return 0


def cmd_comment(
    config: Config, user: str, file_id: str, line_id: str, text: str, save_for_future: bool
) -> int:
    """Comment an XML line."""
    with open_session(config, user) as ctx:
        result = ReconciliationService(ctx.workspace, config).save_line_comment(
            file_id, line_id, text, save_for_future=save_for_future
        )
        ctx.save_now()

    print(f"✓ Comment saved; copied to {result.movements_updated} linked movements")
    return 0


def cmd_links(config: Config, user: str, prune: bool) -> int:
    """Report (and optionally prune) dangling links."""
    with open_session(config, user) as ctx:
        service = ReconciliationService(ctx.workspace, config)
        dangling = service.dangling_links()
        if prune and dangling:
            service.prune_dangling_links()
            ctx.save_now()

    if not dangling:
        print("✓ All links resolve")
        return 0
    print(f"⚠️  {len(dangling)} dangling links")
    for movement_id, link in dangling:
        print(f"   - {movement_id}: {link.label}")
    if prune:
        print(f"✓ Pruned {len(dangling)} links")
    return 0


def cmd_alerts(config: Config, user: str) -> int:
    """List lines with problem comments."""
    with open_session(config, user) as ctx:
        alerts = SearchEngine(ctx.workspace.line_store, config.search).alerts()

    if not alerts:
        print("✓ No alerts")
        return 0
    print(f"\n⚠️  {len(alerts)} alerts")
    for alert in alerts:
        print(f"  {alert.file_name}:{alert.line_index + 1}  {alert.comment}")
    return 0


def cmd_export(config: Config, user: str, path: Path) -> int:
    """Write a portable snapshot file."""
    with open_session(config, user) as ctx:
        ctx.download_snapshot(path)
    print(f"✓ Snapshot written to {path}")
    return 0


def cmd_import(config: Config, user: str, path: Path) -> int:
    """Load a portable snapshot file into the session."""
    with open_session(config, user) as ctx:
        ctx.load_snapshot_file(path)
        ctx.save_now()
        stats = ctx.workspace.stats()
    print(f"✓ Loaded {path}: {stats['movements']} movements, {stats['xml_files']} XML files")
    return 0


def cmd_sessions(config: Config) -> int:
    """List stored sessions."""
    store = SqliteStateStore(config.state_db_path)
    sessions = create_backend(config, store).list_sessions()
    if not sessions:
        print("No stored sessions")
        return 0
    print("\n📂 Stored sessions")
    print("=" * 40)
    for summary in sessions:
        print(f"  {summary.identity:<20} {summary.saved_at or '-':<25} {summary.company_name}")
    return 0


def cmd_status(config: Config, user: str) -> int:
    """Show session status."""
    with open_session(config, user) as ctx:
        stats = ctx.workspace.stats()
        details = ctx.workspace.audit_details

    print(f"\n📊 Session status ({user})")
    print("=" * 40)
    print(f"  Company:                {details.company_name or '-'}")
    print(f"  XML files:              {stats['xml_files']}")
    print(f"  Lines reviewed:         {stats['lines_reviewed']}/{stats['lines']}")
    print(f"  Movements:              {stats['movements']}")
    print(f"  XML links:              {stats['xml_links']}")
    print(f"  Declaration links:      {stats['declaration_links']}")
    print(f"  Processed declarations: {stats['processed_declarations']}")
    print(f"  Declaration reviews:    {stats['declaration_reviews']}")
    print(f"  Uploaded files:         {stats['uploaded_files']}")
    print()
    return 0


def _default_user() -> str:
    return os.environ.get("AUDIT_USER") or getpass.getuser()


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config)

    # Load config
    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    user = parsed.user or _default_user()

    try:
        if parsed.command == "ingest":
            return cmd_ingest(config, user, parsed.files, parsed.category)
        elif parsed.command == "remove":
            return cmd_remove(config, user, parsed.file_id, parsed.category)
        elif parsed.command == "search":
            return cmd_search(config, user, parsed.term, parsed.limit)
        elif parsed.command == "resolve":
            return cmd_resolve(
                config, user, parsed.ndec, parsed.amount, parsed.date, parsed.movement
            )
        elif parsed.command == "link-declaration":
            return cmd_link_declaration(config, user, parsed.movement, parsed.file, parsed.ndec)
        elif parsed.command == "comment":
            return cmd_comment(
                config, user, parsed.file_id, parsed.line_id, parsed.text, parsed.save_for_future
            )
        elif parsed.command == "links":
            return cmd_links(config, user, parsed.prune)
        elif parsed.command == "alerts":
            return cmd_alerts(config, user)
        elif parsed.command == "export":
            return cmd_export(config, user, parsed.path)
        elif parsed.command == "import":
            return cmd_import(config, user, parsed.path)
        elif parsed.command == "sessions":
            return cmd_sessions(config)
        elif parsed.command == "status":
            return cmd_status(config, user)
        else:
            parser.print_help()
            return 1
    except ConfigValidationError as e:
        print(f"❌ Invalid configuration: {e}")
        return 1
    except AuditCrossrefError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
