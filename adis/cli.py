"""
ADIS CLI - issue, finalize and verify documents from the shell

State persists between invocations only when ``ADIS_DATABASE_PATH`` and a
JSON-RPC ledger are configured; ``adis demo`` runs the whole pipeline in
one process against the in-memory ledger.
"""
import json
import mimetypes
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from adis.config import get_config
from adis.errors import ADISError, DocumentNotFoundError
from adis.services import build_services, get_services
from adis.utils import get_logger, setup_logging
from adis.verification.models import VerificationResult, VerificationStatus

console = Console()
logger = get_logger(__name__)

_STATUS_STYLE = {
    VerificationStatus.AUTHENTIC: "bold green",
    VerificationStatus.TAMPERED: "bold red",
    VerificationStatus.NOT_VERIFIED: "bold yellow",
    VerificationStatus.NOT_FOUND: "bold yellow",
    VerificationStatus.INTEGRITY_CHECK_FAILED: "bold magenta",
}


def _print_result(result: VerificationResult) -> None:
    style = _STATUS_STYLE.get(result.status, "bold")
    console.print(f"\n[{style}]{result.status.value.upper()}[/{style}] - {result.message}")

    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Uploaded hash", result.uploaded_hash)
    table.add_row("Algorithm", result.hash_algorithm)
    table.add_row("Confidence", f"{result.confidence}%")
    if result.matched_variant:
        table.add_row("Matched variant", result.matched_variant)
    if result.resolution_method:
        table.add_row("Resolved by", result.resolution_method)
    if result.tamper:
        table.add_row("Tamper type", result.tamper.tamper_type.value)
        table.add_row("Size ratio", f"{result.tamper.size_ratio:.4f}")
    if result.ledger_verified_at:
        table.add_row("Ledger timestamp", result.ledger_verified_at)
    if result.document:
        table.add_row("Student", f"{result.document.get('student_name')} ({result.document.get('student_id')})")
        table.add_row("Document type", result.document.get("document_type") or "")
    console.print(table)


# ═══════════════════════════════════════════════════════════════════
# MAIN CLI GROUP
# ═══════════════════════════════════════════════════════════════════

@click.group()
@click.version_option(version='0.1.0')
@click.option('--log-level', default=None, help='Override ADIS_LOG_LEVEL')
def main(log_level):
    """
    ADIS - Academic Document Integrity Service

    Canonical hashing, lineage tracking and ledger-anchored verification.
    """
    cfg = get_config()
    setup_logging(log_level or cfg.log_level, cfg.log_file)


# ═══════════════════════════════════════════════════════════════════
# ISSUANCE COMMANDS
# ═══════════════════════════════════════════════════════════════════

@main.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--fields', 'fields_path', type=click.Path(exists=True, dir_okay=False), required=True,
              help='JSON file with document_type, student_id, student_name, date_issued, courses...')
@click.option('--program', default='', help='Degree program (descriptive only)')
def issue(file_path, fields_path, program):
    """Issue a document: store original, embed hash and QR"""
    fields = json.loads(Path(fields_path).read_text(encoding='utf-8'))
    path = Path(file_path)
    mime, _ = mimetypes.guess_type(path.name)

    try:
        with console.status("[bold green]Processing document..."):
            doc = get_services().issuance.issue(fields, path.read_bytes(), path.name, mime_type=mime, program=program)
    except (ADISError, ValueError) as exc:
        console.print(f"[bold red]Issue failed:[/bold red] {exc}")
        sys.exit(1)

    console.print(f"[bold green]✓ Issued[/bold green] {doc.document_hash}")
    console.print(f"  processed: {doc.processed_file_path}")


@main.command()
@click.argument('document_hash')
def finalize(document_hash):
    """Register a document on the ledger and watermark it"""
    try:
        with console.status("[bold green]Registering on ledger..."):
            result = get_services().issuance.finalize(document_hash)
    except (ADISError, ValueError) as exc:
        console.print(f"[bold red]Finalize failed:[/bold red] {exc}")
        sys.exit(1)

    console.print(f"[bold green]✓ Registered[/bold green] block #{result.document.ledger_block_height}")
    if result.watermarked:
        console.print(f"  watermarked: {result.document.watermarked_file_path}")
    else:
        console.print(f"[yellow]  not watermarked:[/yellow] {result.watermark_error}")


# ═══════════════════════════════════════════════════════════════════
# VERIFICATION COMMANDS
# ═══════════════════════════════════════════════════════════════════

@main.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--json', 'as_json', is_flag=True, help='Print the raw result as JSON')
def verify(file_path, as_json):
    """Verify a file against its lineage and the ledger"""
    path = Path(file_path)
    mime, _ = mimetypes.guess_type(path.name)
    result = get_services().engine.verify(path.read_bytes(), mime_type=mime, filename=path.name)
    logger.info("Verified %s: %s", path.name, result.status.value)
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _print_result(result)
    sys.exit(0 if result.authentic else 2)


@main.command()
@click.argument('document_hash')
def lookup(document_hash):
    """Look up a document hash on the ledger and in the store"""
    try:
        result = get_services().engine.lookup_hash(document_hash)
    except DocumentNotFoundError:
        console.print(f"[bold yellow]Not found:[/bold yellow] {document_hash}")
        sys.exit(2)
    except ValueError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        sys.exit(1)

    style = "bold green" if result.verified else "bold yellow"
    console.print(f"[{style}]{result.source}[/{style}] verified={result.verified}")
    if result.warning:
        console.print(f"[yellow]{result.warning}[/yellow]")


# ═══════════════════════════════════════════════════════════════════
# DEMO & SERVER
# ═══════════════════════════════════════════════════════════════════

@main.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--fields', 'fields_path', type=click.Path(exists=True, dir_okay=False), required=True)
def demo(file_path, fields_path):
    """Issue, finalize and verify a document in one process"""
    services = build_services()
    fields = json.loads(Path(fields_path).read_text(encoding='utf-8'))
    path = Path(file_path)
    mime, _ = mimetypes.guess_type(path.name)

    doc = services.issuance.issue(fields, path.read_bytes(), path.name, mime_type=mime)
    console.print(f"[bold blue]Issued:[/bold blue] {doc.document_hash}")
    result = services.issuance.finalize(doc.document_hash)
    console.print(f"[bold blue]Registered:[/bold blue] block #{result.document.ledger_block_height}")

    for label, variant_path in (("processed", result.document.processed_file_path),
                                ("watermarked", result.document.watermarked_file_path)):
        if not variant_path:
            continue
        data = Path(variant_path).read_bytes()
        verification = services.engine.verify(data, mime_type=mimetypes.guess_type(variant_path)[0],
                                              filename=Path(variant_path).name)
        console.print(f"\n[bold]{label}[/bold] copy:")
        _print_result(verification)
    services.close()


@main.command()
@click.option('--host', default=None, help='Bind address (default: ADIS_API_HOST)')
@click.option('--port', default=None, type=int, help='Port (default: ADIS_API_PORT)')
def serve(host, port):
    """Run the HTTP API"""
    import uvicorn

    cfg = get_config()
    uvicorn.run("adis.api.main:app", host=host or cfg.api_host, port=port or cfg.api_port)


if __name__ == '__main__':
    main()
