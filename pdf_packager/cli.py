"""
Command-line interface for PDF packager.
"""

import json
import logging
import os
import re
import sys

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeRemainingColumn
from rich.table import Table

from pdf_packager.config import Settings, create_services
from pdf_packager.exceptions import PDFPackagerException, PipelineCancelledError
from pdf_packager.matcher import PdfFileMatcher
from pdf_packager.services import build_reviewer_packages
from pdf_packager.toolkit import ModifyPermission
from pdf_packager.types import MemberEntry, ReviewerAssignment
from pdf_packager.utils import format_file_size, get_pdf_info

console = Console()

EXIT_CANCELLED = 130
_LIST_SEPARATORS = re.compile(r"[;\r\n]")


def _as_list(value):
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in _LIST_SEPARATORS.split(value) if item.strip()]
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    raise ValueError(f"Expected a list or a string, got {type(value).__name__}")


def _load_json_list(path):
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError(f"{path} must contain a JSON list of objects")
    return data


def load_assignments(path):
    """Read reviewer assignments from a JSON file."""
    assignments = []
    for item in _load_json_list(path):
        assignments.append(
            ReviewerAssignment(
                reviewers=_as_list(item.get("reviewers")),
                file=item.get("file"),
                first_name=str(item.get("first_name", "")),
                last_name=str(item.get("last_name", "")),
                label=item.get("label"),
            )
        )
    return assignments


def load_members(path):
    """Read members and their requested files from a JSON file."""
    return [MemberEntry(name=str(item.get("name", "")), files=_as_list(item.get("files"))) for item in _load_json_list(path)]


def _run_with_progress(run):
    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeRemainingColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Preparing packages", total=None)

        def log(message):
            progress.console.print(message, markup=False, highlight=False)

        def update_progress(update):
            description = "Preparing packages"
            if update.current_file:
                description = f"{update.current_recipient}: {update.current_file}"
            progress.update(task, total=update.total, completed=update.completed, description=description)

        return run(log, update_progress)


def _print_stats(stats, output_dir):
    console.print("\n[bold]Preparation Summary[/bold]")
    console.print("=" * 50)

    summary_table = Table(show_header=False)
    summary_table.add_column("Metric", style="cyan")
    summary_table.add_column("Value", style="green")

    summary_table.add_row("Requested Recipients", str(stats.requested_recipients))
    summary_table.add_row("Processed Recipients", str(stats.processed_recipients))
    summary_table.add_row("✓ Processed Files", f"[green]{stats.processed_files}[/green]")
    summary_table.add_row("Missing Files", f"[yellow]{len(stats.missing_files)}[/yellow]")
    summary_table.add_row("✗ Failed Files", f"[red]{len(stats.failed_files)}[/red]")
    summary_table.add_row("Output Directory", os.path.abspath(output_dir))
    console.print(summary_table)

    if stats.missing_files:
        console.print("\n[bold yellow]Missing Files:[/bold yellow]")
        for reference in stats.missing_files:
            console.print(f"  • {reference}")

    if stats.failed_files:
        console.print("\n[bold red]Failed Files:[/bold red]")
        for reference in stats.failed_files:
            console.print(f"  ✗ {reference}")

    console.print()


def _fail(error, code=1):
    console.print(f"\n[bold red]✗ Error:[/bold red] {error}")
    sys.exit(code)


@click.group()
@click.version_option(version="1.0.0")
@click.option("--qpdf", "qpdf_command", default=None, help="qpdf executable to use (default: auto-detect)")
@click.option(
    "--modify",
    type=click.Choice([permission.value for permission in ModifyPermission]),
    default=None,
    help="Modification permission granted by the encryption",
)
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Files processed concurrently")
@click.option("--clean-pattern", default=None, help="Regular expression of identifiers to redact")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.pass_context
def cli(ctx, qpdf_command, modify, workers, clean_pattern, verbose):
    """
    PDF Packager CLI - Prepare watermarked, encrypted copies of PDF files per recipient.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    settings = Settings.from_env()
    if qpdf_command:
        settings.qpdf_command = qpdf_command
    if modify:
        settings.modify = ModifyPermission(modify)
    if workers:
        settings.max_workers = workers
    if clean_pattern:
        settings.clean_pattern = clean_pattern
    ctx.obj = settings


@cli.command(name="reviewers")
@click.argument("source_dir", type=click.Path(exists=True, file_okay=False))
@click.argument("output_dir", type=click.Path(file_okay=False))
@click.option(
    "--assignments", "-a",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="JSON list of {file, reviewers} or {first_name, last_name, reviewers} objects",
)
@click.option("--collection", "-c", default="", help="Collection name used as sub-folder and archive label")
@click.option("--no-zip", is_flag=True, help="Do not create zip archives")
@click.pass_obj
def reviewers(settings, source_dir, output_dir, assignments, collection, no_zip):
    """
    Prepare one folder per reviewer.

    Example:

        pdf-packager reviewers ./documents ./out -a assignments.json -c "Session 2024"
    """
    try:
        reviewer_service, _ = create_services(settings)
        inventory = reviewer_service.processor.collect_pdf_files(source_dir)
        packages = build_reviewer_packages(load_assignments(assignments), [entry.relative for entry in inventory])

        console.print(f"\n[bold cyan]Preparing {len(packages)} reviewer package(s)...[/bold cyan]")
        stats = _run_with_progress(
            lambda log, update: reviewer_service.prepare(
                packages,
                source_dir,
                output_dir,
                collection,
                logger=log,
                progress=update,
                zip_enabled=not no_zip,
            )
        )
        _print_stats(stats, output_dir)
        sys.exit(0 if not stats.failed_files else 1)

    except (KeyboardInterrupt, PipelineCancelledError):
        _fail("Preparation stopped.", EXIT_CANCELLED)
    except (PDFPackagerException, OSError, ValueError) as e:
        _fail(e)


@cli.command(name="members")
@click.argument("source_dir", type=click.Path(exists=True, file_okay=False))
@click.argument("output_dir", type=click.Path(file_okay=False))
@click.option(
    "--members", "-m", "members_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="JSON list of {name, files} objects",
)
@click.option("--member", "member_names", multiple=True, help="Member receiving every file (repeatable)")
@click.option("--collection", "-c", default="", help="Collection name used as sub-folder and archive label")
@click.option("--no-zip", is_flag=True, help="Do not create zip archives")
@click.pass_obj
def members(settings, source_dir, output_dir, members_file, member_names, collection, no_zip):
    """
    Prepare one folder per member.

    Members listed without files receive every document of SOURCE_DIR.

    Examples:

        pdf-packager members ./documents ./out -m members.json

        pdf-packager members ./documents ./out --member "Jean Dupont"
    """
    try:
        entries = load_members(members_file) if members_file else []
        entries.extend(MemberEntry(name=name) for name in member_names)
        if not entries:
            raise click.UsageError("Provide --members or at least one --member.")

        _, member_service = create_services(settings)
        console.print(f"\n[bold cyan]Preparing {len(entries)} member package(s)...[/bold cyan]")
        stats = _run_with_progress(
            lambda log, update: member_service.prepare(
                entries,
                source_dir,
                output_dir,
                collection,
                logger=log,
                progress=update,
                zip_enabled=not no_zip,
            )
        )
        _print_stats(stats, output_dir)
        sys.exit(0 if not stats.failed_files else 1)

    except (KeyboardInterrupt, PipelineCancelledError):
        _fail("Preparation stopped.", EXIT_CANCELLED)
    except (PDFPackagerException, OSError, ValueError) as e:
        _fail(e)


@cli.command(name="match")
@click.argument("source_dir", type=click.Path(exists=True, file_okay=False))
@click.argument("reference")
@click.pass_obj
def match(settings, source_dir, reference):
    """
    Show the document of SOURCE_DIR that best matches a person's name.

    Example:

        pdf-packager match ./documents "Jean Dupont"
    """
    try:
        reviewer_service, _ = create_services(settings)
        inventory = reviewer_service.processor.collect_pdf_files(source_dir)
        result = PdfFileMatcher([entry.relative for entry in inventory]).find_by_name_reference(reference)
    except (PDFPackagerException, OSError) as e:
        _fail(e)

    if result is None:
        console.print(f"[bold yellow]No document matches[/bold yellow] {reference}")
        sys.exit(1)
    console.print(result, markup=False, highlight=False)


@cli.command(name="inspect")
@click.argument("input_pdf", type=click.Path(exists=True, dir_okay=False))
def inspect_pdf(input_pdf):
    """
    Display information about a prepared PDF file.

    Example:

        pdf-packager inspect out/Jean_Dupont/report.pdf
    """
    try:
        info = get_pdf_info(input_pdf)

        table = Table(title=f"PDF Information: {os.path.basename(input_pdf)}")
        table.add_column("Property", style="cyan", no_wrap=True)
        table.add_column("Value", style="green")

        table.add_row("File Path", os.path.abspath(input_pdf))
        table.add_row("File Size", format_file_size(info.file_size))
        table.add_row("Number of Pages", str(info.num_pages))
        table.add_row("Encrypted", "Yes" if info.is_encrypted else "No")
        if info.subject:
            table.add_row("Subject", info.subject)
        if info.title:
            table.add_row("Title", info.title)
        if info.author:
            table.add_row("Author", info.author)

        console.print()
        console.print(table)
        console.print()

    except PDFPackagerException as e:
        _fail(e)


if __name__ == "__main__":
    cli()
