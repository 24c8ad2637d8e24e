#!/usr/bin/env python3
"""CLI for the school administration backend.

Commands:
    init-db            Create or reset the database
    status             Show table row counts
    report             Show a student's report for an academic year
    notifications      List pending and sent parent notifications
    export-grades      Write a grade export to a file
    export-attendance  Write an attendance export to a file
    serve-mcp          Start the MCP server
"""

from datetime import date
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError as InputValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .. import __version__
from ..config import get_config
from ..database.connection import init_database, verify_database
from ..database.models import ExportAttendanceInput, ExportFormat, ExportGradesInput
from ..database.repository import Repository
from ..errors import SchoolAdminError
from ..logutils import configure_root_logger
from ..services import (
    export_attendance,
    export_grades,
    generate_student_report,
    get_notifications,
    render_student_report,
)

console = Console()


def _grade_style(value) -> str:
    return "green" if value >= 80 else "yellow" if value >= 65 else "red"


def _fail_on_input(error: InputValidationError) -> None:
    for item in error.errors():
        field = ".".join(str(p) for p in item["loc"]) or "arguments"
        console.print(f"[red]{escape(field)}: {escape(item['msg'])}[/red]")
    raise SystemExit(1)


@click.group()
@click.version_option(version=__version__, prog_name="schooladmin")
@click.option("--db", "db_path", type=click.Path(dir_okay=False, path_type=Path), help="SQLite database file")
@click.pass_context
def cli(ctx: click.Context, db_path: Optional[Path]):
    """School administration - records, attendance, grades and reports."""
    configure_root_logger()
    ctx.obj = Repository(db_path or get_config().database_path)


@cli.command("init-db")
@click.option("--force", is_flag=True, help="Delete an existing database first")
@click.pass_obj
def init_db(repo: Repository, force: bool):
    """Initialize or reset the database."""
    if force and Path(repo.db_path).exists():
        if not click.confirm(f"Delete {repo.db_path} and start over?", default=False):
            console.print("[yellow]Aborted.[/yellow]")
            return

    init_database(repo.db_path, force=force)
    info = verify_database(repo.db_path)
    console.print("[green]✓ Database initialized[/green]")
    console.print(f"  Tables: {', '.join(info.get('tables', []))}")


@cli.command()
@click.pass_obj
def status(repo: Repository):
    """Show database status."""
    info = verify_database(repo.db_path)
    if not info.get("exists"):
        console.print(f"[red]{info.get('error')}[/red] Run 'schooladmin init-db' first.")
        return

    console.print(Panel(f"[bold]Database Status[/bold]\n{info['path']}"))
    table = Table(show_header=False)
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right")
    for name, count in info.get("row_counts", {}).items():
        table.add_row(name, str(count))
    console.print(table)


@cli.command()
@click.option("--student", "-s", "student_id", required=True, type=int, help="Student id")
@click.option("--year", "-y", "academic_year", required=True, help="Academic year, e.g. 2024/2025")
@click.option("--plain", is_flag=True, help="Print the plain-text report")
@click.pass_obj
def report(repo: Repository, student_id: int, academic_year: str, plain: bool):
    """Show a student's attendance and weighted grades."""
    try:
        result = generate_student_report(repo, student_id, academic_year, get_config().default_weights)
    except SchoolAdminError as e:
        console.print(f"[red]{e.message}[/red]")
        raise SystemExit(1)

    if plain:
        click.echo(render_student_report(result), nl=False)
        return

    s = result.student
    a = result.attendance
    console.print(
        Panel(
            f"[bold]{s.name}[/bold] ({s.student_number})\n"
            f"Class {s.class_name} - {result.academic_year}\n"
            f"Attendance: {a.attendance_percentage}% of {a.total_days} days "
            f"(absent {a.absent}, late {a.late}, excused {a.excused})",
            title="Student Report",
        )
    )

    if not result.grades:
        console.print("[yellow]No grades recorded for this year.[/yellow]")
        return

    table = Table(title="Grades")
    table.add_column("Subject")
    table.add_column("Daily", justify="right")
    table.add_column("Midterm", justify="right")
    table.add_column("Final", justify="right")
    table.add_column("Weighted", justify="right")
    for g in result.grades:
        style = _grade_style(g.weighted_final_grade)
        table.add_row(
            f"{g.subject_name} ({g.subject_code})",
            str(g.daily_average),
            str(g.midterm_average),
            str(g.final_average),
            f"[{style}]{g.weighted_final_grade}[/{style}]",
        )
    console.print(table)
    console.print(f"Overall average: [bold]{result.overall_grade_average}[/bold]")


@cli.command()
@click.option("--parent", "-p", "parent_id", type=int, help="Only this parent's notifications")
@click.pass_obj
def notifications(repo: Repository, parent_id: Optional[int]):
    """List parent notifications, newest first."""
    items = get_notifications(repo, parent_id)
    if not items:
        console.print("[green]No notifications.[/green]")
        return

    table = Table(title="Notifications")
    table.add_column("Created")
    table.add_column("Parent", justify="right")
    table.add_column("Student", justify="right")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Message")
    for n in items:
        table.add_row(
            n.created_at.strftime("%Y-%m-%d %H:%M") if n.created_at else "",
            str(n.parent_id),
            str(n.student_id),
            n.type,
            n.status.value,
            n.message,
        )
    console.print(table)


_FORMAT = click.Choice([f.value for f in ExportFormat])


@cli.command("export-grades")
@click.option("--year", "-y", "academic_year", required=True, help="Academic year, e.g. 2024/2025")
@click.option("--class-id", type=int)
@click.option("--student-id", type=int)
@click.option("--subject-id", type=int)
@click.option("--format", "-f", "fmt", type=_FORMAT, default=ExportFormat.EXCEL.value, show_default=True)
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), required=True)
@click.pass_obj
def export_grades_cmd(repo: Repository, academic_year, class_id, student_id, subject_id, fmt, output: Path):
    """Export grades to a CSV or text file."""
    try:
        data = export_grades(
            repo,
            ExportGradesInput(
                academic_year=academic_year,
                class_id=class_id,
                student_id=student_id,
                subject_id=subject_id,
                format=fmt,
            ),
        )
    except InputValidationError as e:
        _fail_on_input(e)
    except SchoolAdminError as e:
        console.print(f"[red]{e.message}[/red]")
        raise SystemExit(1)

    output.write_bytes(data)
    console.print(f"[green]✓ Wrote {output}[/green]")


@cli.command("export-attendance")
@click.option("--start", "start_date", required=True, type=click.DateTime(formats=["%Y-%m-%d"]))
@click.option("--end", "end_date", required=True, type=click.DateTime(formats=["%Y-%m-%d"]))
@click.option("--class-id", type=int)
@click.option("--student-id", type=int)
@click.option("--subject-id", type=int)
@click.option("--format", "-f", "fmt", type=_FORMAT, default=ExportFormat.EXCEL.value, show_default=True)
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), required=True)
@click.pass_obj
def export_attendance_cmd(repo: Repository, start_date, end_date, class_id, student_id, subject_id, fmt, output: Path):
    """Export attendance between two dates to a CSV or text file."""
    try:
        data = export_attendance(
            repo,
            ExportAttendanceInput(
                start_date=date(start_date.year, start_date.month, start_date.day),
                end_date=date(end_date.year, end_date.month, end_date.day),
                class_id=class_id,
                student_id=student_id,
                subject_id=subject_id,
                format=fmt,
            ),
        )
    except InputValidationError as e:
        _fail_on_input(e)
    except SchoolAdminError as e:
        console.print(f"[red]{e.message}[/red]")
        raise SystemExit(1)

    output.write_bytes(data)
    console.print(f"[green]✓ Wrote {output}[/green]")


@cli.command("serve-mcp")
@click.pass_obj
def serve_mcp(repo: Repository):
    """Start the MCP server on stdio."""
    import asyncio

    from ..mcp_server.server import main as serve

    # stdout carries the protocol; status goes to stderr
    err = Console(stderr=True)
    err.print("[blue]Starting MCP server on stdio. Press Ctrl+C to stop.[/blue]")
    try:
        asyncio.run(serve(repo))
    except KeyboardInterrupt:
        err.print("\n[yellow]Server stopped.[/yellow]")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
