"""Import baseline respondents from an Excel workbook or CSV file.

Runs the same ingestion service as the upload endpoint, so header aliases,
normalisation and industry linking behave identically.  Use ``--dry-run``
to check a file without writing anything.
"""

from __future__ import annotations

from pathlib import Path

from django.core.management.base import BaseCommand, CommandError


class Command(BaseCommand):
    help = "Import baseline survey respondents from an .xlsx or .csv file."

    def add_arguments(self, parser):
        parser.add_argument("path", help="Path to the .xlsx workbook or .csv file.")
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Parse and validate the file without saving respondents.",
        )

    def handle(self, *args, **options):
        from tracker.services.errors import OperationFailed
        from tracker.services.respondent_import import import_respondents

        path = Path(options["path"])
        if not path.is_file():
            raise CommandError(f"File not found: {path}")

        self.stdout.write(self.style.NOTICE(f"Importing respondents from {path.name}..."))
        try:
            with path.open("rb") as handle:
                stats = import_respondents(handle, path.name, dry_run=options["dry_run"])
        except OperationFailed as exc:
            raise CommandError(f"Failed to import respondents: {exc}") from exc

        prefix = "Dry run: " if options["dry_run"] else ""
        self.stdout.write(
            self.style.SUCCESS(
                f"{prefix}{stats.accepted_rows} of {stats.total_rows} rows accepted "
                f"({stats.skipped_rows} skipped)."
            )
        )
