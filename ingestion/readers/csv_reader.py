"""
CSV person reader with line validation
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import pandas as pd
from pydantic import ValidationError

from core.config import settings
from core.exceptions import CsvSourceNotFoundError, NoValidRecordsError, ReadError
from ingestion.base import ItemReader
from ingestion.step_context import StepContext
from schemas.person import PersonCsvRow, PersonRecord

logger = logging.getLogger(__name__)

COLUMNS = ["first_name", "last_name", "email", "date_of_birth"]

FALLBACK_PATHS = [
    "input/persons.csv",
    "persons.csv",
    "data/persons.csv",
    "csv/persons.csv",
]


def resolve_csv_path(preferred: Optional[str] = None) -> Path:
    """
    Return the first existing, non-empty CSV among the candidates.

    Order: ``preferred``, INPUT_CSV_PATH, then the fallback locations.
    """
    candidates: List[str] = []
    for candidate in [preferred, settings.INPUT_CSV_PATH, *FALLBACK_PATHS]:
        if candidate and candidate not in candidates:
            candidates.append(candidate)

    for candidate in candidates:
        path = Path(candidate)
        if path.is_file() and path.stat().st_size > 0:
            return path

    raise CsvSourceNotFoundError(
        "No CSV file found",
        context={"searched_paths": candidates}
    )


class CsvPersonReader(ItemReader):
    """
    Read persons from a CSV file.

    Expected header: FirstName,LastName,Email,DateOfBirth. Invalid lines
    are rejected at open and reported in ``validation_errors``; they never
    reach the step. A file without a single valid line fails the step.
    """

    def __init__(self, csv_path: Optional[str] = None):
        self.csv_path = csv_path
        self.resolved_path: Optional[Path] = None
        self.total_lines = 0
        self.validation_errors: List[Dict[str, Any]] = []
        self._records: List[PersonRecord] = []
        self._position = 0

    async def open(self, context: StepContext) -> None:
        self.resolved_path = resolve_csv_path(self.csv_path)
        logger.info(f"Reading CSV from {self.resolved_path}")

        df = self._load_frame(self.resolved_path)
        self.total_lines = len(df)

        for index, row in enumerate(df.itertuples(index=False), start=2):
            record = self._validate(index, row._asdict())
            if record is not None:
                self._records.append(record)

        valid = len(self._records)
        invalid = len(self.validation_errors)
        logger.info(
            f"CSV validation complete: {self.total_lines} lines, "
            f"{valid} valid, {invalid} rejected"
        )

        if invalid:
            summary = f"Rejected {invalid} of {self.total_lines} CSV lines during validation"
            logger.warning(summary)
            context.execution_context["validation.warning"] = summary
            context.execution_context["validation.errors"] = [
                f"Line {e['line']}: {e['reason']}" for e in self.validation_errors
            ]

        if valid == 0:
            raise NoValidRecordsError(
                "CSV contains no valid records",
                context={
                    "file_path": str(self.resolved_path),
                    "total_lines": self.total_lines,
                    "invalid_lines": invalid,
                }
            )

        context.execution_context["csv.file"] = str(self.resolved_path)

    async def read(self) -> Optional[PersonRecord]:
        if self._position >= len(self._records):
            return None
        record = self._records[self._position]
        self._position += 1
        return record

    async def close(self, context: StepContext) -> None:
        self._records = []
        self._position = 0

    # ------------------------------------------------------------------

    @staticmethod
    def _load_frame(path: Path) -> pd.DataFrame:
        try:
            df = pd.read_csv(
                path,
                dtype=str,
                keep_default_na=False,
                index_col=False,
                skipinitialspace=True,
                engine="python",
                on_bad_lines=lambda fields: fields[:len(COLUMNS)],
            )
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise ReadError(
                "Failed to parse CSV file",
                context={"file_path": str(path)},
                original_exception=e
            )

        # Columns are positional; header names are informative only
        df = df.iloc[:, :len(COLUMNS)]
        df.columns = COLUMNS[:len(df.columns)]
        return df.reindex(columns=COLUMNS)

    def _validate(self, line: int, values: Dict[str, Any]) -> Optional[PersonRecord]:
        missing = [name for name in COLUMNS if not isinstance(values.get(name), str)]
        if missing:
            self._reject(line, values, f"Expected 4 columns, missing {', '.join(missing)}")
            return None

        try:
            return PersonCsvRow(**values).to_record()
        except ValidationError as e:
            reason = "; ".join(
                err["msg"].removeprefix("Value error, ") for err in e.errors()
            )
            self._reject(line, values, reason)
            return None

    def _reject(self, line: int, values: Dict[str, Any], reason: str) -> None:
        self.validation_errors.append({
            "line": line,
            "email": values.get("email") if isinstance(values.get("email"), str) else None,
            "reason": reason,
        })
        logger.warning(f"Rejected CSV line {line}: {reason}")
