"""
Flat-file export of enriched persons: one "<first_name>,<age>" line per record
"""

from pathlib import Path
from typing import List, Optional, TextIO
import logging

from core.exceptions import ExportError
from ingestion.base import ItemWriter
from ingestion.step_context import StepContext
from schemas.person import PersonRecord

logger = logging.getLogger(__name__)


class PersonFileWriter(ItemWriter):
    """
    Write the export file.

    The file is replaced when the step opens it; every chunk is appended
    and flushed. Parent directories are created as needed.
    """

    def __init__(self, file_path: str, encoding: str = "utf-8"):
        self.file_path = Path(file_path)
        self.encoding = encoding
        self._handle: Optional[TextIO] = None

    async def open(self, context: StepContext) -> None:
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = self.file_path.open("w", encoding=self.encoding)
        except OSError as e:
            raise ExportError(
                "Cannot open output file",
                context={"file_path": str(self.file_path)},
                original_exception=e
            )
        logger.info(f"Writing export to {self.file_path}")

    async def write(self, items: List[PersonRecord], context: StepContext) -> None:
        if self._handle is None:
            raise ExportError(
                "Output file is not open",
                context={"file_path": str(self.file_path)}
            )
        try:
            for record in items:
                self._handle.write(self.format_line(record))
            self._handle.flush()
        except OSError as e:
            raise ExportError(
                "Failed to write output file",
                context={"file_path": str(self.file_path)},
                original_exception=e
            )

    async def close(self, context: StepContext) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
            context.execution_context["output.file"] = str(self.file_path)

    @staticmethod
    def format_line(record: PersonRecord) -> str:
        return f"{record.first_name},{record.age}\n"
