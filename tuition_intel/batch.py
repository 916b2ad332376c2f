"""
Batch extraction over many (school, program) targets.

Calls into the engine are spaced by a shared RequestPacer. With more than
one worker the targets fan out over a WorkerPool. A failed target never
stops the batch; only a configuration error does, since every later target
would fail the same way.
"""

import csv
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError
from .models.extraction import ExtractionRecord, ExtractionStatus
from .services.extraction_service import TuitionExtractionService
from .storage import JsonlRecordStore
from .utils.logger import BatchRunContext, PipelineLogger
from .utils.rate_limiter import RequestPacer
from .utils.worker_pool import WorkerPool

logger = logging.getLogger(__name__)

PACER_KEY = "gemini"


@dataclass(frozen=True)
class ExtractionTarget:
    school: str
    program: str

    def __str__(self) -> str:
        return f"{self.school} - {self.program}"


def load_targets(path: Path) -> list[ExtractionTarget]:
    """
    Load targets from a CSV file with a `school,program` header.

    Blank rows and rows missing either value are skipped with a warning.

    Raises:
        ValueError: the header lacks a school or program column
    """
    targets = []
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        columns = {name.strip().lower(): name for name in (reader.fieldnames or [])}
        if "school" not in columns or "program" not in columns:
            raise ValueError(f"{path} must have a 'school,program' header, got {reader.fieldnames}")

        for row_number, row in enumerate(reader, start=2):
            school = (row.get(columns["school"]) or "").strip()
            program = (row.get(columns["program"]) or "").strip()
            if not school and not program:
                continue
            if not school or not program:
                logger.warning(f"Skipping row {row_number} in {path}: school and program are both required")
                continue
            targets.append(ExtractionTarget(school=school, program=program))
    return targets


@dataclass
class BatchItem:
    """Outcome for one target: a record, or the exception that escaped extract()."""

    target: ExtractionTarget
    record: Optional[ExtractionRecord] = None
    error: Optional[Exception] = None

    @property
    def status(self) -> str:
        if self.record is not None:
            return self.record.status.value
        return ExtractionStatus.FAILED.value


@dataclass
class BatchResult:
    items: list[BatchItem] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def records(self) -> list[ExtractionRecord]:
        return [item.record for item in self.items if item.record is not None]

    def _count(self, status: ExtractionStatus) -> int:
        return sum(1 for item in self.items if item.status == status.value)

    @property
    def succeeded(self) -> int:
        return self._count(ExtractionStatus.SUCCESS)

    @property
    def not_found(self) -> int:
        return self._count(ExtractionStatus.NOT_FOUND)

    @property
    def failed(self) -> int:
        return self._count(ExtractionStatus.FAILED)

    @property
    def all_failed(self) -> bool:
        return bool(self.items) and self.failed == len(self.items)


class BatchExtractionRunner:
    """
    Runs the extraction service over a list of targets.

    Usage:
        runner = BatchExtractionRunner(service, RequestPacer(delay=2.0), workers=1)
        result = runner.run([ExtractionTarget("Acme University", "Part-Time MBA")])
        print(result.succeeded, result.failed)
    """

    def __init__(
        self,
        service: TuitionExtractionService,
        pacer: Optional[RequestPacer] = None,
        workers: int = 1,
        store: Optional[JsonlRecordStore] = None,
        run_logger: Optional[PipelineLogger] = None,
    ):
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self.service = service
        self.pacer = pacer or RequestPacer()
        self.workers = workers
        self.store = store
        self.run_logger = run_logger

    def run(self, targets: list[ExtractionTarget]) -> BatchResult:
        start = time.monotonic()
        if self.run_logger is not None:
            with BatchRunContext(self.run_logger, len(targets)) as run_ctx:
                items = self._run_targets(targets)
                for item in items:
                    run_ctx.record(item.status)
        else:
            items = self._run_targets(targets)

        return BatchResult(items=items, duration_seconds=time.monotonic() - start)

    def _run_targets(self, targets: list[ExtractionTarget]) -> list[BatchItem]:
        if self.workers == 1:
            return [self._run_one_safely(target) for target in targets]

        pool = WorkerPool(max_workers=self.workers, logger=logger)
        outcomes = pool.map(self._process, targets, desc="Extract")
        items = []
        for success, target, result in outcomes:
            if success:
                items.append(BatchItem(target=target, record=result))
            else:
                if isinstance(result, ConfigurationError):
                    raise result
                items.append(BatchItem(target=target, error=result))
        return items

    def _run_one_safely(self, target: ExtractionTarget) -> BatchItem:
        try:
            return BatchItem(target=target, record=self._process(target))
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Extraction raised for {target}: {e}", exc_info=True)
            return BatchItem(target=target, error=e)

    def _process(self, target: ExtractionTarget) -> ExtractionRecord:
        waited = self.pacer.wait(PACER_KEY)
        if waited:
            logger.debug(f"Paced {waited:.2f}s before {target}")

        started = time.monotonic()
        record = self.service.extract(target.school, target.program)

        if self.store is not None:
            try:
                self.store.save(record)
            except OSError as e:
                logger.warning(f"Failed to save record for {target}: {e}")

        if self.run_logger is not None:
            self.run_logger.log_extraction_complete(
                school=target.school,
                program=target.program,
                status=record.status.value,
                confidence=record.confidence_score.value,
                duration_seconds=time.monotonic() - started,
            )
        return record
