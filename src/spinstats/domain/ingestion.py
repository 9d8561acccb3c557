"""Validate raw listening rows and upsert them into the store in chunks."""

from __future__ import annotations

import math
import time
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from spinstats.config.limits import IngestConfig
from spinstats.domain.errors import InvalidArgumentError, StorageUnavailableError
from spinstats.domain.model import ImportResult, ListeningRecord

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from spinstats.domain.ports import ListeningUnitOfWork

log = getLogger(__name__)

type RawRow = RawListening | Mapping[str, object] | str | bytes

# Upper bound of the 32-bit INTEGER column holding durations.
MAX_DURATION_SECONDS = 2**31 - 1


class RawListening(BaseModel):
    """Inbound play as delivered by an import file or an external provider.

    Accepts both ``durationSeconds``/``playedAt`` and their snake_case names.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=True)

    track: str
    artist: str
    album: str
    duration_seconds: int = Field(
        default=0, alias="durationSeconds", ge=0, le=MAX_DURATION_SECONDS
    )
    played_at: datetime = Field(alias="playedAt")

    @field_validator("track", "artist")
    @classmethod
    def _require_text(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("album", mode="before")
    @classmethod
    def _missing_album(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("duration_seconds", mode="before")
    @classmethod
    def _coerce_duration(cls, value: object) -> object:
        if value is None:
            return 0
        if isinstance(value, bool):
            raise ValueError("duration must be a number")
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return 0
            try:
                value = float(text)
            except ValueError as exc:
                raise ValueError(f"duration {text!r} is not a number") from exc
        if isinstance(value, float):
            if not math.isfinite(value):
                raise ValueError(f"duration {value} is not a finite number")
            return round(value)
        return value

    @field_validator("played_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def to_record(self) -> ListeningRecord:
        return ListeningRecord(
            track=self.track,
            artist=self.artist,
            album=self.album,
            duration_seconds=self.duration_seconds,
            played_at=self.played_at,
        )


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic error into ``"field: message"`` parts."""

    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


def parse_row(row: RawRow) -> ListeningRecord:
    """Validate one inbound row; raises ``ValidationError`` on bad input.

    Strings are decoded as a JSON object first. Bytes must be UTF-8 and raise
    ``UnicodeDecodeError`` otherwise.
    """

    if isinstance(row, RawListening):
        raw = row
    elif isinstance(row, bytes):
        raw = RawListening.model_validate_json(row.decode("utf-8"))
    elif isinstance(row, str):
        raw = RawListening.model_validate_json(row)
    else:
        raw = RawListening.model_validate(row)
    return raw.to_record()


type _Chunk = list[tuple[int, ListeningRecord]]


class IngestionReconciler:
    """The only write path into the listening store.

    Rows are validated one by one; valid rows are grouped into chunks and each
    chunk is upserted inside its own unit of work. Bad rows and failed chunks
    end up in ``ImportResult.errors`` instead of aborting the run.
    """

    def __init__(
        self,
        unit_of_work_factory: Callable[[], ListeningUnitOfWork],
        *,
        config: IngestConfig | None = None,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._config = config or IngestConfig()

    def import_batch(
        self,
        rows: Iterable[RawRow],
        *,
        chunk_size: int | None = None,
    ) -> ImportResult:
        size = self._config.chunk_size if chunk_size is None else chunk_size
        if size < 1 or size > self._config.max_chunk_size:
            raise InvalidArgumentError(
                f"Chunk size must be between 1 and {self._config.max_chunk_size}, got {size}"
            )

        started = time.perf_counter()
        result = ImportResult()
        chunk: _Chunk = []
        for row_number, row in enumerate(rows, start=1):
            result.total_rows += 1
            try:
                record = parse_row(row)
            except ValidationError as exc:
                result.skipped += 1
                result.errors.append(f"Row {row_number}: {describe_validation_error(exc)}")
                continue
            except UnicodeDecodeError as exc:
                result.skipped += 1
                result.errors.append(
                    f"Row {row_number}: not valid UTF-8 ({exc.reason} at byte {exc.start})"
                )
                continue
            chunk.append((row_number, record))
            if len(chunk) >= size:
                self._flush(chunk, result)
                chunk = []
        if chunk:
            self._flush(chunk, result)

        result.processing_time = timedelta(seconds=time.perf_counter() - started)
        log.info(
            "Imported %d of %d rows (%d inserted, %d updated, %d skipped)",
            result.imported,
            result.total_rows,
            result.inserted,
            result.updated,
            result.skipped,
        )
        return result

    def _flush(self, chunk: _Chunk, result: ImportResult) -> None:
        records = [record for _, record in chunk]
        result.processed += len(records)
        try:
            with self._unit_of_work_factory() as uow:
                report = uow.repositories.listenings.upsert_batch(records)
                uow.commit()
        except StorageUnavailableError as exc:
            first, last = chunk[0][0], chunk[-1][0]
            log.error("Chunk of rows %d-%d failed: %s", first, last, exc)
            result.skipped += len(chunk)
            result.errors.append(f"Rows {first}-{last}: {exc}")
            return

        result.imported += report.persisted
        result.inserted += report.inserted
        result.updated += report.updated
        result.skipped += len(report.failures)
        for failure in report.failures:
            row_number = chunk[failure.index][0]
            result.errors.append(f"Row {row_number}: {failure.message}")


__all__ = [
    "IngestionReconciler",
    "MAX_DURATION_SECONDS",
    "RawListening",
    "RawRow",
    "describe_validation_error",
    "parse_row",
]
