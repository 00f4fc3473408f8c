from __future__ import annotations
import io, json, csv, codecs, gzip
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set
import logging

from ..analyses.columns import build_dataset
from ..core.constants import _DELIMITED_STREAM_CHUNK_SIZE, _NULL_SENTINELS
from ..core.types import BinaryInput, Dataset
from ..core.utils import _ensure_bytes, _open_binary_stream

logger = logging.getLogger(__name__)


def coerce_cell(value: Any) -> Any:
    """Null sentinels become ``None``; numeric text becomes int or float; other text is stripped."""
    if value is None:
        return None
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed or trimmed in _NULL_SENTINELS:
            return None
        try:
            return int(trimmed)
        except ValueError:
            pass
        try:
            return float(trimmed)
        except ValueError:
            return trimmed
    return value


class _RowCollector:
    def __init__(self, source_format: str, bytes_read: int = 0) -> None:
        self.source_format = source_format
        self.bytes_read = bytes_read
        self.rows: List[Dict[str, Any]] = []
        self.display_names: Dict[str, str] = {}

    def add(self, record: Mapping[str, Any]) -> None:
        self.rows.append({str(key): coerce_cell(value) for key, value in record.items()})

    def build(self) -> Dataset:
        dataset = build_dataset(
            self.rows,
            source_format=self.source_format,
            bytes_read=self.bytes_read,
            display_names=self.display_names,
        )
        logger.info(
            "ingested dataset",
            extra={
                "source_format": self.source_format,
                "rows": dataset.row_count,
                "columns": len(dataset.columns),
                "bytes_read": self.bytes_read,
            },
        )
        return dataset


class _HeaderNormalizer:
    """Normalizes and deduplicates column headers for delimited inputs."""

    def __init__(self) -> None:
        self._base_counts: Dict[str, int] = {}
        self._used: Set[str] = set()
        self.display_names: Dict[str, str] = {}

    def _clean(self, raw: Any, index: int) -> str:
        text = "" if raw is None else str(raw)
        text = text.lstrip("\ufeff").strip()
        if not text:
            return f"column_{index + 1}"
        return text

    def _allocate(self, base: str) -> str:
        count = self._base_counts.get(base, 0)
        candidate = base if count == 0 else f"{base}_{count + 1}"
        while candidate in self._used:
            count += 1
            candidate = f"{base}_{count + 1}"
        self._base_counts[base] = count + 1
        self._used.add(candidate)
        self.display_names[candidate] = base
        return candidate

    def normalize(self, fieldnames: Sequence[Any]) -> List[str]:
        return [self._allocate(self._clean(name, index)) for index, name in enumerate(fieldnames)]

    def generate_default(self, index: int) -> str:
        return self._allocate(f"column_{index + 1}")


def _ingest_delimited(key: str, body: BinaryInput, delimiter: str, source_format: str) -> Dataset:
    stream, should_close = _open_binary_stream(body)
    decoder = codecs.getincrementaldecoder("utf-8")("replace")
    collector = _RowCollector(source_format)
    normalizer = _HeaderNormalizer()

    def _iter_chunks() -> Iterable[str]:
        while True:
            chunk = stream.read(_DELIMITED_STREAM_CHUNK_SIZE)
            if not chunk:
                break
            if not isinstance(chunk, (bytes, bytearray)):
                raise TypeError(f"Delimited dataset chunk from {key} must be bytes-like")
            collector.bytes_read += len(chunk)
            yield decoder.decode(bytes(chunk))
        yield decoder.decode(b"", final=True)

    try:
        text = "".join(_iter_chunks())
        reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
        try:
            first_row = next(reader)
        except StopIteration:
            return collector.build()

        headers = normalizer.normalize(first_row)
        for raw_row in reader:
            if not raw_row or all(cell.strip() == "" for cell in raw_row):
                continue
            row = list(raw_row)
            if len(row) < len(headers):
                row.extend([""] * (len(headers) - len(row)))
            while len(headers) < len(row):
                headers.append(normalizer.generate_default(len(headers)))
            collector.add({headers[index]: row[index] for index in range(len(headers))})
        collector.display_names = normalizer.display_names
        return collector.build()
    finally:
        if should_close:
            stream.close()


def _ingest_json(body: bytes) -> Dataset:
    data = json.loads(body.decode("utf-8", errors="replace"))
    if isinstance(data, Mapping) and isinstance(data.get("rows"), list):
        data = data["rows"]
    if isinstance(data, list):
        records = [r for r in data if isinstance(r, Mapping)]
    elif isinstance(data, Mapping):
        records = [data]
    else:
        records = []
    collector = _RowCollector("json", len(body))
    for record in records:
        collector.add(record)
    return collector.build()


def _ingest_jsonl(body: bytes) -> Dataset:
    collector = _RowCollector("jsonl", len(body))
    for line_number, line in enumerate(body.decode("utf-8", errors="replace").splitlines(), start=1):
        stripped = line.strip()
        if not stripped:
            continue
        try:
            obj = json.loads(stripped)
        except json.JSONDecodeError:
            logger.warning("skipping malformed JSON line", extra={"line": line_number})
            continue
        if isinstance(obj, Mapping):
            collector.add(obj)
    return collector.build()


def _dataframe_to_dataset(frame: Any, source_format: str, bytes_read: int) -> Dataset:
    import pandas as pd

    sanitized = frame.copy()
    sanitized.columns = [str(col) for col in sanitized.columns]
    sanitized = sanitized.astype(object).where(pd.notnull(sanitized), None)

    collector = _RowCollector(source_format, bytes_read)
    for record in sanitized.to_dict(orient="records"):
        collector.add(record)
    return collector.build()


def _ingest_excel(body: bytes, sheet_name: Optional[str] = None) -> Dataset:
    import pandas as pd

    with io.BytesIO(body) as stream:
        frame = pd.read_excel(stream, sheet_name=sheet_name or 0)
    return _dataframe_to_dataset(frame, "excel", len(body))


def _ingest_parquet(body: bytes) -> Dataset:
    import pandas as pd

    with io.BytesIO(body) as stream:
        frame = pd.read_parquet(stream)
    return _dataframe_to_dataset(frame, "parquet", len(body))


def _strip_compression_suffix(name: str) -> str:
    lowered = name.lower()
    if lowered.endswith(".gzip"):
        return name[: -len(".gzip")]
    if lowered.endswith(".gz"):
        return name[: -len(".gz")]
    return name


def ingest_dataset(key: str, body: BinaryInput) -> Dataset:
    """Parse an uploaded file into a :class:`Dataset`, picking the reader from the key's extension."""
    lowered = key.lower()
    if lowered.endswith(".gz") or lowered.endswith(".gzip"):
        try:
            decompressed = gzip.decompress(_ensure_bytes(body))
        except OSError as exc:
            raise ValueError(f"Invalid GZIP payload: {key}") from exc
        return ingest_dataset(_strip_compression_suffix(key), decompressed)
    if lowered.endswith((".parquet", ".pq")):
        return _ingest_parquet(_ensure_bytes(body))
    if lowered.endswith((".xlsx", ".xls", ".xlsm")):
        return _ingest_excel(_ensure_bytes(body))
    if lowered.endswith((".tsv", ".tab")):
        return _ingest_delimited(key, body, "\t", "tsv")
    if lowered.endswith((".jsonl", ".ndjson")):
        return _ingest_jsonl(_ensure_bytes(body))
    if lowered.endswith(".json"):
        try:
            return _ingest_json(_ensure_bytes(body))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON dataset: {key}") from exc
    return _ingest_delimited(key, body, ",", "csv")


def rows_to_dataset(rows: Iterable[Mapping[str, Any]]) -> Dataset:
    """Dataset from already-parsed rows; cells are kept as given."""
    collector = _RowCollector("rows")
    collector.rows = [dict(row) for row in rows]
    return collector.build()
