"""
loader.py: CSV ingestion for the register wizard

Public API:
    parsed = load_csv("path/to/register.csv")
    parsed = parse_csv_bytes(raw_bytes, file_name="register.csv")

The first non-empty row is always the header row. Every cell is trimmed,
empty lines are skipped and short rows are padded with "". Files that
cannot produce a header row are rejected with IngestionError.
"""

from __future__ import annotations

import csv
import io
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import chardet
import pandas as pd

SUPPORTED_SUFFIXES = {".csv", ".tsv", ".txt"}
DELIMITER_CANDIDATES = [",", ";", "\t", "|"]


class IngestionError(ValueError):
    pass


@dataclass
class ParsedCSVData:
    headers: list[str]
    rows: list[dict[str, str]]
    total_rows: int
    encoding: str = "utf-8"
    delimiter: str = ","
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "headers": list(self.headers),
            "rows": [dict(row) for row in self.rows],
            "total_rows": self.total_rows,
            "encoding": self.encoding,
            "delimiter": self.delimiter,
            "warnings": list(self.warnings),
        }


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> tuple[str, float]:
    result = chardet.detect(raw)
    detected = result.get("encoding") or "utf-8"
    confidence = round(result.get("confidence") or 0.0, 2)
    return detected, confidence


def _is_utf8_family(encoding: str) -> bool:
    return encoding.upper().replace("-", "").replace("_", "") in ("UTF8", "UTF8SIG", "ASCII")


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8
      2. Try preferred_encoding (chardet result)
      3. Try cp1250 (common for Polish office exports)
      4. latin-1, which never fails

    Also drops a leading BOM and embedded null bytes.
    """
    if raw.startswith(b"\xef\xbb\xbf"):
        raw = raw[3:]
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "cp1250"):
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("latin-1")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines)


# ══════════════════════════════════════════════════════════════════════════════
# DELIMITER DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_delimiter(text: str) -> str:
    """
    Infer the delimiter from sample lines.

    Uses csv.Sniffer first; falls back to scoring each candidate delimiter by
    column-count consistency and column width.
    """
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])

    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters="".join(DELIMITER_CANDIDATES)).delimiter
        except csv.Error:
            pass

    best_delim = ","
    best_score = float("-inf")
    for delim in DELIMITER_CANDIDATES:
        rows = [
            row
            for row in csv.reader(io.StringIO("\n".join(sample_lines)), delimiter=delim)
            if any(cell.strip() for cell in row)
        ]
        if not rows:
            continue
        widths = Counter(len(row) for row in rows)
        mode_width, mode_count = widths.most_common(1)[0]
        score = (mode_width * 2.0) + (mode_count / len(rows)) * mode_width
        if len(rows[0]) == mode_width:
            score += 1.0
        if mode_width == 1:
            score -= 10.0
        if score > best_score:
            best_score = score
            best_delim = delim
    return best_delim


# ══════════════════════════════════════════════════════════════════════════════
# PARSING
# ══════════════════════════════════════════════════════════════════════════════

def _header_warnings(headers: list[str]) -> list[str]:
    warnings: list[str] = []
    blanks = [index + 1 for index, header in enumerate(headers) if not header]
    if blanks:
        warnings.append(f"Blank header in column(s) {', '.join(str(index) for index in blanks)}; those columns cannot be mapped")
    duplicates = sorted(header for header, count in Counter(headers).items() if header and count > 1)
    if duplicates:
        warnings.append(f"Duplicate header(s): {', '.join(duplicates)}; later columns hide earlier ones")
    return warnings


def parse_csv_text(text: str, delimiter: str | None = None) -> ParsedCSVData:
    if not text.strip():
        raise IngestionError("CSV file is empty")

    delimiter = delimiter or _detect_delimiter(text)
    sep = r"\|" if delimiter == "|" else delimiter
    try:
        df = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            sep=sep,
            engine="python",
        )
    except pd.errors.EmptyDataError as exc:
        raise IngestionError("CSV file is empty") from exc
    except (pd.errors.ParserError, csv.Error) as exc:
        raise IngestionError(f"Could not parse CSV file. Check the file format. ({exc})") from exc

    df = df.fillna("").astype(str)
    df = df.apply(lambda column: column.str.strip())
    # rows holding only delimiters carry no data
    df = df[(df != "").any(axis=1)]
    if df.empty:
        raise IngestionError("CSV file is empty")

    headers = [str(value) for value in df.iloc[0].tolist()]
    body = df.iloc[1:]
    rows = [
        {header: value for header, value in zip(headers, values)}
        for values in body.itertuples(index=False, name=None)
    ]

    warnings = _header_warnings(headers)
    if not rows:
        warnings.append("The file has a header row but no data rows")
    return ParsedCSVData(
        headers=headers,
        rows=rows,
        total_rows=len(rows),
        delimiter=delimiter,
        warnings=warnings,
    )


def parse_csv_bytes(raw: bytes, *, file_name: str | None = None) -> ParsedCSVData:
    """Decode and parse an uploaded CSV file."""
    if file_name:
        suffix = Path(file_name).suffix.lower()
        if suffix and suffix not in SUPPORTED_SUFFIXES:
            supported = ", ".join(sorted(SUPPORTED_SUFFIXES))
            raise IngestionError(f"Unsupported format '{suffix}'. Supported: {supported}")
    if not raw.strip():
        raise IngestionError("CSV file is empty")

    encoding, confidence = _detect_encoding(raw)
    text = _read_text_safely(raw, encoding)
    delimiter = "\t" if file_name and file_name.lower().endswith(".tsv") else None
    parsed = parse_csv_text(text, delimiter)
    parsed.encoding = encoding
    if not _is_utf8_family(encoding):
        parsed.warnings.insert(0, f"File is not UTF-8 (detected {encoding}, confidence {confidence}); decoded line by line")
    return parsed


def load_csv(path: "str | Path") -> ParsedCSVData:
    """
    Raises:
        FileNotFoundError  if the file does not exist.
        IngestionError     if the file is empty, unsupported or unparsable.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return parse_csv_bytes(path.read_bytes(), file_name=path.name)
