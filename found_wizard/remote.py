"""
Fetching a register that is published at a public URL.

Share links from GitHub, Google Sheets/Drive, Dropbox, OneDrive and Box open an HTML
viewer rather than the file, so they are rewritten to their download form
before the request is made.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Callable
from urllib.parse import ParseResult, parse_qsl, urlencode, urlparse

import requests

from found_wizard.loader import IngestionError, ParsedCSVData, parse_csv_bytes

MAX_REMOTE_FILE_MB = 100
MAX_REMOTE_FILE_BYTES = MAX_REMOTE_FILE_MB * 1024 * 1024
REQUEST_TIMEOUT_SECONDS = 60
DOWNLOAD_CHUNK_BYTES = 256 * 1024
FALLBACK_FILENAME = "export.csv"

SHEET_ID_RE = re.compile(r"/spreadsheets/d/([\w-]+)")
DRIVE_FILE_RE = re.compile(r"/file/d/([\w-]+)")
FILENAME_PARAM_RE = re.compile(r"""filename\*?=(?:UTF-8'')?["']?([^"';]+)""", re.I)


def is_remote_source(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


def _github_blob(url: ParseResult) -> str | None:
    if url.netloc.lower() != "github.com":
        return None
    parts = url.path.strip("/").split("/")
    if len(parts) < 5 or parts[2] != "blob":
        return None
    owner, repo, _, ref = parts[:4]
    return f"https://raw.githubusercontent.com/{owner}/{repo}/{ref}/{'/'.join(parts[4:])}"


def _google_sheet(url: ParseResult) -> str | None:
    if url.netloc.lower() != "docs.google.com":
        return None
    match = SHEET_ID_RE.search(url.path)
    if match is None:
        return None
    # The tab id may sit in the query or in the #gid= fragment.
    params = {**dict(parse_qsl(url.query)), **dict(parse_qsl(url.fragment))}
    return f"https://docs.google.com/spreadsheets/d/{match.group(1)}/export?format=csv&gid={params.get('gid', '0')}"


def _drive_file(url: ParseResult) -> str | None:
    if url.netloc.lower() != "drive.google.com":
        return None
    match = DRIVE_FILE_RE.search(url.path)
    file_id = match.group(1) if match else dict(parse_qsl(url.query)).get("id")
    if not file_id:
        return None
    return f"https://drive.google.com/uc?export=download&id={file_id}"


def _with_query_flag(url: ParseResult, key: str) -> str:
    params = [(name, value) for name, value in parse_qsl(url.query, keep_blank_values=True) if name != key]
    params.append((key, "1"))
    return url._replace(query=urlencode(params)).geturl()


def _dropbox(url: ParseResult) -> str | None:
    if not url.netloc.lower().endswith("dropbox.com"):
        return None
    return _with_query_flag(url, "dl")


def _onedrive_or_box(url: ParseResult) -> str | None:
    host = url.netloc.lower()
    if not host.endswith(("1drv.ms", "onedrive.live.com", "box.com")):
        return None
    return _with_query_flag(url, "download")


SHARE_LINK_REWRITERS: tuple[Callable[[ParseResult], str | None], ...] = (
    _github_blob,
    _google_sheet,
    _drive_file,
    _dropbox,
    _onedrive_or_box,
)


def normalize_public_url(raw_url: str) -> str:
    """Return the direct download URL for a share link, or the URL itself."""
    text = raw_url.strip()
    url = urlparse(text)
    if url.scheme.lower() not in {"http", "https"} or not url.netloc:
        raise ValueError("URL must start with http:// or https://")
    for rewrite in SHARE_LINK_REWRITERS:
        direct = rewrite(url)
        if direct is not None:
            return direct
    return text


def response_filename(response: requests.Response, requested_url: str) -> str:
    disposition = response.headers.get("content-disposition", "")
    match = FILENAME_PARAM_RE.search(disposition)
    if match:
        name = PurePosixPath(match.group(1).strip()).name
    else:
        name = PurePosixPath(urlparse(response.url or requested_url).path).name
    if not name:
        return FALLBACK_FILENAME
    return name if PurePosixPath(name).suffix else f"{name}.csv"


def read_limited(response: requests.Response) -> bytes:
    declared = response.headers.get("Content-Length", "")
    if declared.isdigit() and int(declared) > MAX_REMOTE_FILE_BYTES:
        raise IngestionError(f"Remote file is larger than {MAX_REMOTE_FILE_MB} MB.")
    body = bytearray()
    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_BYTES):
        body.extend(chunk)
        if len(body) > MAX_REMOTE_FILE_BYTES:
            raise IngestionError(f"Remote file is larger than {MAX_REMOTE_FILE_MB} MB.")
    return bytes(body)


def fetch_remote_csv(raw_url: str) -> tuple[ParsedCSVData, str]:
    """Download a public CSV and parse it. Returns the data and the file name."""
    url = normalize_public_url(raw_url)
    try:
        response = requests.get(url, timeout=REQUEST_TIMEOUT_SECONDS, stream=True)
        try:
            response.raise_for_status()
            content = read_limited(response)
            filename = response_filename(response, url)
        finally:
            response.close()
    except requests.RequestException as exc:
        raise IngestionError(f"Could not download {raw_url}: {exc}") from exc
    return parse_csv_bytes(content, file_name=filename), filename
