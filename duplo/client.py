"""HTTP client for the duplo file-storage server."""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import quote, urlsplit, urlunsplit

import requests

from . import __version__
from .errors import (
    DecodeError,
    HTTPStatusError,
    InputError,
    LocalFileError,
    TransportError,
)
from .sinks import Sink


logger = logging.getLogger("duplo.client")

CHUNK_SIZE = 8192

UploadPart = Tuple[str, Tuple[str, bytes]]


@dataclass(frozen=True)
class FileDescriptor:
    """One file as reported by the server listing."""
    name: str


# --- URL Layout ---
def join_url(base: str, *segments: str) -> str:
    """Append path segments to base; the result always ends with a slash."""
    parts = urlsplit(base)
    path = parts.path.rstrip("/")
    for segment in segments:
        segment = segment.strip("/")
        if segment:
            path = f"{path}/{segment}"
    return urlunsplit((parts.scheme, parts.netloc, path + "/", parts.query, parts.fragment))


class Endpoints:
    """Builds the server URLs for one storage."""
    def __init__(self, host: str, storage: str, permanent: bool = False):
        self.host = host
        self.storage = quote(storage, safe="/")
        self.permanent = permanent

    def _with_permanent(self, url: str) -> str:
        return join_url(url, "permanent") if self.permanent else url

    @property
    def base(self) -> str:
        return self._with_permanent(join_url(self.host, self.storage))

    @property
    def listing(self) -> str:
        return self._with_permanent(join_url(self.host, "api", self.storage))

    @property
    def upload(self) -> str:
        return join_url(self.base, "upload")

    def download(self, file_name: str) -> str:
        return join_url(self.base, quote(file_name, safe=""))

    @property
    def remove(self) -> str:
        return join_url(self.base, "remove")

    @property
    def share_text(self) -> str:
        return join_url(self.base, "shareText")


# --- Payload Helpers ---
def decode_listing(payload: Union[str, bytes]) -> List[FileDescriptor]:
    """Decode the listing JSON into descriptors, keeping server order."""
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise DecodeError(f"Malformed file list: {e}") from e
    # An empty listing may be encoded as null.
    if data is None:
        return []
    if not isinstance(data, list):
        raise DecodeError(f"Malformed file list: expected an array, got {type(data).__name__}")

    files: List[FileDescriptor] = []
    for position, entry in enumerate(data, start=1):
        if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
            raise DecodeError(f"Malformed file list: entry {position} has no file name")
        files.append(FileDescriptor(name=entry["name"]))
    return files


def build_upload_parts(paths: Sequence[Union[str, Path]]) -> Tuple[List[UploadPart], int]:
    """Read local files into multipart parts named after their base names.

    Directories are skipped. Any unreadable path fails the whole call so
    that nothing is uploaded partially. Returns the parts and their total
    size in bytes.
    """
    parts: List[UploadPart] = []
    total = 0
    for raw_path in paths:
        path = Path(raw_path)
        try:
            if path.is_dir():
                logger.debug(f"Skipping directory {path}")
                continue
            size = os.stat(path).st_size
            with open(path, "rb") as f:
                content = f.read()
        except OSError as e:
            raise LocalFileError(f"Unable to read {path}: {e.strerror or e}", str(path)) from e
        base_name = path.name
        parts.append((base_name, (base_name, content)))
        total += size
    return parts, total


# --- API Client ---
class StorageClient:
    """An API client for one storage on a duplo server."""
    def __init__(self, endpoints: Endpoints, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.endpoints = endpoints
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': f'duplo/{__version__}',
        })


    def _request(self, method: str, url: str, action: str, **kwargs) -> requests.Response:
        """Send one request; non-200 answers raise HTTPStatusError.

        ``action`` prefixes the error message, e.g. "Unable to get file".
        """
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Connection failed: {e}") from e

        logger.debug(f"{method} {url} -> {response.status_code}")
        if response.status_code != requests.codes.ok:
            body = response.text
            response.close()
            raise HTTPStatusError(f"{action}: {body}", response.status_code, body)
        return response


    def list_files(self) -> List[FileDescriptor]:
        """Fetch the current listing of the storage."""
        response = self._request(
            'GET', self.endpoints.listing, "Unable to get file list",
            headers={'Accept': 'application/json'},
        )
        files = decode_listing(response.content)
        logger.info(f"Fetched {len(files)} file(s) from {self.endpoints.listing}")
        return files


    def content_length(self, file_name: str) -> Optional[int]:
        """Ask the server for a file's size; None when it cannot say."""
        try:
            response = self.session.head(
                self.endpoints.download(file_name), timeout=self.timeout, allow_redirects=True
            )
        except requests.exceptions.RequestException as e:
            logger.debug(f"HEAD {file_name} failed: {e}")
            return None
        length = response.headers.get('Content-Length')
        if response.status_code != requests.codes.ok or length is None:
            return None
        try:
            return int(length)
        except ValueError:
            return None


    def download(self, file_name: str, sink: Sink,
                 on_chunk: Optional[Callable[[int], Any]] = None) -> None:
        """Stream a file into sink, reporting each chunk size to on_chunk."""
        response = self._request(
            'GET', self.endpoints.download(file_name), "Unable to get file", stream=True
        )
        with response:
            try:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    sink.write(chunk)
                    if on_chunk is not None:
                        on_chunk(len(chunk))
            except requests.exceptions.RequestException as e:
                raise TransportError(f"Connection failed: {e}") from e
        sink.finalize()
        logger.info(f"Downloaded {file_name}")


    def upload(self, paths: Sequence[Union[str, Path]]) -> int:
        """Upload local files in one multipart request; returns the part count."""
        if not paths:
            raise InputError("No files specified")
        parts, _ = build_upload_parts(paths)
        return self.upload_parts(parts)


    def upload_parts(self, parts: Sequence[UploadPart]) -> int:
        """Send already-built parts in one multipart request."""
        if not parts:
            raise InputError("No files to upload")
        logger.info(f"Uploading {len(parts)} file(s)")
        response = self._request(
            'POST', self.endpoints.upload, "Unable to upload file", files=list(parts)
        )
        response.close()
        return len(parts)


    def delete(self, file_name: str) -> None:
        """Remove a file from the storage."""
        self._post_form(self.endpoints.remove, {'fileName': file_name})
        logger.info(f"Deleted {file_name}")


    def share_text(self, title: str, body: str) -> None:
        """Publish a text note under title."""
        self._post_form(self.endpoints.share_text, {'title': title, 'body': body})
        logger.info(f"Shared text {title!r}")


    def _post_form(self, url: str, fields: Dict[str, str]) -> None:
        response = self._request('POST', url, "Unable to make post request", data=fields)
        response.close()
