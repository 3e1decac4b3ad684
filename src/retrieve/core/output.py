"""
Output resolution: map the configured output path plus response metadata to a
destination file, then stream the body into it.
"""
import logging
import os
import posixpath
import stat
from pathlib import Path
from typing import AsyncIterable, Mapping, Optional

import httpx

from ..context import Context
from ..logger import LOG_PREFIX

logger = logging.getLogger(__name__)

FILENAME_PARAM = "filename="


def filename_from_content_disposition(value: Optional[str]) -> Optional[str]:
    """
    Pull the ``filename=`` parameter out of a Content-Disposition header.

    >>> filename_from_content_disposition('attachment; filename="cat.png"')
    'cat.png'
    """
    if not value:
        return None
    _, sep, rest = value.partition(FILENAME_PARAM)
    if not sep:
        return None
    name = rest.split(";", 1)[0].strip().strip('"')
    # Only the base name; a header must not pick the directory for us.
    name = posixpath.basename(name.replace("\\", "/"))
    if name in ("", ".", ".."):
        return None
    return name


def filename_from_url(url: str) -> str:
    """Last non-empty path segment of the URL, else its host (with port)."""
    parsed = httpx.URL(url)
    segments = [s for s in parsed.path.split("/") if s]
    if segments:
        return segments[-1]
    host = parsed.host
    if parsed.port is not None:
        host = f"{host}:{parsed.port}"
    return host or "index"


def extract_filename(headers: Mapping[str, str], url: str) -> str:
    disposition = headers.get("Content-Disposition") or headers.get("content-disposition")
    return filename_from_content_disposition(disposition) or filename_from_url(url)


def resolve_output_path(output: str, headers: Mapping[str, str], url: str) -> Path:
    """
    A configured output that already exists as a directory receives a derived
    file name; anything else is the destination file itself.
    """
    path = Path(output)
    try:
        is_dir = stat.S_ISDIR(os.stat(path).st_mode)
    except FileNotFoundError:
        is_dir = False
    if is_dir:
        resolved = path / extract_filename(headers, url)
    else:
        resolved = path
    logger.debug(f"{LOG_PREFIX} Output resolved: {output} -> {resolved}")
    return resolved


async def write_stream(path: Path, chunks: AsyncIterable[bytes], ctx: Optional[Context] = None) -> int:
    """
    Create/truncate ``path`` and copy every chunk into it.

    The context is checked before each chunk is pulled from the network.
    A partially written file is left behind on failure.
    """
    written = 0
    with open(path, "wb") as out:
        iterator = chunks.__aiter__()
        while True:
            if ctx is not None:
                ctx.raise_if_done()
            try:
                chunk = await iterator.__anext__()
            except StopAsyncIteration:
                break
            out.write(chunk)
            written += len(chunk)
    logger.info(f"{LOG_PREFIX} Saved {written} bytes to {os.fspath(path)}")
    return written
