"""Read and write small text blobs on local disk or Cloud Storage."""

from __future__ import annotations

from pathlib import Path

from google.cloud import storage

_GS_PREFIX = "gs://"


def gs_uri(bucket: str, name: str) -> str:
    return f"{_GS_PREFIX}{bucket}/{name}"


def is_gs_uri(location: str) -> bool:
    return location.startswith(_GS_PREFIX)


def parse_gs_uri(uri: str) -> tuple[str, str]:
    if not is_gs_uri(uri):
        raise ValueError(f"Not a Cloud Storage URI: {uri}")
    bucket, _, name = uri[len(_GS_PREFIX) :].partition("/")
    if not bucket or not name:
        raise ValueError(f"Cloud Storage URI needs a bucket and object name: {uri}")
    return bucket, name


def read_text(location: str | Path, *, client: storage.Client | None = None) -> str:
    loc = str(location)
    if is_gs_uri(loc):
        bucket, name = parse_gs_uri(loc)
        c = client or storage.Client()
        return c.bucket(bucket).blob(name).download_as_text(encoding="utf-8")
    return Path(loc).read_text(encoding="utf-8")


def write_text(
    location: str | Path,
    text: str,
    *,
    client: storage.Client | None = None,
    content_type: str = "text/plain",
) -> None:
    loc = str(location)
    if is_gs_uri(loc):
        bucket, name = parse_gs_uri(loc)
        c = client or storage.Client()
        c.bucket(bucket).blob(name).upload_from_string(text, content_type=content_type)
        return
    p = Path(loc)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")
