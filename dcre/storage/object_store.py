"""Upload-location descriptors for the external object store.

The engine never touches file bytes: it hands out paths the client uploads to
directly and records them as evidence pointers.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class FileDescriptor:
    name: str
    content_type: str | None = None


@dataclass(frozen=True)
class UploadDescriptor:
    bucket: str
    path: str
    name: str
    content_type: str | None


class ObjectStore:
    """Builds per-case upload paths inside one bucket."""

    def __init__(self, bucket: str):
        self.bucket = bucket

    def sign_uploads(
        self,
        owner_id: str,
        kind: str,
        case_id: str,
        files: list[FileDescriptor],
        now: datetime,
    ) -> list[UploadDescriptor]:
        """One descriptor per file: <owner>/<kind>s/<case>/<millis>-<index>.<ext>."""
        timestamp = int(now.timestamp() * 1000)
        uploads = []
        for index, file in enumerate(files):
            uploads.append(
                UploadDescriptor(
                    bucket=self.bucket,
                    path=f"{owner_id}/{kind}s/{case_id}/{timestamp}-{index}.{_extension(file.name)}",
                    name=file.name,
                    content_type=file.content_type,
                )
            )
        return uploads


def _extension(name: str) -> str:
    if "." not in name:
        return "jpg"
    ext = name.rsplit(".", 1)[1].strip().lower()
    return ext or "jpg"
