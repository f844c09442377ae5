import os
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import requests

CHUNK_SIZE = 64 * 1024
FIELD_NAME = "file"

# Statuses worth handing back to an operator for another try.
TRANSIENT_STATUS_CODES = {408, 429}


class UploadOutcome(Enum):
    SUCCESS = "SUCCESS"
    TRANSIENT_FAILURE = "TRANSIENT_FAILURE"
    PERMANENT_FAILURE = "PERMANENT_FAILURE"


@dataclass
class UploadResult:
    outcome: UploadOutcome
    message: str
    status_code: Optional[int] = None
    body: Optional[str] = None
    bytes_sent: int = 0

    @property
    def succeeded(self) -> bool:
        return self.outcome is UploadOutcome.SUCCESS


def classify_status(status_code: int) -> UploadOutcome:
    if 200 <= status_code < 300:
        return UploadOutcome.SUCCESS
    if status_code >= 500 or status_code in TRANSIENT_STATUS_CODES:
        return UploadOutcome.TRANSIENT_FAILURE
    return UploadOutcome.PERMANENT_FAILURE


class MultipartFileStream:
    """multipart/form-data body carrying a single file part.

    Iterating yields the part header, the file content in CHUNK_SIZE pieces
    and the closing boundary, so the file is never held in memory. ``len()``
    gives the exact body size, computed from the file size when the stream is
    created. If the file turns out shorter than that, iteration raises OSError
    and the request is abandoned with an incomplete body.
    """

    def __init__(self, fileobj, filename: str, field_name: str = FIELD_NAME,
                 chunk_size: int = CHUNK_SIZE, boundary: Optional[str] = None):
        self.fileobj = fileobj
        self.filename = filename
        self.chunk_size = chunk_size
        self.boundary = boundary or uuid.uuid4().hex
        self.file_size = os.fstat(fileobj.fileno()).st_size

        self._head = (
            f"--{self.boundary}\r\n"
            f'Content-Disposition: form-data; name="{field_name}"; filename="{_quote(filename)}"\r\n'
            f"Content-Type: application/octet-stream\r\n"
            f"\r\n"
        ).encode("utf-8")
        self._tail = f"\r\n--{self.boundary}--\r\n".encode("ascii")

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def __len__(self):
        return len(self._head) + self.file_size + len(self._tail)

    def __iter__(self):
        yield self._head
        remaining = self.file_size
        while remaining > 0:
            chunk = self.fileobj.read(min(self.chunk_size, remaining))
            if not chunk:
                raise OSError(
                    f"{self.filename} shrank while uploading, {remaining} bytes missing"
                )
            remaining -= len(chunk)
            yield chunk
        yield self._tail


def _quote(filename: str) -> str:
    return filename.replace('"', "%22").replace("\r", "%0D").replace("\n", "%0A")


class UploadClient:
    """Posts files to the upload endpoint as multipart/form-data."""

    def __init__(self, upload_url: str, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.upload_url = upload_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def upload(self, file_path: str) -> UploadResult:
        """Stream ``file_path`` to the endpoint and classify the response.

        Never raises for network or HTTP problems; those come back as a failed
        UploadResult. OSError from opening the file is left to the caller.
        """
        file_name = os.path.basename(file_path)

        with open(file_path, "rb") as f:
            body = MultipartFileStream(f, file_name)
            try:
                response = self.session.post(
                    self.upload_url,
                    data=body,
                    headers={"Content-Type": body.content_type},
                    timeout=self.timeout,
                    allow_redirects=False,
                    stream=True,
                )
            except (requests.RequestException, OSError) as e:
                return UploadResult(
                    outcome=UploadOutcome.TRANSIENT_FAILURE,
                    message=f"Transport error: {e}",
                )

        with response:
            outcome = classify_status(response.status_code)
            if outcome is UploadOutcome.SUCCESS:
                return UploadResult(
                    outcome=outcome,
                    message=f"Uploaded. Status code: {response.status_code}",
                    status_code=response.status_code,
                    bytes_sent=body.file_size,
                )

            try:
                text = response.text
            except (requests.RequestException, OSError) as e:
                return UploadResult(
                    outcome=outcome,
                    message=f"Failed upload. Status code: {response.status_code}. Could not read body: {e}",
                    status_code=response.status_code,
                )
            return UploadResult(
                outcome=outcome,
                message=f"Failed upload. Status code: {response.status_code}, Body: {text}",
                status_code=response.status_code,
                body=text,
            )

    def close(self):
        self.session.close()
