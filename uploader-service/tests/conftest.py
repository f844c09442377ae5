import threading
import uuid

import pytest
from flask import Flask, request
from werkzeug.serving import make_server

from upload_logger import get_logger


class UploadRecorder:
    """What the test endpoint received, and how it should answer."""

    def __init__(self):
        self.uploads = []
        self.status = 200
        self.body = "ok"
        self.entered = threading.Event()
        self.release = None
        self.url = None

    @property
    def count(self):
        return len(self.uploads)


@pytest.fixture
def logger(tmp_path):
    upload_logger = get_logger(
        name=f"test_uploader_{uuid.uuid4().hex[:8]}",
        log_dir=str(tmp_path / "logs"),
        log_level="DEBUG",
        console_output=False
    )
    yield upload_logger
    upload_logger.close()


@pytest.fixture
def upload_server():
    recorder = UploadRecorder()
    app = Flask("test_receiver")

    @app.route("/upload", methods=["POST"])
    def upload():
        uploaded = request.files["file"]
        recorder.uploads.append((uploaded.filename, uploaded.read()))
        recorder.entered.set()
        if recorder.release is not None:
            recorder.release.wait(10)
        return recorder.body, recorder.status

    server = make_server("127.0.0.1", 0, app, threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    recorder.url = f"http://127.0.0.1:{server.server_port}/upload"

    yield recorder

    if recorder.release is not None:
        recorder.release.set()
    server.shutdown()
    thread.join(5)


@pytest.fixture
def dirs(tmp_path):
    paths = {name: tmp_path / name for name in ("source", "completed", "failed")}
    for path in paths.values():
        path.mkdir()
    return paths
