import io

import pytest

from receiver import create_app


@pytest.fixture
def client(tmp_path):
    app = create_app(str(tmp_path / "received"))
    app.config["TESTING"] = True
    return app.test_client()


def test_upload_stores_file(client, tmp_path):
    response = client.post(
        "/upload",
        data={"file": (io.BytesIO(b"hello world"), "greeting.txt")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 200
    assert response.get_json()["filename"] == "greeting.txt"
    assert (tmp_path / "received" / "greeting.txt").read_bytes() == b"hello world"


def test_upload_without_file_part(client):
    response = client.post("/upload", data={"other": "x"}, content_type="multipart/form-data")
    assert response.status_code == 400


def test_list_files(client):
    client.post("/upload", data={"file": (io.BytesIO(b"1"), "b.txt")}, content_type="multipart/form-data")
    client.post("/upload", data={"file": (io.BytesIO(b"2"), "a.txt")}, content_type="multipart/form-data")

    response = client.get("/api/files")

    assert response.get_json() == {"files": ["a.txt", "b.txt"]}


def test_health(client):
    assert client.get("/health").get_json() == {"status": "ok"}
