import logging

from file_mover import StateMover, ensure_directories


def test_ensure_directories_creates_missing(tmp_path):
    targets = [tmp_path / "a" / "source", tmp_path / "completed", tmp_path / "failed"]
    (tmp_path / "completed").mkdir()

    ensure_directories(*targets)

    assert all(t.is_dir() for t in targets)


def test_complete_moves_under_original_name(dirs, logger):
    src = dirs["source"] / "invoice.pdf"
    src.write_bytes(b"%PDF")
    mover = StateMover(dirs["completed"], dirs["failed"], logger)

    destination = mover.complete(str(src))

    assert destination == dirs["completed"] / "invoice.pdf"
    assert destination.read_bytes() == b"%PDF"
    assert not src.exists()


def test_fail_moves_to_failed(dirs, logger):
    src = dirs["source"] / "broken.bin"
    src.write_bytes(b"x")
    mover = StateMover(dirs["completed"], dirs["failed"], logger)

    assert mover.fail(str(src)) == dirs["failed"] / "broken.bin"
    assert list(dirs["source"].iterdir()) == []


def test_name_collision_leaves_file_in_source(dirs, logger, caplog):
    src = dirs["source"] / "dup.txt"
    src.write_bytes(b"new")
    (dirs["completed"] / "dup.txt").write_bytes(b"old")
    mover = StateMover(dirs["completed"], dirs["failed"], logger)

    with caplog.at_level(logging.ERROR):
        assert mover.complete(str(src)) is None

    assert src.read_bytes() == b"new"
    assert (dirs["completed"] / "dup.txt").read_bytes() == b"old"
    assert "Failed to move completed file" in caplog.text


def test_missing_source_is_logged_not_raised(dirs, logger):
    mover = StateMover(dirs["completed"], dirs["failed"], logger)
    assert mover.fail(str(dirs["source"] / "gone.txt")) is None
