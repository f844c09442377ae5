import json
import logging

from upload_logger import LOG_FILE_NAME


def _json_records(log_dir):
    records = []
    for path in sorted(log_dir.glob("uploads_*.jsonl")):
        with open(path, encoding="utf-8") as f:
            records.extend(json.loads(line) for line in f if line.strip())
    return records


def test_stats_track_successes_and_failures(logger):
    logger.log_upload_success("/source/a.txt", "/completed/a.txt", 1024 * 1024, 0.5, status_code=200)
    logger.log_upload_success("/source/b.txt", "/completed/b.txt", 512, 0.1, status_code=201)
    logger.log_upload_failure("/source/c.txt", "Connection timeout", 2048)

    stats = logger.get_stats()

    assert stats['total_uploads'] == 3
    assert stats['successful_uploads'] == 2
    assert stats['failed_uploads'] == 1
    assert stats['total_size'] == 1024 * 1024 + 512
    assert stats['success_rate'] == 66.67


def test_stats_without_uploads(logger):
    stats = logger.get_stats()
    assert stats['success_rate'] == 0
    assert stats['total_size_formatted'] == "0.00 B"


def test_json_log_has_one_record_per_outcome(logger):
    logger.log_upload_success("/source/a.txt", "/completed/a.txt", 10, 0.25, status_code=200)
    logger.log_upload_failure(
        "/source/b.txt", "Failed upload. Status code: 500, Body: boom", 20,
        outcome="TRANSIENT_FAILURE", destination="/failed/b.txt"
    )

    records = _json_records(logger.log_dir)

    assert [r['status'] for r in records] == ['SUCCESS', 'TRANSIENT_FAILURE']
    assert records[0]['destination'] == "/completed/a.txt"
    assert records[0]['http_status'] == 200
    assert records[1]['error'].endswith("boom")
    assert records[1]['destination'] == "/failed/b.txt"


def test_text_log_file_written(logger):
    logger.log_system_event("Uploader initialized", "INFO")
    logger.log_file_detected("/source/x.bin", "scan")

    for handler in logger.logger.handlers:
        handler.flush()
    content = (logger.log_dir / LOG_FILE_NAME).read_text(encoding="utf-8")

    assert "Uploader initialized" in content
    assert "File discovered by scan: /source/x.bin" in content


def test_failure_is_logged_at_error_level(logger, caplog):
    with caplog.at_level(logging.DEBUG, logger=logger.name):
        logger.log_upload_failure("/source/locked.docx", "Permission denied")

    assert any(r.levelno == logging.ERROR and "Permission denied" in r.getMessage() for r in caplog.records)


def test_format_size(logger):
    assert logger._format_size(512) == "512.00 B"
    assert logger._format_size(1536) == "1.50 KB"
    assert logger._format_size(50 * 1024 * 1024) == "50.00 MB"


def test_failures_counted_by_outcome(logger):
    logger.log_upload_failure("/source/a.txt", "Transport error: refused", 10, outcome="TRANSIENT_FAILURE")
    logger.log_upload_failure("/source/b.txt", "Failed upload. Status code: 500", 10, outcome="TRANSIENT_FAILURE")
    logger.log_upload_failure("/source/c.txt", "Failed upload. Status code: 415", 10, outcome="PERMANENT_FAILURE")

    stats = logger.get_stats()

    assert stats['failed_uploads'] == 3
    assert stats['transient_failures'] == 2
    assert stats['permanent_failures'] == 1


def test_print_stats_reports_failure_split(logger, caplog):
    logger.log_upload_failure("/source/c.txt", "Failed upload. Status code: 415", 10, outcome="PERMANENT_FAILURE")

    with caplog.at_level(logging.INFO, logger=logger.name):
        logger.print_stats()

    assert "Failed: 1 (transient: 0, permanent: 1)" in caplog.text


def test_log_exception_keeps_traceback(logger, caplog):
    with caplog.at_level(logging.ERROR, logger=logger.name):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.log_exception("Unexpected error processing /source/x.bin")

    record = caplog.records[-1]
    assert record.levelno == logging.ERROR
    assert record.exc_info and record.exc_info[0] is RuntimeError
