import logging
import json
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Dict, Any

LOG_FILE_NAME = "uploader.log"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 3

CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class UploadLogger:
    def __init__(
        self,
        name: str = "file_uploader",
        log_dir: str = "./logs",
        log_level: str = "INFO",
        console_output: bool = True
    ):
        self.name = name
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, log_level.upper()))

        if self.logger.handlers:
            for handler in list(self.logger.handlers):
                handler.close()
            self.logger.handlers.clear()

        file_handler = RotatingFileHandler(
            self.log_dir / LOG_FILE_NAME,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        self.logger.addHandler(file_handler)

        if console_output:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
            self.logger.addHandler(console_handler)

        self.stats = {
            'total_uploads': 0,
            'successful_uploads': 0,
            'failed_uploads': 0,
            'transient_failures': 0,
            'permanent_failures': 0,
            'total_size': 0
        }

    def log_file_detected(self, file_path: str, source: str):
        self.logger.debug(f"File discovered by {source}: {file_path}")

    def log_upload_start(self, file_path: str, file_size: int):
        self.logger.info(
            f"Starting upload: {file_path} "
            f"(Size: {self._format_size(file_size)})"
        )

    def log_upload_success(
        self,
        file_path: str,
        destination: str,
        file_size: int,
        duration: float,
        status_code: Optional[int] = None
    ):
        self.stats['total_uploads'] += 1
        self.stats['successful_uploads'] += 1
        self.stats['total_size'] += file_size

        self.logger.info(
            f"✓ Upload SUCCESS: {file_path} -> {destination} | "
            f"Status: {status_code} | "
            f"Size: {self._format_size(file_size)} | "
            f"Duration: {duration:.2f}s"
        )

        self._write_json_log({
            'timestamp': datetime.now().isoformat(),
            'status': 'SUCCESS',
            'source': file_path,
            'destination': destination,
            'http_status': status_code,
            'size_bytes': file_size,
            'size_formatted': self._format_size(file_size),
            'duration_seconds': round(duration, 2)
        })

    def log_upload_failure(
        self,
        file_path: str,
        error: str,
        file_size: Optional[int] = None,
        outcome: str = 'FAILED',
        destination: Optional[str] = None
    ):
        self.stats['total_uploads'] += 1
        self.stats['failed_uploads'] += 1
        if outcome == 'TRANSIENT_FAILURE':
            self.stats['transient_failures'] += 1
        elif outcome == 'PERMANENT_FAILURE':
            self.stats['permanent_failures'] += 1

        size_info = f"Size: {self._format_size(file_size)} | " if file_size else ""

        self.logger.error(
            f"✗ Upload {outcome}: {file_path} | "
            f"{size_info}"
            f"Error: {error}"
        )

        self._write_json_log({
            'timestamp': datetime.now().isoformat(),
            'status': outcome,
            'source': file_path,
            'destination': destination,
            'size_bytes': file_size,
            'size_formatted': self._format_size(file_size) if file_size else None,
            'error': error
        })

    def log_system_event(self, message: str, level: str = "INFO"):
        log_func = getattr(self.logger, level.lower())
        log_func(message)

    def log_exception(self, message: str):
        """Log at ERROR with the active exception's traceback."""
        self.logger.exception(message)

    def get_stats(self) -> Dict[str, Any]:
        if self.stats['total_uploads'] > 0:
            success_rate = (
                self.stats['successful_uploads'] /
                self.stats['total_uploads'] * 100
            )
        else:
            success_rate = 0

        return {
            **self.stats,
            'success_rate': round(success_rate, 2),
            'total_size_formatted': self._format_size(self.stats['total_size'])
        }

    def print_stats(self):
        stats = self.get_stats()
        self.logger.info("=" * 50)
        self.logger.info("UPLOAD STATISTICS")
        self.logger.info("=" * 50)
        self.logger.info(f"Total uploads: {stats['total_uploads']}")
        self.logger.info(f"Successful: {stats['successful_uploads']}")
        self.logger.info(
            f"Failed: {stats['failed_uploads']} "
            f"(transient: {stats['transient_failures']}, permanent: {stats['permanent_failures']})"
        )
        self.logger.info(f"Success rate: {stats['success_rate']}%")
        self.logger.info(f"Total size uploaded: {stats['total_size_formatted']}")
        self.logger.info("=" * 50)

    def close(self):
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)

    def _format_size(self, size_bytes: int) -> str:
        for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
            if size_bytes < 1024.0:
                return f"{size_bytes:.2f} {unit}"
            size_bytes /= 1024.0
        return f"{size_bytes:.2f} PB"

    def _write_json_log(self, log_data: Dict[str, Any]):
        # One JSON object per line; the agent runs indefinitely.
        json_log_file = self.log_dir / f"uploads_{datetime.now().strftime('%Y%m%d')}.jsonl"

        try:
            with open(json_log_file, 'a', encoding='utf-8') as f:
                f.write(json.dumps(log_data, ensure_ascii=False) + "\n")
        except OSError as e:
            self.logger.warning(f"Failed to write JSON log: {e}")


def get_logger(
    name: str = "file_uploader",
    log_dir: str = "./logs",
    log_level: str = "INFO",
    console_output: bool = True
) -> UploadLogger:

    return UploadLogger(
        name=name,
        log_dir=log_dir,
        log_level=log_level,
        console_output=console_output
    )
