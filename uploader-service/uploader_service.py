import argparse
import signal
import sys
import threading
from typing import Optional

from file_lock import FileLockGuard
from file_mover import StateMover, ensure_directories
from pipeline import Dispatcher, DirectoryScanner, DirectoryWatcher, DiscoveryStream
from settings import ConfigError, UploaderConfig, load_config
from upload_client import UploadClient
from upload_logger import get_logger


class UploaderService:
    """Owns the discovery threads and the dispatcher.

    ``start`` returns once the pipeline is running. ``stop`` stops discovery,
    waits for the dispatcher to finish whatever was already queued (including
    an upload in flight) and then returns.
    """

    def __init__(self, config: UploaderConfig, logger=None, upload_client: Optional[UploadClient] = None,
                 lock_guard: Optional[FileLockGuard] = None, observer=None):
        self.config = config
        self.logger = logger or get_logger(
            name="file_uploader", log_dir=config.log_dir, log_level=config.log_level
        )
        self.upload_client = upload_client or UploadClient(config.upload_url, timeout=config.upload_timeout)
        self.lock_guard = lock_guard or FileLockGuard(self.logger)
        self.mover = StateMover(config.completed_dir, config.failed_dir, self.logger)
        self._observer = observer

        self.shutdown = threading.Event()
        self.stream = None
        self.scanner = None
        self.watcher = None
        self.dispatcher = None

    def start(self):
        """Create directories and spawn the pipeline. Startup errors propagate."""
        self.logger.log_system_event(
            f"Starting file-uploader. SourceDir={self.config.source_dir}, "
            f"CompletedDir={self.config.completed_dir}, FailedDir={self.config.failed_dir}, "
            f"UploadUrl={self.config.upload_url}"
        )
        ensure_directories(*self.config.directories)

        self.stream = DiscoveryStream(self.shutdown)
        self.scanner = DirectoryScanner(
            self.config.source_dir, self.stream, self.shutdown, self.config.scan_interval, self.logger
        )
        if self.config.watch_events:
            self.watcher = DirectoryWatcher(
                self.config.source_dir, self.stream, self.shutdown, self.logger, observer=self._observer
            )
        else:
            self.logger.log_system_event(
                f"Live events disabled, scanning every {self.config.scan_interval}s.", "INFO"
            )
        self.dispatcher = Dispatcher(self.stream, self.lock_guard, self.upload_client, self.mover, self.logger)

        if self.watcher is not None:
            self.watcher.start()
        self.scanner.start()
        self.dispatcher.start()
        self.logger.log_system_event("Uploader service started and running.", "INFO")

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Signal shutdown and wait for the dispatcher to drain.

        Returns False if ``timeout`` expired before the dispatcher finished.
        """
        self.logger.log_system_event("Received shutdown signal.", "WARNING")
        self.shutdown.set()

        drained = True
        if self.dispatcher is not None:
            drained = self.dispatcher.done.wait(timeout)
            for thread in (self.scanner, self.watcher):
                if thread is not None and thread.is_alive():
                    thread.join(timeout)

        self.upload_client.close()
        self.logger.print_stats()
        self.logger.log_system_event("Shutdown complete" if drained else "Shutdown timed out", "INFO")
        return drained

    def run_forever(self):
        """Start, block until SIGINT/SIGTERM, then stop."""
        stop_requested = threading.Event()

        def _handle_signal(signum, frame):
            self.logger.log_system_event(f"Signal {signal.Signals(signum).name} received.", "WARNING")
            stop_requested.set()

        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)

        self.start()
        try:
            while not stop_requested.wait(1):
                pass
        finally:
            self.stop()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Upload files dropped into a directory to an HTTP endpoint.")
    parser.add_argument("-c", "--config", help="Path to the dotenv config file (default: uploader.env)")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"CRITICAL: {e}", file=sys.stderr)
        sys.exit(1)

    logger = get_logger(name="file_uploader", log_dir=config.log_dir, log_level=config.log_level)
    service = UploaderService(config, logger=logger)

    try:
        service.run_forever()
    except OSError as e:
        logger.log_system_event(f"CRITICAL: Failed to start uploader: {e}", "CRITICAL")
        sys.exit(1)


if __name__ == "__main__":
    main()
