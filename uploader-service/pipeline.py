import os
import queue
import threading
import time

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from file_lock import LockError

STREAM_MAX_SIZE = 16
EMIT_POLL_INTERVAL = 0.2
OBSERVER_HEALTH_INTERVAL = 1.0

_CLOSED = object()


# ----------------------------------------------------
# Discovery stream: scanner + watcher -> dispatcher
# ----------------------------------------------------
class DiscoveryStream:
    """Bounded queue merging every discovery source into one consumer.

    Each producer is registered with ``add_producer`` before consumption
    starts and calls ``close`` exactly once. Iteration ends once every
    producer has closed, after the items queued before that have been handed
    out. A path that is already waiting in the queue is not queued twice.
    """

    def __init__(self, shutdown: threading.Event, maxsize: int = STREAM_MAX_SIZE):
        self._shutdown = shutdown
        self._queue = queue.Queue(maxsize=maxsize)
        self._pending = set()
        self._lock = threading.Lock()
        self._producers = 0

    def add_producer(self):
        with self._lock:
            self._producers += 1

    def emit(self, file_path: str) -> bool:
        """Queue ``file_path``; returns False once shutdown has been signalled."""
        with self._lock:
            if file_path in self._pending:
                return True
            self._pending.add(file_path)

        while not self._shutdown.is_set():
            try:
                self._queue.put(file_path, timeout=EMIT_POLL_INTERVAL)
                return True
            except queue.Full:
                continue

        with self._lock:
            self._pending.discard(file_path)
        return False

    def close(self):
        self._queue.put(_CLOSED)

    def __iter__(self):
        with self._lock:
            open_producers = self._producers

        while open_producers:
            item = self._queue.get()
            if item is _CLOSED:
                open_producers -= 1
                continue
            with self._lock:
                self._pending.discard(item)
            yield item


# ----------------------------------------------------
# Scanner: periodic listing of the source directory
# ----------------------------------------------------
class DirectoryScanner(threading.Thread):
    def __init__(self, source_dir, stream: DiscoveryStream, shutdown: threading.Event,
                 interval: float, logger):
        super().__init__(name="directory-scanner", daemon=True)
        self.source_dir = str(source_dir)
        self.stream = stream
        self.interval = interval
        self.logger = logger
        self._shutdown = shutdown
        stream.add_producer()

    def run(self):
        try:
            while not self._shutdown.is_set():
                try:
                    self.scan_once()
                except OSError as e:
                    self.logger.log_system_event(f"Failed to read dir {self.source_dir}: {e}", "ERROR")
                if self._shutdown.wait(self.interval):
                    break
        finally:
            self.stream.close()
            self.logger.log_system_event("Directory scanner stopped.", "DEBUG")

    def scan_once(self) -> int:
        """Emit every non-directory entry of the source directory."""
        emitted = 0
        with os.scandir(self.source_dir) as entries:
            for entry in entries:
                if entry.is_dir():
                    continue
                self.logger.log_file_detected(entry.path, "scan")
                if not self.stream.emit(entry.path):
                    break
                emitted += 1
        return emitted


# ----------------------------------------------------
# Watcher: live filesystem events through watchdog
# ----------------------------------------------------
class SourceEventHandler(FileSystemEventHandler):
    """Forwards files created in (or renamed into) the source directory."""

    def __init__(self, source_dir, stream: DiscoveryStream, logger):
        self.source_dir = os.path.abspath(source_dir)
        self.stream = stream
        self.logger = logger

    def on_created(self, event):
        if not event.is_directory:
            self._emit(event.src_path, "create event")

    def on_moved(self, event):
        # Writers that finish with a rename into the directory produce no create event.
        if not event.is_directory and os.path.dirname(os.path.abspath(event.dest_path)) == self.source_dir:
            self._emit(event.dest_path, "move event")

    def _emit(self, file_path, source):
        try:
            file_path = os.fsdecode(file_path)
            self.logger.log_file_detected(file_path, source)
            self.stream.emit(file_path)
        except Exception as e:
            self.logger.log_system_event(f"Watcher error for {file_path}: {e}", "ERROR")


class DirectoryWatcher(threading.Thread):
    """Runs a watchdog observer and closes its stream side when it ends.

    The observer is started from ``start`` so that a platform refusing the
    subscription fails startup. If the observer thread or its emitter (the
    event source itself) dies later, this component stops and the scanner
    remains the only discovery source.
    """

    def __init__(self, source_dir, stream: DiscoveryStream, shutdown: threading.Event,
                 logger, observer=None, health_interval: float = OBSERVER_HEALTH_INTERVAL):
        super().__init__(name="directory-watcher", daemon=True)
        self.source_dir = str(source_dir)
        self.stream = stream
        self.logger = logger
        self.health_interval = health_interval
        self._shutdown = shutdown
        self.event_handler = SourceEventHandler(source_dir, stream, logger)
        self.observer = observer if observer is not None else Observer()
        self.observer.schedule(self.event_handler, self.source_dir, recursive=False)
        stream.add_producer()

    def start(self):
        self.observer.start()
        super().start()

    def run(self):
        try:
            while not self._shutdown.wait(self.health_interval):
                if not self._event_source_alive():
                    self.logger.log_system_event(
                        "Watcher event source closed unexpectedly! Falling back to directory scan.",
                        "ERROR"
                    )
                    break
        finally:
            self.observer.stop()
            self.observer.join()
            self.stream.close()
            self.logger.log_system_event("Directory watcher stopped.", "DEBUG")

    def _event_source_alive(self) -> bool:
        # Emitters stop on their own when the watched directory goes away.
        emitters = list(self.observer.emitters)
        return self.observer.is_alive() and bool(emitters) and all(e.is_alive() for e in emitters)


# ----------------------------------------------------
# Dispatcher: the single consumer
# ----------------------------------------------------
class Dispatcher(threading.Thread):
    def __init__(self, stream: DiscoveryStream, lock_guard, upload_client, mover, logger):
        super().__init__(name="dispatcher", daemon=True)
        self.stream = stream
        self.lock_guard = lock_guard
        self.upload_client = upload_client
        self.mover = mover
        self.logger = logger
        self.done = threading.Event()

    def run(self):
        try:
            for file_path in self.stream:
                try:
                    self.process(file_path)
                except Exception as e:
                    self.logger.log_exception(f"Unexpected error processing {file_path}: {e}")
        finally:
            self.done.set()
            self.logger.log_system_event("Dispatcher drained.", "DEBUG")

    def process(self, file_path: str):
        """Lock-probe, upload and move one file.

        Returns the UploadResult, or None when the file was skipped.
        """
        if not self.lock_guard.is_ready(file_path):
            return None

        try:
            self.lock_guard.try_acquire_then_release(file_path)
        except FileNotFoundError:
            return None
        except LockError as e:
            self.logger.log_system_event(f"{e}. Leaving it for the next pass.", "ERROR")
            return None

        try:
            file_size = os.stat(file_path).st_size
        except FileNotFoundError:
            return None

        self.logger.log_upload_start(file_path, file_size)
        start_time = time.time()

        try:
            result = self.upload_client.upload(file_path)
        except OSError as e:
            self.logger.log_system_event(f"Could not read {file_path}: {e}", "ERROR")
            return None

        duration = time.time() - start_time

        if result.succeeded:
            destination = self.mover.complete(file_path)
            if destination is None:
                self.logger.log_system_event(
                    f"{file_path} was uploaded but stays in the source directory.", "WARNING"
                )
            self.logger.log_upload_success(
                file_path=file_path,
                destination=str(destination or file_path),
                file_size=file_size,
                duration=duration,
                status_code=result.status_code
            )
        else:
            destination = self.mover.fail(file_path)
            self.logger.log_upload_failure(
                file_path,
                result.message,
                file_size,
                outcome=result.outcome.value,
                destination=str(destination) if destination else None
            )
        return result
