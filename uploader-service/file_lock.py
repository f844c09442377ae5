import os
import time

import portalocker

LOCK_ATTEMPTS = 6
LOCK_RETRY_DELAY = 0.5


class LockError(Exception):
    """Raised when a file stays locked by another process for every attempt."""


class FileLockGuard:
    """Readiness probe using an advisory exclusive lock on the file itself.

    The lock is released as soon as it is acquired: holding it only proves that
    no other process had the file locked at dispatch time.
    """

    def __init__(self, logger, attempts: int = LOCK_ATTEMPTS,
                 retry_delay: float = LOCK_RETRY_DELAY, sleep=time.sleep):
        self.logger = logger
        self.attempts = attempts
        self.retry_delay = retry_delay
        self._sleep = sleep

    def is_ready(self, file_path: str) -> bool:
        try:
            size = os.stat(file_path).st_size
        except FileNotFoundError:
            self.logger.log_system_event(f"{file_path} is gone, already handled", "DEBUG")
            return False

        if size <= 0:
            self.logger.log_system_event(f"{file_path} is empty, still being written", "DEBUG")
            return False
        return True

    def try_acquire_then_release(self, file_path: str):
        """Lock and immediately unlock ``file_path``.

        Raises LockError after ``attempts`` failed tries and FileNotFoundError
        if the file disappears while probing.
        """
        self.logger.log_system_event(f"Trying to lock {file_path}", "DEBUG")

        for attempt in range(1, self.attempts + 1):
            with open(file_path, "rb") as f:
                try:
                    portalocker.lock(f, portalocker.LOCK_EX | portalocker.LOCK_NB)
                except portalocker.exceptions.LockException:
                    self.logger.log_system_event(
                        f"Could not lock {file_path} (attempt {attempt}/{self.attempts})", "DEBUG"
                    )
                else:
                    portalocker.unlock(f)
                    self.logger.log_system_event(f"Successfully locked {file_path}", "DEBUG")
                    return

            if attempt < self.attempts:
                self._sleep(self.retry_delay)

        raise LockError(f"Could not lock {file_path} after {self.attempts} attempts")
