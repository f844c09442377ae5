import os
from pathlib import Path
from typing import Optional


def ensure_directories(*directories):
    """Create each directory (and parents) if absent. Errors propagate."""
    for directory in directories:
        os.makedirs(directory, exist_ok=True)


class StateMover:
    """Moves a processed file out of the source directory by rename."""

    def __init__(self, completed_dir, failed_dir, logger):
        self.completed_dir = Path(completed_dir)
        self.failed_dir = Path(failed_dir)
        self.logger = logger

    def complete(self, file_path: str) -> Optional[Path]:
        return self._move(file_path, self.completed_dir, "completed")

    def fail(self, file_path: str) -> Optional[Path]:
        return self._move(file_path, self.failed_dir, "failed")

    def _move(self, file_path: str, target_dir: Path, label: str) -> Optional[Path]:
        """Returns the new path, or None when the file stays where it is."""
        destination = target_dir / os.path.basename(file_path)
        try:
            # os.rename silently replaces an existing file on POSIX.
            if destination.exists():
                raise FileExistsError(f"{destination} already exists")
            os.rename(file_path, destination)
        except OSError as e:
            self.logger.log_system_event(f"Failed to move {label} file {file_path}: {e}", "ERROR")
            return None

        self.logger.log_system_event(f"Moved {file_path} -> {destination}", "DEBUG")
        return destination
