"""
DirectoryLock - exclusive ownership of a store directory.
"""

import fcntl
import os
from typing import BinaryIO

from todostore.models.exceptions import OpenError


class DirectoryLock:
    """
    Holds an exclusive, non-blocking flock on `<directory>/LOCK`.

    flock locks belong to the open file description, so a second handle
    on the same directory fails even from within the same process.
    """

    FILE_NAME = "LOCK"

    def __init__(self, directory: str) -> None:
        self.file_path = os.path.join(directory, self.FILE_NAME)
        self._file: BinaryIO | None = None

    def acquire(self) -> None:
        if self._file is not None:
            return

        f = open(self.file_path, "ab")
        try:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            f.close()
            raise OpenError(
                f"Store directory is locked by another handle: {os.path.dirname(self.file_path)}"
            ) from exc
        except OSError:
            f.close()
            raise
        self._file = f

    def release(self) -> None:
        if self._file is None:
            return
        try:
            fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
        finally:
            self._file.close()
            self._file = None
