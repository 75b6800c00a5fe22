"""
Folder-to-folder transfer step for Desktop Uploader.

Streams each settled file into a destination folder, preserving its path
relative to the watched root. Reads go through the task's stream, so the
uploader's shared throttle applies. An existing destination file is
overwritten, and the copy is verified by size.
"""

import logging
import os
from pathlib import Path

from desktop_uploader.upload_queue import UploadTask

logger = logging.getLogger(__name__)


class FileCopier:
    """Transfer step that copies task streams into *destination_root*."""

    def __init__(self, destination_root: str):
        self.destination_root = Path(destination_root)

    def destination_for(self, task: UploadTask) -> Path:
        rel = os.path.relpath(task.path, task.root)
        if rel.startswith(os.pardir):
            rel = os.path.basename(task.path)
        return self.destination_root / rel

    async def __call__(self, task: UploadTask) -> bool:
        dest = self.destination_for(task)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            logger.info(
                "Copying %s -> %s (%d bytes, attempt %d)",
                task.path, dest, task.size, task.attempts,
            )
            with open(dest, "wb") as out:
                async for chunk in task.stream:
                    out.write(chunk)
            copied = dest.stat().st_size
        except OSError as exc:
            logger.error("Copy failed for %s: %s", task.path, exc)
            raise

        if copied != task.size:
            logger.error("Size mismatch after copying %s (%d != %d)", dest, copied, task.size)
            return False
        logger.info("Copy complete: %s", dest)
        return True
