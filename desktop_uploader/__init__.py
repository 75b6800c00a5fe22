"""Desktop Uploader: watch folders and hand settled files to a transfer step.

Detects when files in watched roots finish being written, skips files
already seen, and feeds the rest through a bounded, retryable,
rate-limitable upload queue.
"""

__version__ = "1.0.0"
__app_name__ = "Desktop Uploader"

from desktop_uploader.config import Options  # noqa: E402
from desktop_uploader.errors import DesktopUploaderError, StateFileError  # noqa: E402
from desktop_uploader.upload_queue import UploadTask  # noqa: E402
from desktop_uploader.uploader import DesktopUploader  # noqa: E402

__all__ = [
    "DesktopUploader",
    "DesktopUploaderError",
    "Options",
    "StateFileError",
    "UploadTask",
]
