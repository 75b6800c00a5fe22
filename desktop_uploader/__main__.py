"""Entry point for Desktop Uploader.

Usage:
    python -m desktop_uploader start PATH... [--dest DIR]
"""

import sys


def main() -> None:
    """Delegate to the headless runner CLI."""
    from desktop_uploader.service import main as service_main

    sys.exit(service_main())


if __name__ == "__main__":
    main()
