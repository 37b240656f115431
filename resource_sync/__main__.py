"""
Run the sync service directly.

Usage:
    python -m resource_sync run
"""

from .main import main


if __name__ == "__main__":
    main()
