"""Per-user directories for Keystone's own state (log files)."""

import os
from pathlib import Path

from platformdirs import user_data_dir

APP_NAME = "keystone"


class GlobalPath:
    """Platform directory lookup, overridable for tests."""

    @classmethod
    def data(cls) -> str:
        """Application data directory."""
        return os.environ.get("KEYSTONE_DATA_DIR") or user_data_dir(APP_NAME)

    @classmethod
    def log(cls) -> str:
        """Log file directory."""
        return str(Path(cls.data()) / "log")
