"""hotreloader - live-reload a Python program without restarting the interpreter."""

__version__ = "0.3.0"

from hotreloader.config import ConfigurationError, SessionConfig  # noqa: E402
from hotreloader.reload.session import WatchSession, watch  # noqa: E402

__all__ = ["ConfigurationError", "SessionConfig", "WatchSession", "__version__", "watch"]
