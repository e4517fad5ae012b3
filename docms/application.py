"""
DocMS process bootstrap.

Starts the runtime context, confirms on stdout, then serves until the web
server exits. A failure to start propagates as StartupError, so the
interpreter exits non-zero with a traceback and no confirmation line.
"""

from __future__ import annotations

import logging
import sys
from typing import List, Optional

from docms.engine.config import PlatformConfig, load_platform_config
from docms.engine.errors import ConfigError, StartupError
from docms.engine.runtime import ApplicationRuntime

logger = logging.getLogger("docms.application")

STARTUP_MESSAGE = "Run Successfuly"


def main(argv: Optional[List[str]] = None, config: Optional[PlatformConfig] = None) -> int:
    """
    Bootstrap entry point.

    Args:
        argv: Command-line arguments, forwarded to the runtime unparsed.
            Defaults to sys.argv[1:].
        config: Pre-loaded configuration. Auto-discovers docms.yaml if None.

    Raises:
        StartupError: the runtime context failed to start.
    """
    args = list(sys.argv[1:] if argv is None else argv)

    if config is None:
        try:
            config = load_platform_config()
        except ConfigError as e:
            raise StartupError(
                f"Runtime context failed to start: {e.message}", component="config"
            ) from e

    runtime = ApplicationRuntime(config, args=args)
    runtime.startup()
    print(STARTUP_MESSAGE, flush=True)

    try:
        runtime.wait()
    finally:
        runtime.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
