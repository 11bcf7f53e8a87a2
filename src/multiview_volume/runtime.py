"""
Process-wide runtime setup.

``initialize()`` compiles the numba color kernels once and checks the writer
registry before any frame is processed; ``shutdown()`` runs at interpreter
exit. Both are idempotent and safe to call from several threads.
"""

import atexit
import logging
import threading
import numpy as np

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_initialized = False
_atexit_registered = False


def initialize():
    """Perform one-time runtime setup. Later calls are no-ops."""
    global _initialized, _atexit_registered

    with _lock:
        if _initialized:
            return

        from .color import linear_to_srgb, srgb_to_linear
        from .exporters import WRITERS

        # Trigger JIT compilation outside the frame loop
        probe = np.zeros((1, 3), dtype=np.float64)
        srgb_to_linear(probe)
        linear_to_srgb(probe)

        logger.debug("Runtime initialized (writers: %s)", ", ".join(sorted(WRITERS)))

        if not _atexit_registered:
            atexit.register(shutdown)
            _atexit_registered = True
        _initialized = True


def shutdown():
    """Tear down runtime state."""
    global _initialized

    with _lock:
        if _initialized:
            logger.debug("Runtime shut down")
        _initialized = False


def is_initialized() -> bool:
    return _initialized
