"""
Atomic file replacement for volume writers.

Data goes to a temporary file beside the target, which is then moved over
it, so a reader sees either the previous file or the complete new one.
"""

import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Callable, Union


def write_atomically(output_path: Union[str, Path], write: Callable[[BinaryIO], None]):
    """
    Replace output_path with whatever ``write`` puts into a binary stream.

    The temporary file is removed if writing or the final move fails.
    """
    output_path = Path(output_path)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent
    )
    try:
        with os.fdopen(fd, "wb") as f:
            write(f)
        os.replace(tmp_name, output_path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
