"""Platform abstraction layer."""

from .files import atomic_write_text, copy_tree, remove_tree
from .process import ProcessError, run, run_silent

__all__ = [
    # files
    "atomic_write_text",
    "copy_tree",
    "remove_tree",
    # process
    "ProcessError",
    "run",
    "run_silent",
]
