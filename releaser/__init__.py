"""Release orchestration for multi-component repositories hosted on GitHub."""

__version__ = "0.1.0"
