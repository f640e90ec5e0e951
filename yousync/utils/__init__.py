"""Utility modules for shared functionality."""

from .helpers import generate_store_file_name, slugify
from .retry import retry_on_transient_failure

__all__ = [
    "generate_store_file_name",
    "slugify",
    "retry_on_transient_failure",
]
