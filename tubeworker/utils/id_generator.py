"""Typed wrapper for ID generation."""

import os
import secrets
import string

from coolname import generate_slug  # type: ignore[import-untyped]


def generate_worker_id() -> str:
    """Generate a readable identifier for a worker process.

    @return: A slug with the PID and a short random suffix
            (e.g., "purple-elephant-4121-x7q2")
    """
    random_suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(4))
    return f"{generate_slug(2)}-{os.getpid()}-{random_suffix}"
