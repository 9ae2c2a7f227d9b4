"""Derive stored object names from caller-supplied filenames."""

import re
import time
import uuid
from enum import Enum
from typing import Optional

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class NamingPolicy(str, Enum):
    """How the stored name is derived from the original filename."""
    PRESERVE = "preserve"
    SANITIZE = "sanitize"
    TIMESTAMP = "timestamp"


def strip_path(name: str) -> str:
    """Drop any directory components a client may have sent along."""
    return re.split(r"[\\/]", name)[-1]


def sanitize_filename(name: str) -> str:
    """Replace every character outside ``[A-Za-z0-9._-]`` with ``_``."""
    return _UNSAFE_CHARS.sub("_", strip_path(name))


def derive_name(
    original_name: str,
    policy: NamingPolicy = NamingPolicy.TIMESTAMP,
    now: Optional[float] = None,
    token: Optional[str] = None,
) -> str:
    """
    Compute the object name used in the bucket.

    :param original_name: the filename the caller uploaded.
    :param policy: the active naming policy.
    :param now: epoch seconds used for the timestamp prefix, defaults to the current time.
    :param token: disambiguating token for the timestamp prefix, defaults to random hex.
    :return: the derived name, empty if nothing usable is left of ``original_name``.
    """
    if policy is NamingPolicy.PRESERVE:
        return strip_path(original_name)

    sanitized = sanitize_filename(original_name)
    if policy is NamingPolicy.SANITIZE or not sanitized:
        return sanitized

    millis = int((time.time() if now is None else now) * 1000)
    token = token or uuid.uuid4().hex[:8]
    return f"{millis}-{token}-{sanitized}"
