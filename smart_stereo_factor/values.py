"""Key handling and pose lookup against ``gtsam.Values``."""
from typing import Union
import string

import numpy as np

try:
    import gtsam
except Exception:
    gtsam = None

from .exceptions import MissingKeyError
from .models import Key


def pose_at(values, key: Key):
    """Resolve ``key`` to its ``gtsam.Pose3`` in a ``gtsam.Values`` store."""
    if gtsam is None:
        raise RuntimeError("GTSAM not available; cannot read Values")
    if not isinstance(values, gtsam.Values):
        raise TypeError(f"Unsupported estimate store type {type(values)}")
    if not values.exists(key):
        raise MissingKeyError(key)
    return values.atPose3(key)


def normalize_key(key: Union[str, int]) -> int:
    """Map 'x12' style labels onto gtsam symbols; integers pass through."""
    if isinstance(key, (int, np.integer)) and not isinstance(key, bool):
        return int(key)
    kid = str(key)
    if kid.isdigit():
        return int(kid)
    if gtsam is None:
        raise RuntimeError("GTSAM not available; cannot build symbol keys")
    if kid and kid[0] in string.ascii_letters:
        digits = ''.join(ch for ch in kid[1:] if ch.isdigit()) or "0"
        return int(gtsam.symbol(kid[0], int(digits)))
    raise ValueError(f"Cannot normalise key {key!r}")
