from dataclasses import dataclass
from typing import Union

import numpy as np

# gtsam keys: plain integers or gtsam.symbol(...) values.
Key = int


@dataclass(frozen=True)
class StereoMeasurement:
    """Left pixel, right pixel and shared row of one stereo observation."""
    uL: float
    uR: float
    v: float

    has_right = True

    @classmethod
    def from_stereo_point(cls, z) -> "StereoMeasurement":
        return cls(float(z.uL()), float(z.uR()), float(z.v()))

    def vector(self) -> np.ndarray:
        return np.array([self.uL, self.uR, self.v], dtype=float)


@dataclass(frozen=True)
class MonoMeasurement:
    """Stereo observation whose right pixel is unavailable.

    ``vector()`` keeps the 3-row layout; the right slot is 0 and must be
    treated as inert by every consumer.
    """
    uL: float
    v: float

    has_right = False

    def vector(self) -> np.ndarray:
        return np.array([self.uL, 0.0, self.v], dtype=float)


Measurement = Union[StereoMeasurement, MonoMeasurement]


def measurement_equals(a: Measurement, b: Measurement, tol: float = 1e-9) -> bool:
    if a.has_right != b.has_right:
        return False
    return bool(np.allclose(a.vector(), b.vector(), atol=tol, rtol=0.0))


@dataclass(frozen=True)
class ViewRecord:
    measured: Measurement
    world_P_body_key: Key
    body_P_cam_key: Key
    calibration: object  # gtsam.Cal3_S2Stereo
