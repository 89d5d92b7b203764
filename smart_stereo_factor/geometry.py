"""Stereo camera helpers over gtsam geometry.

Jacobians come from gtsam's derivative overloads (``Pose3.compose``,
``StereoCamera.project2``), which write into Fortran-ordered buffers. Tangent
vectors are therefore ordered [omega, v] and perturbations act on the right.
"""
from typing import List, Tuple

import numpy as np

try:
    import gtsam
except Exception:
    gtsam = None

from .exceptions import CheiralityError
from .models import Measurement


def _jacobian(rows: int, cols: int) -> np.ndarray:
    return np.zeros((rows, cols), order="F")


def compose_with_jacobians(world_P_body, body_P_cam):
    """``world_P_body * body_P_cam`` and its derivatives wrt both arguments."""
    H_body = _jacobian(6, 6)
    H_ext = _jacobian(6, 6)
    world_P_cam = world_P_body.compose(body_P_cam, H_body, H_ext)
    return world_P_cam, H_body, H_ext


def depth(pose, point: np.ndarray) -> float:
    return float(pose.transformTo(np.asarray(point, dtype=float))[2])


def project(camera, point: np.ndarray) -> np.ndarray:
    """(uL, uR, v) of ``point``; raises CheiralityError at or behind the camera."""
    point = np.asarray(point, dtype=float)
    if depth(camera.pose(), point) <= 0.0:
        raise CheiralityError("Landmark is not in front of the camera")
    return np.asarray(camera.project(point).vector(), dtype=float)


def project_with_jacobians(camera, point: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """(uL, uR, v), d/d(camera pose) (3x6) and d/d(point) (3x3)."""
    point = np.asarray(point, dtype=float)
    if depth(camera.pose(), point) <= 0.0:
        raise CheiralityError("Landmark is not in front of the camera")
    H_pose = _jacobian(3, 6)
    H_point = _jacobian(3, 3)
    z = camera.project2(point, H_pose, H_point)
    return np.asarray(z.vector(), dtype=float), np.array(H_pose), np.array(H_point)


def mono_calibration(K):
    """Left-camera intrinsics of a stereo calibration."""
    return gtsam.Cal3_S2(K.fx(), K.fy(), K.skew(), K.px(), K.py())


def right_pose(camera):
    """Right camera: one baseline along the left camera's x axis."""
    offset = gtsam.Pose3(gtsam.Rot3(), gtsam.Point3(camera.baseline(), 0.0, 0.0))
    return camera.pose().compose(offset)


def mono_split(cameras, measured: List[Measurement]):
    """Split stereo views into monocular cameras and their pixels.

    The right camera of a view is emitted only when its right pixel was
    observed.
    """
    monos, pixels = [], []
    for camera, z in zip(cameras, measured):
        K = mono_calibration(camera.calibration())
        monos.append(gtsam.PinholeCameraCal3_S2(camera.pose(), K))
        pixels.append(np.array([z.uL, z.v], dtype=float))
        if z.has_right:
            monos.append(gtsam.PinholeCameraCal3_S2(right_pose(camera), K))
            pixels.append(np.array([z.uR, z.v], dtype=float))
    return monos, pixels
