"""Landmark triangulation from stereo views.

Each stereo view is split into its left monocular camera and, when the right
pixel was observed, a right monocular camera one baseline along the left
camera's x axis. The point comes from ``gtsam.triangulatePoint3`` (DLT, with
optional nonlinear refinement) over all monocular cameras.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence
import logging

import numpy as np

try:
    import gtsam
except Exception:
    gtsam = None

from .geometry import mono_split
from .models import Measurement

logger = logging.getLogger("smart_stereo.triangulation")


class TriangulationStatus(Enum):
    VALID = "valid"
    DEGENERATE = "degenerate"
    BEHIND_CAMERA = "behind_camera"
    OUTLIER = "outlier"
    FAR_POINT = "far_point"


@dataclass(frozen=True, eq=False)
class TriangulationResult:
    status: TriangulationStatus
    point: Optional[np.ndarray] = None

    @classmethod
    def valid(cls, point: np.ndarray) -> "TriangulationResult":
        return cls(TriangulationStatus.VALID, np.asarray(point, dtype=float).reshape(3))

    @classmethod
    def degenerate(cls) -> "TriangulationResult":
        return cls(TriangulationStatus.DEGENERATE)

    @property
    def is_valid(self) -> bool:
        return self.status is TriangulationStatus.VALID

    @property
    def is_degenerate(self) -> bool:
        return self.status is TriangulationStatus.DEGENERATE

    @property
    def is_behind_camera(self) -> bool:
        return self.status is TriangulationStatus.BEHIND_CAMERA

    @property
    def is_outlier(self) -> bool:
        return self.status is TriangulationStatus.OUTLIER

    @property
    def is_far_point(self) -> bool:
        return self.status is TriangulationStatus.FAR_POINT

    def __bool__(self) -> bool:
        return self.is_valid


@dataclass
class TriangulationParameters:
    # Singular values of the DLT system above this count towards its rank.
    rank_tolerance: float = 1.0
    # Refine the DLT point by minimizing reprojection error.
    enable_epi: bool = False
    # Non-positive disables the check.
    landmark_distance_threshold: float = -1.0
    # Mean pixel reprojection error above which the point is an outlier; non-positive disables.
    dynamic_outlier_rejection_threshold: float = -1.0


class StereoTriangulator:
    """Default triangulation collaborator: ``(cameras, measurements) -> TriangulationResult``.

    ``cameras`` are ``gtsam.StereoCamera`` instances. Deterministic for fixed
    inputs and stateless between calls.
    """

    def __init__(self, params: Optional[TriangulationParameters] = None):
        if gtsam is None:
            raise RuntimeError("GTSAM not available; cannot triangulate")
        self.params = params or TriangulationParameters()

    def __call__(self, cameras, measured: Sequence[Measurement]) -> TriangulationResult:
        p = self.params
        monos, pixels = mono_split(cameras, measured)
        if len(monos) < 2:
            logger.debug("Degenerate: only %d monocular rays", len(monos))
            return TriangulationResult.degenerate()

        camera_set = gtsam.CameraSetCal3_S2()
        measurements = gtsam.Point2Vector()
        for camera, pixel in zip(monos, pixels):
            camera_set.append(camera)
            measurements.append(pixel)
        try:
            point = gtsam.triangulatePoint3(camera_set, measurements, p.rank_tolerance, p.enable_epi)
        except RuntimeError as e:
            if "Cheirality" in str(e):
                return TriangulationResult(TriangulationStatus.BEHIND_CAMERA)
            logger.debug("Degenerate: %s", e)
            return TriangulationResult.degenerate()
        point = np.asarray(point, dtype=float).reshape(3)

        # gtsam only checks cheirality when built with the exception enabled.
        for camera in monos:
            if camera.pose().transformTo(point)[2] <= 0.0:
                return TriangulationResult(TriangulationStatus.BEHIND_CAMERA)

        if p.landmark_distance_threshold > 0:
            for camera in monos:
                if np.linalg.norm(camera.pose().translation() - point) > p.landmark_distance_threshold:
                    return TriangulationResult(TriangulationStatus.FAR_POINT)

        if p.dynamic_outlier_rejection_threshold > 0:
            total = 0.0
            for camera, pixel in zip(monos, pixels):
                total += float(np.linalg.norm(camera.project(point) - pixel))
            if total / len(monos) > p.dynamic_outlier_rejection_threshold:
                return TriangulationResult(TriangulationStatus.OUTLIER)

        return TriangulationResult.valid(point)
