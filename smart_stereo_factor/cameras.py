"""Resolve current estimates into per-view stereo cameras."""
from dataclasses import dataclass
from typing import Callable, List, Sequence
import logging

import numpy as np

try:
    import gtsam
except Exception:
    gtsam = None

from .geometry import compose_with_jacobians
from .measurements import MeasurementSet
from .models import Measurement
from .triangulation import TriangulationResult
from .values import pose_at

logger = logging.getLogger("smart_stereo.cameras")

Triangulator = Callable[[Sequence["gtsam.StereoCamera"], Sequence[Measurement]], TriangulationResult]


@dataclass(frozen=True, eq=False)
class CameraView:
    """Camera for one view plus d(camera pose)/d(body pose) and d(camera pose)/d(extrinsic)."""
    camera: "gtsam.StereoCamera"
    d_pose_d_body: np.ndarray
    d_pose_d_extrinsic: np.ndarray


class CameraViewBuilder:
    """Builds ``camera_pose = world_P_body * body_P_cam`` for each view.

    Nothing is cached: every call resolves the estimates it is given.
    """

    def __init__(self, measurements: MeasurementSet, triangulator: Triangulator):
        self.measurements = measurements
        self.triangulator = triangulator

    def build(self, values) -> List[CameraView]:
        views: List[CameraView] = []
        for record in self.measurements.views():
            world_P_body = pose_at(values, record.world_P_body_key)
            body_P_cam = pose_at(values, record.body_P_cam_key)
            world_P_cam, H_body, H_ext = compose_with_jacobians(world_P_body, body_P_cam)
            camera = gtsam.StereoCamera(world_P_cam, record.calibration)
            views.append(CameraView(camera, np.array(H_body), np.array(H_ext)))
        return views

    def cameras(self, values) -> List["gtsam.StereoCamera"]:
        return [view.camera for view in self.build(values)]

    def triangulate(self, views: Sequence[CameraView]) -> TriangulationResult:
        result = self.triangulator([v.camera for v in views], self.measurements.measured)
        logger.debug("Triangulated %d views: %s", len(views), result.status.value)
        return result
