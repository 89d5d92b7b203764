"""Per-view residuals and Jacobians about a triangulated landmark."""
from dataclasses import dataclass
from typing import Sequence
import logging

import numpy as np

from .cameras import CameraView
from .exceptions import SizeMismatch, SmartFactorError
from .geometry import project, project_with_jacobians
from .models import Measurement
from .triangulation import TriangulationResult

logger = logging.getLogger("smart_stereo.linearization")

ZDIM = 3        # (uL, uR, v)
POSE_DIM = 6
VIEW_DIM = 12   # body pose + extrinsic pose
POINT_DIM = 3
RIGHT_ROW = 1


@dataclass
class LinearSystem:
    """Stacked linearization of one factor.

    Fs: (m, 3, 12) Jacobian blocks wrt [body | extrinsic] per view.
    E:  (3m, 3) Jacobian wrt the landmark.
    b:  (3m,) negated residual, measured - predicted.
    mono: (m,) True where the right pixel is absent (row 1 of the view is inert).
    """
    Fs: np.ndarray
    E: np.ndarray
    b: np.ndarray
    mono: np.ndarray

    @property
    def num_views(self) -> int:
        return self.Fs.shape[0]

    def E_block(self, i: int) -> np.ndarray:
        return self.E[ZDIM * i:ZDIM * (i + 1)]

    def b_block(self, i: int) -> np.ndarray:
        return self.b[ZDIM * i:ZDIM * (i + 1)]

    def copy(self) -> "LinearSystem":
        return LinearSystem(self.Fs.copy(), self.E.copy(), self.b.copy(), self.mono.copy())


class LinearizationEngine:
    """Projects the landmark through each view and chains the derivatives.

    For a view with a MonoMeasurement the right-pixel row of its 3x12 block,
    of its E block and of its residual are set to exactly zero, keeping the
    fixed 3-row layout.
    """

    def linearize(self, views: Sequence[CameraView], measured: Sequence[Measurement],
                  result: TriangulationResult) -> LinearSystem:
        if not result.is_valid:
            raise SmartFactorError("Cannot linearize without a valid triangulated landmark")
        m = len(views)
        if len(measured) != m:
            raise SizeMismatch(f"{len(measured)} measurements for {m} cameras")

        Fs = np.zeros((m, ZDIM, VIEW_DIM))
        E = np.zeros((ZDIM * m, POINT_DIM))
        b = np.zeros(ZDIM * m)
        mono = np.zeros(m, dtype=bool)

        for i, (view, z) in enumerate(zip(views, measured)):
            predicted, H_cam, H_point = project_with_jacobians(view.camera, result.point)
            row = ZDIM * i
            Fs[i, :, :POSE_DIM] = H_cam @ view.d_pose_d_body
            Fs[i, :, POSE_DIM:] = H_cam @ view.d_pose_d_extrinsic
            E[row:row + ZDIM] = H_point
            b[row:row + ZDIM] = z.vector() - predicted
            if not z.has_right:
                mono[i] = True
                Fs[i, RIGHT_ROW, :] = 0.0
                E[row + RIGHT_ROW, :] = 0.0
                b[row + RIGHT_ROW] = 0.0
        logger.debug("Linearized %d views (%d mono)", m, int(mono.sum()))
        return LinearSystem(Fs, E, b, mono)

    @staticmethod
    def reprojection_errors(views: Sequence[CameraView], measured: Sequence[Measurement],
                            point: np.ndarray) -> np.ndarray:
        """(m, 3) unwhitened ``predicted - measured``; the mono channel is zero."""
        errors = np.zeros((len(views), ZDIM))
        for i, (view, z) in enumerate(zip(views, measured)):
            errors[i] = project(view.camera, point) - z.vector()
            if not z.has_right:
                errors[i, RIGHT_ROW] = 0.0
        return errors
