"""Smart stereo projection factor on body poses and camera extrinsics.

The landmark is never an optimization variable: each linearization
triangulates it from the current estimates and eliminates it, leaving a
Hessian factor over the (body pose, extrinsic) keys only. Views may share
body poses or extrinsics; shared keys are folded into shared blocks.
"""
from typing import Callable, Optional, Sequence, Union
import logging
import time

import numpy as np

from smart_stereo_common.kpi_logging import KPILogger

from .cameras import CameraViewBuilder
from .collapse import KeyCollapser
from .exceptions import CheiralityError, SizeMismatch, UnsupportedMode
from .hessian import HessianFactor, SymmetricBlockMatrix
from .linearization import LinearizationEngine, POSE_DIM
from .measurements import MeasurementSet
from .models import Key, Measurement
from .noise import as_noise_model, whiten_residual
from .params import LinearizationMode, SmartStereoProjectionParams, parse_linearization_mode
from .schur import SchurEliminator
from .triangulation import StereoTriangulator, TriangulationResult

logger = logging.getLogger("smart_stereo.factor")


class HessianFactorAssembler:
    """Packages unique keys and a collapsed block matrix into a HessianFactor.

    Built for exactly one linearization mode; anything else fails here,
    at construction, rather than at first use.
    """

    def __init__(self, mode: Union[str, LinearizationMode] = LinearizationMode.HESSIAN):
        self.mode = parse_linearization_mode(mode)
        if self.mode is not LinearizationMode.HESSIAN:
            raise UnsupportedMode(f"No assembler for linearization mode {self.mode}")

    def assemble(self, keys: Sequence[Key], info: SymmetricBlockMatrix) -> HessianFactor:
        return HessianFactor(keys, info)

    def zero(self, keys: Sequence[Key]) -> HessianFactor:
        """Factor carrying no information, over an unchanged key set."""
        return HessianFactor(keys, SymmetricBlockMatrix([POSE_DIM] * len(keys) + [1]))


class SmartStereoProjectionFactorPP:
    """Smart stereo factor optimizing body poses (P) and extrinsic poses (P).

    Each view contributes a stereo measurement, the key of the body pose in
    the world, the key of the camera pose in the body, and a fixed
    calibration. ``camera = world_P_body * body_P_cam``.
    """

    def __init__(self, noise_model, params: Optional[SmartStereoProjectionParams] = None,
                 triangulator: Optional[Callable] = None, kpi: Optional[KPILogger] = None):
        self.params = params or SmartStereoProjectionParams()
        self.noise_model = as_noise_model(noise_model)
        self.assembler = HessianFactorAssembler(self.params.linearization_mode)
        self.kpi = kpi
        self._measurements = MeasurementSet()
        self._builder = CameraViewBuilder(
            self._measurements, triangulator or StereoTriangulator(self.params.triangulation))
        self._engine = LinearizationEngine()

    # -- measurements -------------------------------------------------------

    def add(self,
            measured: Union[Measurement, Sequence[Measurement]],
            world_P_body_key: Union[Key, Sequence[Key]],
            body_P_cam_key: Union[Key, Sequence[Key]],
            calibration) -> None:
        self._measurements.add(measured, world_P_body_key, body_P_cam_key, calibration)

    @property
    def keys(self):
        return self._measurements.keys

    @property
    def measured(self):
        return self._measurements.measured

    @property
    def world_P_body_keys(self):
        return self._measurements.world_P_body_keys

    @property
    def body_P_cam_keys(self):
        return self._measurements.body_P_cam_keys

    def extrinsic_pose_keys(self):
        return self._measurements.body_P_cam_keys

    @property
    def calibration(self):
        return self._measurements.calibrations

    @property
    def dim(self) -> int:
        return POSE_DIM * len(self.keys)

    def __len__(self) -> int:
        return len(self._measurements)

    # -- evaluation ---------------------------------------------------------

    def cameras(self, values):
        return self._builder.cameras(values)

    def triangulate(self, values) -> TriangulationResult:
        return self._triangulate(self._builder.build(values))

    point = triangulate

    def _triangulate(self, views) -> TriangulationResult:
        result = self._builder.triangulate(views)
        if result.is_behind_camera:
            if self.params.verbose_cheirality:
                logger.warning("Landmark behind camera for factor on keys %s", list(self.keys))
            if self.params.throw_cheirality:
                raise CheiralityError(f"Landmark behind camera for factor on keys {list(self.keys)}")
        if self.kpi is not None:
            self.kpi.triangulation(len(views), result.status.value)
        return result

    def reprojection_errors(self, values) -> Optional[np.ndarray]:
        """(m, 3) ``predicted - measured``, or None when the landmark is not valid."""
        views = self._builder.build(values)
        result = self._triangulate(views)
        if not result.is_valid:
            return None
        return LinearizationEngine.reprojection_errors(views, self.measured, result.point)

    def error(self, values) -> float:
        """0.5 * sum of squared whitened reprojection errors; 0 for an invalid landmark."""
        errors = self.reprojection_errors(values)
        if errors is None:
            return 0.0
        total = 0.0
        for z, e in zip(self.measured, errors):
            w = whiten_residual(self.noise_model, e)
            if not z.has_right:
                w[1] = 0.0
            total += float(w @ w)
        return 0.5 * total

    # -- linearization ------------------------------------------------------

    def create_hessian_factor(self, values, damping: Optional[float] = None,
                              diagonal_damping: Optional[bool] = None) -> HessianFactor:
        """Triangulate, linearize, eliminate the landmark and collapse shared keys."""
        start = time.perf_counter()
        damping = self.params.damping if damping is None else float(damping)
        if diagonal_damping is None:
            diagonal_damping = self.params.diagonal_damping
        self._measurements.check_consistent()

        views = self._builder.build(values)
        if len(views) != len(self._measurements):
            raise SizeMismatch(f"{len(self._measurements)} measurements but {len(views)} cameras")

        result = self._triangulate(views)
        if not result.is_valid:
            logger.debug("Triangulation %s; returning zero factor on %d keys",
                         result.status.value, len(self.keys))
            factor = self.assembler.zero(self.keys)
        else:
            system = self._engine.linearize(views, self.measured, result)
            collapser = KeyCollapser(self.world_P_body_keys, self.body_P_cam_keys)
            SchurEliminator(self.noise_model, damping, diagonal_damping).eliminate(system, collapser)
            factor = self.assembler.assemble(collapser.keys, collapser.result())

        if self.kpi is not None:
            self.kpi.linearization(len(views), len(self.keys), result.status.value,
                                   time.perf_counter() - start,
                                   damping=damping, diagonal_damping=diagonal_damping)
        return factor

    def linearize_damped(self, values, damping: Optional[float] = None) -> HessianFactor:
        mode = self.params.linearization_mode
        if mode is LinearizationMode.HESSIAN:
            return self.create_hessian_factor(values, damping)
        raise UnsupportedMode(f"SmartStereoProjectionFactorPP: unknown linearization mode {mode}")

    def linearize(self, values) -> HessianFactor:
        return self.linearize_damped(values)

    # -- testable -----------------------------------------------------------

    def equals(self, other, tol: float = 1e-9) -> bool:
        if not isinstance(other, SmartStereoProjectionFactorPP):
            return False
        return (self._measurements.equals(other._measurements, tol)
                and self.noise_model.equals(other.noise_model, tol))

    def format(self, s: str = "", key_formatter: Callable[[Key], str] = str) -> str:
        lines = [f"{s}SmartStereoProjectionFactorPP, z = "]
        for z, kb, kc, K in zip(self.measured, self.world_P_body_keys, self.body_P_cam_keys,
                                self.calibration):
            lines.append(f"  {z} body={key_formatter(kb)} extrinsic={key_formatter(kc)} "
                         f"fx={K.fx()} fy={K.fy()} b={K.baseline()}")
        R = np.asarray(self.noise_model.R())
        lines.append(f"  noise model: {type(self.noise_model).__name__} R diag={np.diag(R).tolist()}")
        return "\n".join(lines)

    def print(self, s: str = "", key_formatter: Callable[[Key], str] = str) -> None:
        print(self.format(s, key_formatter))

    def __str__(self) -> str:
        return self.format()
