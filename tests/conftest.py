"""Shared fixtures: a small synthetic stereo scene and a dense reference solver."""
import sys
from pathlib import Path

import gtsam
import numpy as np
import pytest
from gtsam.symbol_shorthand import B, X

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from smart_stereo_factor.factor import SmartStereoProjectionFactorPP
from smart_stereo_factor.linearization import LinearizationEngine
from smart_stereo_factor.models import MonoMeasurement, StereoMeasurement
from smart_stereo_factor.schur import compute_point_covariance

LANDMARK = np.array([1.0, 1.0, 5.0])


def pose(roll, pitch, yaw, t):
    return gtsam.Pose3(gtsam.Rot3.RzRyRx(roll, pitch, yaw), gtsam.Point3(*t))


BODY_POSES = [
    pose(0.0, 0.05, 0.0, [0.0, 0.0, 0.0]),
    pose(0.02, -0.03, 0.1, [1.0, 0.0, 0.0]),
    pose(-0.02, 0.0, -0.1, [0.5, -1.0, 0.2]),
]
EXTRINSICS = [
    pose(0.01, 0.02, 0.03, [0.1, 0.0, 0.05]),
    pose(-0.01, 0.0, 0.02, [0.0, 0.1, 0.0]),
    pose(0.0, 0.01, -0.02, [-0.1, 0.0, 0.0]),
]


@pytest.fixture
def K():
    return gtsam.Cal3_S2Stereo(1500.0, 1200.0, 0.0, 640.0, 480.0, 0.5)


def stereo_measurement(camera, point):
    return StereoMeasurement.from_stereo_point(camera.project(np.asarray(point, dtype=float)))


@pytest.fixture
def make_scene(K):
    """Factory: (factor, values) for three views of LANDMARK.

    shared_extrinsic: all views use extrinsic key B(1) (and EXTRINSICS[0]).
    mono_views: indices whose right pixel is dropped.
    """
    def _make(shared_extrinsic=False, mono_views=(), noise=None, params=None,
              triangulator=None, kpi=None, landmark=LANDMARK):
        values = gtsam.Values()
        factor = SmartStereoProjectionFactorPP(noise or gtsam.noiseModel.Isotropic.Sigma(3, 1.0),
                                               params, triangulator=triangulator, kpi=kpi)
        for i, body in enumerate(BODY_POSES):
            body_key = X(i + 1)
            ext_key = B(1) if shared_extrinsic else B(i + 1)
            extrinsic = EXTRINSICS[0] if shared_extrinsic else EXTRINSICS[i]
            values.insert(body_key, body)
            if not values.exists(ext_key):
                values.insert(ext_key, extrinsic)
            z = stereo_measurement(gtsam.StereoCamera(body.compose(extrinsic), K), landmark)
            if i in mono_views:
                z = MonoMeasurement(z.uL, z.v)
            factor.add(z, body_key, ext_key, K)
        return factor, values
    return _make


def retract(values, key, xi):
    """Copy of ``values`` with ``key`` moved to ``pose * Exp(xi)``."""
    out = gtsam.Values(values)
    out.update(key, out.atPose3(key).compose(gtsam.Pose3.Expmap(np.asarray(xi, dtype=float))))
    return out


def _predicted(values, key_body, key_ext, K, point):
    world_P_cam = values.atPose3(key_body).compose(values.atPose3(key_ext))
    return np.asarray(gtsam.StereoCamera(world_P_cam, K).project(point).vector(), dtype=float)


def dense_reference(factor, values, damping=0.0, diagonal_damping=False, numeric=False, h=1e-6):
    """Naive augmented Hessian: full Jacobian over unique keys, dense Schur complement.

    Shared keys are handled by building the Jacobian directly wrt the unique
    variables, so no collapsing step is involved.
    """
    keys = list(factor.keys)
    slot = {k: i for i, k in enumerate(keys)}
    point = factor.triangulate(values).point
    m, n = len(factor), len(keys)
    F = np.zeros((3 * m, 6 * n))
    E = np.zeros((3 * m, 3))
    b = np.zeros(3 * m)
    engine_views = factor._builder.build(values)
    analytic = None if numeric else LinearizationEngine().linearize(
        engine_views, factor.measured, factor.triangulate(values))

    for i, (z, kb, kc, Kc) in enumerate(zip(factor.measured, factor.world_P_body_keys,
                                             factor.body_P_cam_keys, factor.calibration)):
        rows = slice(3 * i, 3 * i + 3)
        b[rows] = z.vector() - _predicted(values, kb, kc, Kc, point)
        if numeric:
            for key in dict.fromkeys((kb, kc)):
                for d in range(6):
                    step = np.zeros(6)
                    step[d] = h
                    plus = _predicted(retract(values, key, step), kb, kc, Kc, point)
                    minus = _predicted(retract(values, key, -step), kb, kc, Kc, point)
                    F[rows, 6 * slot[key] + d] += (plus - minus) / (2 * h)
            for d in range(3):
                step = np.zeros(3)
                step[d] = h
                E[rows, d] = (_predicted(values, kb, kc, Kc, point + step)
                              - _predicted(values, kb, kc, Kc, point - step)) / (2 * h)
        else:
            F[rows, 6 * slot[kb]:6 * slot[kb] + 6] += analytic.Fs[i][:, :6]
            F[rows, 6 * slot[kc]:6 * slot[kc] + 6] += analytic.Fs[i][:, 6:]
            E[rows] = analytic.E_block(i)
        if not z.has_right:
            F[3 * i + 1] = 0.0
            E[3 * i + 1] = 0.0
            b[3 * i + 1] = 0.0

    noise = factor.noise_model
    for i, z in enumerate(factor.measured):
        rows = slice(3 * i, 3 * i + 3)
        F[rows] = noise.Whiten(F[rows])
        E[rows] = noise.Whiten(E[rows])
        b[rows] = noise.whiten(b[rows])
        if not z.has_right:
            F[3 * i + 1] = 0.0
            E[3 * i + 1] = 0.0
            b[3 * i + 1] = 0.0

    P = compute_point_covariance(E, damping, diagonal_damping)
    H = F.T @ F - F.T @ E @ P @ E.T @ F
    g = F.T @ b - F.T @ E @ P @ E.T @ b
    aug = np.zeros((6 * n + 1, 6 * n + 1))
    aug[:-1, :-1] = H
    aug[:-1, -1] = g
    aug[-1, :-1] = g
    aug[-1, -1] = b @ b
    return aug


@pytest.fixture
def dense_hessian():
    return dense_reference


def perturbed(values, scale=1e-2, seed=0):
    """Values with every pose nudged by a fixed pseudo-random tangent vector."""
    rng = np.random.default_rng(seed)
    out = values
    for key in values.keys():
        out = retract(out, key, scale * rng.standard_normal(6))
    return out


@pytest.fixture
def perturb():
    return perturbed


@pytest.fixture
def retract_key():
    return retract
