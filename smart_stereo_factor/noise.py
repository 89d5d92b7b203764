"""Measurement noise models: gtsam Gaussian models over the (uL, uR, v) residual."""
import numpy as np

try:
    import gtsam
except Exception:
    gtsam = None


def make_spd(cov: np.ndarray, eps: float = 1e-9) -> np.ndarray:
    """Jitter a covariance to be SPD if needed.

    Why: hand-entered pixel covariances are sometimes slightly asymmetric or
    singular. Jitter starts tiny and grows only until Cholesky succeeds.
    """
    cov = np.array(cov, dtype=float)
    n = cov.shape[0]
    cov = 0.5 * (cov + cov.T)
    jitter = eps
    for _ in range(8):
        try:
            np.linalg.cholesky(cov + np.eye(n) * jitter)
            return cov + np.eye(n) * jitter
        except np.linalg.LinAlgError:
            jitter *= 10.0
    return cov + np.eye(n) * jitter


def gaussian_from_covariance(cov: np.ndarray):
    """GTSAM Gaussian noise model from a 3x3 (uL, uR, v) pixel covariance.

    Ensures symmetric positive-definite (via jitter) and float64 dtype.
    """
    if gtsam is None:
        raise RuntimeError("GTSAM not available; cannot build noise model")
    cov = np.array(make_spd(cov), dtype=np.float64, order="C")
    if cov.shape != (3, 3):
        raise ValueError(f"Expected a 3x3 stereo pixel covariance, got shape {cov.shape}")
    return gtsam.noiseModel.Gaussian.Covariance(cov)


def as_noise_model(model, dim: int = 3):
    """Check that ``model`` is a gtsam Gaussian model of dimension ``dim``.

    Robust models are rejected: whitening must be a fixed linear map so the
    Schur complement stays exact.
    """
    if gtsam is None:
        raise RuntimeError("GTSAM not available; cannot use noise models")
    if not isinstance(model, gtsam.noiseModel.Gaussian):
        raise TypeError(f"Unsupported noise model type {type(model)}")
    R = np.asarray(model.R())
    if R.shape != (dim, dim):
        raise ValueError(f"Noise model must be {dim}-dimensional, got {R.shape[0]}")
    return model


def whiten_jacobian(model, H: np.ndarray) -> np.ndarray:
    return np.array(model.Whiten(np.asarray(H, dtype=float)), dtype=float)


def whiten_residual(model, b: np.ndarray) -> np.ndarray:
    return np.array(model.whiten(np.asarray(b, dtype=float)), dtype=float)
