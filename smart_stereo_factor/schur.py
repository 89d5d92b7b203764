"""Whitening and Schur-complement elimination of the landmark.

For whitened blocks Fᵢ (3x12), Eᵢ (3x3) and bᵢ (3), with
P = (EᵀE + damping)⁻¹, the reduced system over the view variables is

    Hᵢᵢ = FᵢᵀFᵢ - FᵢᵀEᵢ P EᵢᵀFᵢ
    Hᵢⱼ = -FᵢᵀEᵢ P EⱼᵀFⱼ                (i < j)
    gᵢ  = Fᵢᵀbᵢ - FᵢᵀEᵢ P (Eᵀb)
    f   = bᵀb

Contributions are pushed pair by pair into a sink, so the dense (12m)²
matrix is never formed.
"""
from typing import Protocol
import logging

import numpy as np

from .linearization import LinearSystem, RIGHT_ROW, ZDIM
from .noise import whiten_jacobian, whiten_residual

logger = logging.getLogger("smart_stereo.schur")


class SchurSink(Protocol):
    def add_view_pair(self, i: int, j: int, X: np.ndarray) -> None: ...

    def add_view_linear(self, i: int, g: np.ndarray) -> None: ...

    def add_constant(self, f: float) -> None: ...


def compute_point_covariance(E: np.ndarray, damping: float = 0.0,
                             diagonal_damping: bool = False) -> np.ndarray:
    """P = (EᵀE + λI)⁻¹, or (EᵀE + λ·diag(EᵀE))⁻¹ with ``diagonal_damping``."""
    EtE = E.T @ E
    n = EtE.shape[0]
    if diagonal_damping:
        EtE[np.diag_indices(n)] += damping * np.diag(EtE)
    else:
        EtE += damping * np.eye(n)
    return np.linalg.inv(EtE)


class SchurEliminator:
    """Eliminates the landmark from a linearized smart factor.

    One noise model instance whitens every view, block by block.
    """

    def __init__(self, noise_model, damping: float = 0.0, diagonal_damping: bool = False):
        self.noise_model = noise_model
        self.damping = float(damping)
        self.diagonal_damping = bool(diagonal_damping)

    def whiten(self, system: LinearSystem) -> LinearSystem:
        out = system.copy()
        for i in range(system.num_views):
            rows = slice(ZDIM * i, ZDIM * (i + 1))
            out.Fs[i] = whiten_jacobian(self.noise_model, system.Fs[i])
            out.E[rows] = whiten_jacobian(self.noise_model, system.E[rows])
            out.b[rows] = whiten_residual(self.noise_model, system.b[rows])
            if system.mono[i]:
                # A correlated model would otherwise leak into the inert row.
                out.Fs[i, RIGHT_ROW, :] = 0.0
                out.E[ZDIM * i + RIGHT_ROW, :] = 0.0
                out.b[ZDIM * i + RIGHT_ROW] = 0.0
        return out

    def point_covariance(self, E: np.ndarray) -> np.ndarray:
        return compute_point_covariance(E, self.damping, self.diagonal_damping)

    def eliminate(self, system: LinearSystem, sink: SchurSink) -> np.ndarray:
        """Whiten, eliminate, and feed the reduced blocks to ``sink``. Returns P."""
        w = self.whiten(system)
        P = self.point_covariance(w.E)
        Etb = w.E.T @ w.b
        m = w.num_views
        # Eᵢ P for every view, computed once.
        EP = [w.E_block(i) @ P for i in range(m)]
        for i in range(m):
            Fi = w.Fs[i]
            FiT = Fi.T
            Ei = w.E_block(i)
            sink.add_view_linear(i, FiT @ w.b_block(i) - FiT @ (EP[i] @ Etb))
            sink.add_view_pair(i, i, FiT @ (Fi - EP[i] @ (Ei.T @ Fi)))
            for j in range(i + 1, m):
                Fj = w.Fs[j]
                sink.add_view_pair(i, j, -FiT @ (EP[i] @ (w.E_block(j).T @ Fj)))
        sink.add_constant(float(w.b @ w.b))
        logger.debug("Eliminated landmark from %d views (damping=%g, diagonal=%s)",
                     m, self.damping, self.diagonal_damping)
        return P
