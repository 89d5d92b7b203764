"""Fold per-view block contributions onto the factor's unique keys."""
from typing import Dict, List, Sequence, Tuple
import logging

import numpy as np

from .hessian import SymmetricBlockMatrix
from .linearization import POSE_DIM
from .models import Key

logger = logging.getLogger("smart_stereo.collapse")


class KeyCollapser:
    """Accumulates a Schur complement directly on unique-key blocks.

    Positions are the interleaved (body_0, ext_0, body_1, ext_1, ...) 6-dim
    slots the eliminator works in; ``position_slots[p]`` is the unique-key
    block that position p folds onto. The result equals expanding to the
    per-position Hessian and summing duplicate rows and columns.
    """

    def __init__(self, world_P_body_keys: Sequence[Key], body_P_cam_keys: Sequence[Key]):
        positions: List[Key] = []
        for kb, kc in zip(world_P_body_keys, body_P_cam_keys):
            positions.extend((kb, kc))
        slot_of: Dict[Key, int] = {}
        for key in positions:
            if key not in slot_of:
                slot_of[key] = len(slot_of)
        self.keys: Tuple[Key, ...] = tuple(slot_of)
        self.position_slots: Tuple[int, ...] = tuple(slot_of[k] for k in positions)
        self._n = len(self.keys)
        self.matrix = SymmetricBlockMatrix([POSE_DIM] * self._n + [1])

    @property
    def num_unique_keys(self) -> int:
        return self._n

    def add_position_pair(self, p: int, q: int, X: np.ndarray) -> None:
        """Fold block (p, q) of the per-position Hessian (p <= q, i.e. upper triangle)."""
        sp, sq = self.position_slots[p], self.position_slots[q]
        if p == q:
            self.matrix.update_diagonal_block(sp, X)
        elif sp == sq:
            self.matrix.update_diagonal_block(sp, X + X.T)
        else:
            self.matrix.update_off_diagonal_block(sp, sq, X)

    def add_view_pair(self, i: int, j: int, X: np.ndarray) -> None:
        """Fold a 12x12 block for views i <= j."""
        body_i, body_j = 2 * i, 2 * j
        for a in range(2):
            for c in range(2):
                p, q = body_i + a, body_j + c
                sub = X[a * POSE_DIM:(a + 1) * POSE_DIM, c * POSE_DIM:(c + 1) * POSE_DIM]
                # Lower mirror (i == j, a > c) is covered by its transpose.
                if p <= q:
                    self.add_position_pair(p, q, sub)

    def add_view_linear(self, i: int, g: np.ndarray) -> None:
        for a in range(2):
            slot = self.position_slots[2 * i + a]
            self.matrix.update_off_diagonal_block(
                slot, self._n, g[a * POSE_DIM:(a + 1) * POSE_DIM].reshape(POSE_DIM, 1))

    def add_constant(self, f: float) -> None:
        self.matrix.update_diagonal_block(self._n, np.array([[f]]))

    def result(self) -> SymmetricBlockMatrix:
        return self.matrix
