"""Symmetric block matrices and the immutable Hessian factor built from them."""
from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from .models import Key


class SymmetricBlockMatrix:
    """Block-partitioned symmetric matrix; only the upper triangle is stored.

    Blocks are addressed by block index. ``update_off_diagonal_block(I, J, X)``
    with I > J adds Xᵀ to block (J, I), so callers never need to care which
    side of the diagonal a pair lands on.
    """

    def __init__(self, dims: Sequence[int], matrix: Optional[np.ndarray] = None):
        self._dims = tuple(int(d) for d in dims)
        self._offsets = np.concatenate([[0], np.cumsum(self._dims)]).astype(int)
        n = int(self._offsets[-1])
        if matrix is None:
            self._data = np.zeros((n, n))
        else:
            matrix = np.asarray(matrix, dtype=float)
            if matrix.shape != (n, n):
                raise ValueError(f"Matrix shape {matrix.shape} does not match block dims {self._dims}")
            self._data = np.triu(matrix)

    @property
    def dims(self) -> Tuple[int, ...]:
        return self._dims

    @property
    def n_blocks(self) -> int:
        return len(self._dims)

    @property
    def rows(self) -> int:
        return int(self._offsets[-1])

    def _span(self, I: int) -> slice:
        return slice(self._offsets[I], self._offsets[I + 1])

    def diagonal_block(self, I: int) -> np.ndarray:
        D = self._data[self._span(I), self._span(I)]
        return np.triu(D) + np.triu(D, 1).T

    def above_diagonal_block(self, I: int, J: int) -> np.ndarray:
        if I >= J:
            raise IndexError(f"above_diagonal_block needs I < J, got ({I}, {J})")
        return self._data[self._span(I), self._span(J)].copy()

    def block(self, I: int, J: int) -> np.ndarray:
        if I == J:
            return self.diagonal_block(I)
        if I < J:
            return self.above_diagonal_block(I, J)
        return self.above_diagonal_block(J, I).T

    def set_diagonal_block(self, I: int, X: np.ndarray) -> None:
        self._data[self._span(I), self._span(I)] = np.triu(X)

    def set_off_diagonal_block(self, I: int, J: int, X: np.ndarray) -> None:
        if I == J:
            raise IndexError("Use set_diagonal_block for I == J")
        if I < J:
            self._data[self._span(I), self._span(J)] = X
        else:
            self._data[self._span(J), self._span(I)] = np.asarray(X).T

    def update_diagonal_block(self, I: int, X: np.ndarray) -> None:
        self._data[self._span(I), self._span(I)] += np.triu(X)

    def update_off_diagonal_block(self, I: int, J: int, X: np.ndarray) -> None:
        if I == J:
            raise IndexError("Use update_diagonal_block for I == J")
        if I < J:
            self._data[self._span(I), self._span(J)] += X
        else:
            self._data[self._span(J), self._span(I)] += np.asarray(X).T

    def selfadjoint_view(self) -> np.ndarray:
        return self._data + np.triu(self._data, 1).T

    def set_zero(self) -> None:
        self._data[:] = 0.0

    def copy(self) -> "SymmetricBlockMatrix":
        out = SymmetricBlockMatrix(self._dims)
        out._data = self._data.copy()
        return out


class HessianFactor:
    """Quadratic factor ``0.5 xᵀGx - xᵀg + 0.5 f`` over 6-dim pose keys.

    Immutable: the augmented matrix [[G, g], [gᵀ, f]] is copied on
    construction and every accessor returns read-only or fresh arrays.
    """

    def __init__(self, keys: Sequence[Key], info: SymmetricBlockMatrix):
        keys = tuple(keys)
        if info.n_blocks != len(keys) + 1 or info.dims[-1] != 1:
            raise ValueError(f"Block dims {info.dims} do not fit {len(keys)} keys plus the linear term")
        self._keys = keys
        self._info = info.copy()
        self._augmented = self._info.selfadjoint_view()
        self._augmented.setflags(write=False)
        self._slots: Dict[Key, int] = {k: i for i, k in enumerate(keys)}

    @property
    def keys(self) -> Tuple[Key, ...]:
        return self._keys

    @property
    def dims(self) -> Tuple[int, ...]:
        return self._info.dims

    def __len__(self) -> int:
        return len(self._keys)

    def augmented_information(self) -> np.ndarray:
        return self._augmented

    def information(self) -> np.ndarray:
        return self._augmented[:-1, :-1]

    def linear_term(self) -> np.ndarray:
        return self._augmented[:-1, -1]

    def constant_term(self) -> float:
        return float(self._augmented[-1, -1])

    def block(self, key_i: Key, key_j: Key) -> np.ndarray:
        return self._info.block(self._slots[key_i], self._slots[key_j])

    def linear_block(self, key: Key) -> np.ndarray:
        return self._info.block(self._slots[key], len(self._keys)).reshape(-1)

    def error(self, delta: Dict[Key, np.ndarray]) -> float:
        x = np.concatenate([np.asarray(delta[k], dtype=float).reshape(d)
                            for k, d in zip(self._keys, self.dims[:-1])]) if self._keys else np.zeros(0)
        G, g = self.information(), self.linear_term()
        return float(0.5 * x @ G @ x - x @ g + 0.5 * self.constant_term())

    def is_zero(self) -> bool:
        return not np.any(self._augmented)

    def equals(self, other: "HessianFactor", tol: float = 1e-9) -> bool:
        if not isinstance(other, HessianFactor):
            return False
        if self._keys != other._keys or self.dims != other.dims:
            return False
        return bool(np.allclose(self._augmented, other._augmented, atol=tol, rtol=0.0))

    def format(self, s: str = "", key_formatter: Callable[[Key], str] = str) -> str:
        lines = [f"{s}HessianFactor on keys: " + " ".join(key_formatter(k) for k in self._keys)]
        with np.printoptions(precision=6, suppress=True):
            for i, ki in enumerate(self._keys):
                for j in range(i, len(self._keys)):
                    lines.append(f"  G[{key_formatter(ki)}, {key_formatter(self._keys[j])}] =\n"
                                 f"{self._info.block(i, j)}")
                lines.append(f"  g[{key_formatter(ki)}] = {self.linear_block(ki)}")
        lines.append(f"  f = {self.constant_term():.6g}")
        return "\n".join(lines)

    def print(self, s: str = "", key_formatter: Callable[[Key], str] = str) -> None:
        print(self.format(s, key_formatter))

    def __str__(self) -> str:
        return self.format()

    def __repr__(self) -> str:
        return f"HessianFactor(keys={list(self._keys)!r})"
