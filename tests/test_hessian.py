"""
Unit tests for SymmetricBlockMatrix and HessianFactor
"""

import pytest
import numpy as np
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from smart_stereo_factor.hessian import HessianFactor, SymmetricBlockMatrix


def random_symmetric(n, seed=0):
    A = np.random.default_rng(seed).standard_normal((n, n))
    return A + A.T


class TestSymmetricBlockMatrix:
    """Upper-triangular block storage"""

    def test_round_trip_full_matrix(self):
        M = random_symmetric(13)
        sbm = SymmetricBlockMatrix([6, 6, 1], M)
        np.testing.assert_allclose(sbm.selfadjoint_view(), M)
        assert sbm.rows == 13 and sbm.n_blocks == 3

    def test_block_access_both_orders(self):
        M = random_symmetric(13, seed=1)
        sbm = SymmetricBlockMatrix([6, 6, 1], M)
        np.testing.assert_allclose(sbm.block(0, 1), M[:6, 6:12])
        np.testing.assert_allclose(sbm.block(1, 0), M[6:12, :6])
        np.testing.assert_allclose(sbm.diagonal_block(1), M[6:12, 6:12])

    def test_above_diagonal_requires_upper(self):
        sbm = SymmetricBlockMatrix([6, 6, 1])
        with pytest.raises(IndexError):
            sbm.above_diagonal_block(1, 0)

    def test_update_off_diagonal_transposes_lower(self):
        sbm = SymmetricBlockMatrix([6, 6, 1])
        X = np.arange(36, dtype=float).reshape(6, 6)
        sbm.update_off_diagonal_block(1, 0, X)
        np.testing.assert_allclose(sbm.above_diagonal_block(0, 1), X.T)
        sbm.update_off_diagonal_block(0, 1, X.T)
        np.testing.assert_allclose(sbm.block(1, 0), 2 * X)

    def test_update_diagonal_keeps_symmetry(self):
        sbm = SymmetricBlockMatrix([6, 1])
        D = random_symmetric(6, seed=2)
        sbm.update_diagonal_block(0, D)
        sbm.update_diagonal_block(0, D)
        np.testing.assert_allclose(sbm.diagonal_block(0), 2 * D)

    def test_set_zero_and_copy(self):
        sbm = SymmetricBlockMatrix([6, 1], random_symmetric(7))
        clone = sbm.copy()
        sbm.set_zero()
        assert not np.any(sbm.selfadjoint_view())
        assert np.any(clone.selfadjoint_view())

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            SymmetricBlockMatrix([6, 1], np.eye(6))


class TestHessianFactor:
    """Immutable quadratic factor"""

    def setup_method(self):
        A = np.random.default_rng(4).standard_normal((13, 13))
        self.aug = A @ A.T
        self.factor = HessianFactor(["x1", "b1"], SymmetricBlockMatrix([6, 6, 1], self.aug))

    def test_accessors(self):
        f = self.factor
        assert f.keys == ("x1", "b1") and len(f) == 2
        assert f.dims == (6, 6, 1)
        np.testing.assert_allclose(f.information(), self.aug[:12, :12])
        np.testing.assert_allclose(f.linear_term(), self.aug[:12, 12])
        assert f.constant_term() == pytest.approx(self.aug[12, 12])
        np.testing.assert_allclose(f.block("b1", "x1"), self.aug[6:12, :6])
        np.testing.assert_allclose(f.linear_block("b1"), self.aug[6:12, 12])

    def test_is_immutable(self):
        with pytest.raises(ValueError):
            self.factor.augmented_information()[0, 0] = 1.0

    def test_construction_copies_input(self):
        info = SymmetricBlockMatrix([6, 1], np.eye(7))
        factor = HessianFactor(["x1"], info)
        info.set_zero()
        assert factor.information()[0, 0] == 1.0

    def test_error(self):
        dx = np.random.default_rng(5).standard_normal(12)
        G, g, f = self.aug[:12, :12], self.aug[:12, 12], self.aug[12, 12]
        expected = 0.5 * dx @ G @ dx - dx @ g + 0.5 * f
        assert self.factor.error({"x1": dx[:6], "b1": dx[6:]}) == pytest.approx(expected)

    def test_zero_factor(self):
        zero = HessianFactor(["x1", "b1"], SymmetricBlockMatrix([6, 6, 1]))
        assert zero.is_zero()
        assert not self.factor.is_zero()

    def test_equals(self):
        same = HessianFactor(["x1", "b1"], SymmetricBlockMatrix([6, 6, 1], self.aug))
        other_keys = HessianFactor(["b1", "x1"], SymmetricBlockMatrix([6, 6, 1], self.aug))
        assert self.factor.equals(same)
        assert not self.factor.equals(other_keys)

    def test_dims_must_fit_keys(self):
        with pytest.raises(ValueError):
            HessianFactor(["x1"], SymmetricBlockMatrix([6, 6, 1]))

    def test_format_names_keys(self):
        text = self.factor.format("H: ", key_formatter=lambda k: k.upper())
        assert text.startswith("H: HessianFactor on keys: X1 B1")
        assert "f = " in text
