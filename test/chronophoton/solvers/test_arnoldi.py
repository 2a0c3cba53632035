# -*- coding: utf-8 -*-

# This code is part of ChronoPhoton.
#
# (C) Copyright IBM 2024.
#
# This code is licensed under the Apache License, Version 2.0. You may
# obtain a copy of this license in the LICENSE.txt file in the root directory
# of this source tree or at http://www.apache.org/licenses/LICENSE-2.0.
#
# Any modifications or derivative works of this code must retain this
# copyright notice, and modified files need to carry a notice indicating
# that they have been altered from the originals.
# pylint: disable=invalid-name

"""
Tests for arnoldi.py.
"""

import numpy as np
from scipy.stats import unitary_group

from chronophoton.solvers import arnoldi_basis, arnoldi_eig

from ..common import ChronoPhotonTestCase


class TestArnoldi(ChronoPhotonTestCase):
    """Arnoldi iteration on explicit matrices."""

    def setUp(self):
        rng = np.random.default_rng(4321)
        self.A = rng.normal(size=(12, 12)) + 1j * rng.normal(size=(12, 12))
        self.y0 = rng.normal(size=12) + 1j * rng.normal(size=12)

    def test_basis_orthonormal(self):
        """The krylov basis is orthonormal and spans A applied to earlier vectors."""
        hessenberg, q_basis, beta = arnoldi_basis(lambda v: self.A @ v, self.y0, 6)
        self.assertEqual(q_basis.shape, (12, 6))
        self.assertEqual(hessenberg.shape, (6, 6))
        self.assertAllClose(q_basis.conj().T @ q_basis, np.eye(6))
        self.assertAllClose(q_basis.conj().T @ self.A @ q_basis, hessenberg)
        self.assertAllClose(np.tril(hessenberg, -2), np.zeros((6, 6)))
        self.assertGreater(beta, 0.0)

    def test_full_dimension(self):
        """A full krylov space gives exact eigenvalues."""
        ritz_values, ritz_vectors, residuals = arnoldi_eig(lambda v: self.A @ v, self.y0, 12)
        exact = np.linalg.eigvals(self.A)
        self.assertAllClose(np.sort_complex(ritz_values), np.sort_complex(exact))
        for value, vector in zip(ritz_values, ritz_vectors.T):
            self.assertAllClose(self.A @ vector, value * vector)
        self.assertTrue(np.all(residuals < 1e-8))

    def test_invariant_subspace(self):
        """A start vector in an invariant subspace stops the iteration early."""
        A = np.diag([1.0, 2.0, 3.0, 4.0]).astype(complex)
        y0 = np.array([1.0, 1.0, 0.0, 0.0])
        hessenberg, q_basis, beta = arnoldi_basis(lambda v: A @ v, y0, 4)
        self.assertEqual(hessenberg.shape, (2, 2))
        self.assertEqual(q_basis.shape, (4, 2))
        self.assertEqual(beta, 0.0)
        ritz_values, _, residuals = arnoldi_eig(lambda v: A @ v, y0, 4)
        self.assertAllClose(np.sort(ritz_values.real), [1.0, 2.0])
        self.assertAllClose(residuals, np.zeros(2))

    def test_unitary_spectrum(self):
        """Ritz values of a unitary lie on the unit circle once converged."""
        U = unitary_group.rvs(10, random_state=11)
        ritz_values, _, residuals = arnoldi_eig(lambda v: U @ v, self.y0[:10], 10)
        self.assertAllClose(np.abs(ritz_values), np.ones(10))
        self.assertTrue(np.all(residuals < 1e-8))

    def test_residual_estimates(self):
        """Residual estimates match the true residuals of Ritz pairs."""
        ritz_values, ritz_vectors, residuals = arnoldi_eig(lambda v: self.A @ v, self.y0, 5)
        true = np.linalg.norm(self.A @ ritz_vectors - ritz_vectors * ritz_values, axis=0)
        self.assertAllClose(residuals, true, rtol=1e-6, atol=1e-10)
