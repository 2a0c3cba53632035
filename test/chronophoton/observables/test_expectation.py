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
Tests for expectation.py.
"""

import numpy as np
from scipy.sparse import csr_matrix

from chronophoton.exceptions import ConstructionError
from chronophoton.models import HamiltonianModel, JumpOperator, LindbladModel
from chronophoton.observables import expectation_value, expectation_values, two_time_correlator
from chronophoton.solvers import Integrator
from chronophoton.states import DensityMatrix, Ket
from chronophoton.systems import annihilation, creation, number, pauli_x

from ..common import ChronoPhotonTestCase


class TestExpectationValues(ChronoPhotonTestCase):
    """Expectation values of single states and stacks."""

    def test_ket(self):
        """<psi|O|psi>."""
        psi = Ket(np.array([1.0, 1.0j]) / np.sqrt(2))
        self.assertAllClose(expectation_value(pauli_x(), psi), 0.0)
        self.assertAllClose(expectation_value(number(2), psi), 0.5)

    def test_density_matrix(self):
        """Tr(O rho) for dense and sparse operators."""
        rho = DensityMatrix.random(3, seed=5)
        O = np.arange(9).reshape(3, 3)
        expected = np.trace(O @ rho.data)
        self.assertAllClose(expectation_value(O, rho), expected)
        self.assertAllClose(expectation_value(csr_matrix(O), rho), expected)

    def test_state_unchanged(self):
        """The state is only read."""
        data = np.array([0.6, 0.8], dtype=complex)
        expectation_value(pauli_x(), data)
        self.assertAllClose(data, [0.6, 0.8])

    def test_stacks(self):
        """Vectorized evaluation over kets and density matrices."""
        kets = np.array([[1.0, 0.0], [0.0, 1.0], [np.sqrt(0.5), np.sqrt(0.5)]], dtype=complex)
        self.assertAllClose(expectation_values(number(2), kets, False), [0.0, 1.0, 0.5])
        rhos = np.einsum("ni,nj->nij", kets, kets.conj())
        self.assertAllClose(expectation_values(pauli_x(), rhos, True), [0.0, 0.0, 1.0])

    def test_dimension_mismatch(self):
        """Operators must act on the state's space."""
        with self.assertRaises(ConstructionError):
            expectation_value(number(3), Ket.basis(2, 0))


class TestTwoTimeCorrelator(ChronoPhotonTestCase):
    """Quantum regression."""

    def setUp(self):
        self.omega = 1.3
        self.dim = 4
        self.hamiltonian = HamiltonianModel(static_operator=self.omega * number(self.dim))
        self.a = annihilation(self.dim)
        self.adag = creation(self.dim)
        self.taus = np.linspace(0, 3, 7)
        self.integrator = Integrator(method="magnus4", dt=0.01)

    def test_closed_ket(self):
        """<adag(tau) a(0)> = exp(i w tau) for a single photon."""
        values = two_time_correlator(
            self.hamiltonian,
            Ket.basis(self.dim, 1),
            self.adag,
            self.a,
            0.0,
            self.taus,
            integrator=self.integrator,
        )
        self.assertAllClose(values, np.exp(1j * self.omega * self.taus), atol=1e-8)

    def test_closed_density_matrix(self):
        """A density matrix of a closed model gives the same correlator."""
        values = two_time_correlator(
            self.hamiltonian,
            DensityMatrix.basis(self.dim, 1),
            self.adag,
            self.a,
            0.0,
            self.taus,
            integrator=Integrator(method="rk4", dt=0.01),
        )
        self.assertAllClose(values, np.exp(1j * self.omega * self.taus), atol=1e-8)

    def test_damped(self):
        """Photon loss damps the first order coherence at kappa / 2."""
        kappa = 0.4
        model = LindbladModel(self.hamiltonian, [JumpOperator(self.a, kappa)])
        values = two_time_correlator(
            model,
            DensityMatrix.basis(self.dim, 1),
            self.adag,
            self.a,
            0.0,
            self.taus,
            integrator=Integrator(method="rk4", dt=0.01),
        )
        expected = np.exp((1j * self.omega - 0.5 * kappa) * self.taus)
        self.assertAllClose(values, expected, atol=1e-8)

    def test_zero_delay(self):
        """At zero delay the correlator is <A B>."""
        psi = Ket(np.array([0.0, 0.6, 0.8, 0.0]))
        values = two_time_correlator(self.hamiltonian, psi, self.adag, self.a, 2.0, [0.0])
        self.assertAllClose(values, [expectation_value(self.adag @ self.a, psi)])

    def test_invalid_delays(self):
        """Delays must be non-negative and increasing."""
        for taus in [[-1.0, 0.0], [1.0, 0.5]]:
            with self.assertRaises(ConstructionError):
                two_time_correlator(
                    self.hamiltonian, Ket.basis(self.dim, 1), self.adag, self.a, 0.0, taus
                )
