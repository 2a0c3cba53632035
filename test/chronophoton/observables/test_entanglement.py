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
Tests for entanglement.py.
"""

import numpy as np
from qiskit.quantum_info import DensityMatrix as QiskitDensityMatrix
from qiskit.quantum_info import entropy as qiskit_entropy
from qiskit.quantum_info import partial_trace as qiskit_partial_trace
from qiskit.quantum_info import random_density_matrix

from chronophoton.exceptions import ConstructionError
from chronophoton.observables import (
    concurrence,
    entanglement_entropy,
    partial_trace,
    purity,
    von_neumann_entropy,
)
from chronophoton.states import DensityMatrix, Ket

from ..common import ChronoPhotonTestCase

BELL = np.array([1.0, 0.0, 0.0, 1.0], dtype=complex) / np.sqrt(2)


class TestPartialTrace(ChronoPhotonTestCase):
    """Reduced density matrices."""

    def setUp(self):
        self.rho = random_density_matrix(24, seed=123).data

    def test_against_qiskit(self):
        """Agreement with qiskit, whose subsystem 0 is the rightmost factor."""
        dims = [2, 3, 4]
        qiskit_rho = QiskitDensityMatrix(self.rho, dims=dims[::-1])
        for keep in [[0], [1], [2], [0, 2], [1, 2]]:
            traced = [len(dims) - 1 - i for i in range(len(dims)) if i not in keep]
            expected = qiskit_partial_trace(qiskit_rho, traced).data
            self.assertAllClose(partial_trace(self.rho, dims, keep), expected)

    def test_product_state(self):
        """Tracing out a factor of a product state returns the other factor."""
        a = random_density_matrix(2, seed=1).data
        b = random_density_matrix(3, seed=2).data
        self.assertAllClose(partial_trace(np.kron(a, b), [2, 3], [0]), a)
        self.assertAllClose(partial_trace(np.kron(a, b), [2, 3], [1]), b)

    def test_ket_input(self):
        """Kets are reduced through their projector."""
        reduced = partial_trace(Ket(BELL), [2, 2], [1])
        self.assertAllClose(reduced, np.eye(2) / 2)

    def test_keep_everything(self):
        """Keeping all subsystems returns the state."""
        self.assertAllClose(partial_trace(self.rho, [4, 6], [1, 0]), self.rho)

    def test_invalid(self):
        """Mismatched dimensions and out of range subsystems."""
        with self.assertRaises(ConstructionError):
            partial_trace(self.rho, [2, 3], [0])
        with self.assertRaises(ConstructionError):
            partial_trace(self.rho, [4, 6], [2])


class TestEntanglementMeasures(ChronoPhotonTestCase):
    """Purity, entropy and concurrence."""

    def test_purity(self):
        """Pure states have purity 1 and the maximally mixed state 1/d."""
        self.assertAllClose(purity(Ket(BELL)), 1.0)
        self.assertAllClose(purity(np.eye(4) / 4), 0.25)
        rho = random_density_matrix(5, seed=7).data
        self.assertAllClose(purity(DensityMatrix(rho)), np.trace(rho @ rho).real)

    def test_entropy(self):
        """Agreement with qiskit's entropy."""
        rho = random_density_matrix(4, seed=8)
        self.assertAllClose(von_neumann_entropy(rho.data), qiskit_entropy(rho))
        self.assertAllClose(von_neumann_entropy(np.eye(4) / 4), 2.0)
        self.assertAllClose(von_neumann_entropy(np.eye(4) / 4, base=np.e), np.log(4))
        self.assertEqual(von_neumann_entropy(Ket(BELL)), 0.0)

    def test_entanglement_entropy(self):
        """A Bell pair carries one bit of entanglement, a product state none."""
        self.assertAllClose(entanglement_entropy(Ket(BELL), [2, 2]), 1.0)
        product = np.kron([1.0, 0.0], [0.6, 0.8])
        self.assertAllClose(entanglement_entropy(product, [2, 2]), 0.0, atol=1e-7)

    def test_concurrence(self):
        """Concurrence of Bell, product and mixed states."""
        self.assertAllClose(concurrence(Ket(BELL)), 1.0)
        self.assertAllClose(concurrence(np.outer(BELL, BELL.conj())), 1.0)
        self.assertAllClose(concurrence(np.array([1.0, 0.0, 0.0, 0.0])), 0.0)
        self.assertAllClose(concurrence(np.eye(4) / 4), 0.0)

    def test_werner_concurrence(self):
        """A Werner state p|B><B| + (1 - p)I/4 has concurrence max(0, (3p - 1)/2)."""
        bell = np.outer(BELL, BELL.conj())
        for p in [0.2, 0.5, 0.9]:
            werner = p * bell + (1 - p) * np.eye(4) / 4
            self.assertAllClose(concurrence(werner), max(0.0, (3 * p - 1) / 2))

    def test_concurrence_dims(self):
        """Concurrence is only defined for two qubits."""
        with self.assertRaises(ConstructionError):
            concurrence(np.eye(6) / 6, dims=(2, 3))
        with self.assertRaises(ConstructionError):
            concurrence(np.eye(3) / 3)
