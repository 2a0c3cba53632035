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
Tests for the Integrator front end.
"""

import warnings

import numpy as np
from scipy.linalg import expm

from chronophoton.exceptions import (
    CancellationSignal,
    ConstructionError,
    IntegrationError,
    StabilityViolation,
    StabilityWarning,
)
from chronophoton.models import BaseGeneratorModel, HamiltonianModel, JumpOperator, LindbladModel
from chronophoton.signals import Signal
from chronophoton.simulation import CancellationToken
from chronophoton.solvers import Integrator
from chronophoton.systems import two_level
from chronophoton.type_utils import devectorize_density_matrix, vectorize_density_matrix

from ..common import ChronoPhotonTestCase


X = np.array([[0.0, 1.0], [1.0, 0.0]], dtype=complex)
Z = np.array([[1.0, 0.0], [0.0, -1.0]], dtype=complex)


class NaNModel(BaseGeneratorModel):
    """A generator producing NaN."""

    @property
    def dim(self):
        return 2

    def evaluate(self, time, out=None):
        return np.full((2, 2), np.nan)

    def evaluate_rhs(self, time, y):
        return np.full_like(y, np.nan)


class TestIntegrator(ChronoPhotonTestCase):
    """Tests for Integrator."""

    def setUp(self):
        self.model = two_level(omega_0=5.0, rabi_frequency=0.5, drive="circular")
        self.y0 = np.array([1.0, 0.0], dtype=complex)

    def test_methods_agree(self):
        """All methods converge to the same state."""
        reference = Integrator(method="magnus4", dt=1e-3).integrate(self.model, self.y0, [0, 3.0])
        for method, tol in [("rk4", 1e-8), ("magnus2", 1e-4), ("split", 1e-4)]:
            results = Integrator(method=method, dt=1e-3).integrate(self.model, self.y0, [0, 3.0])
            self.assertAllClose(results.y[-1], reference.y[-1], atol=tol, rtol=tol)
            self.assertEqual(results.method, method)

    def test_unitarity(self):
        """Closed-system norms stay within 1e-8 of one."""
        for method in ["rk4", "magnus2", "magnus4", "split"]:
            results = Integrator(method=method, dt=1e-2).integrate(
                self.model, self.y0, [0, 20.0], t_eval=np.linspace(0, 20.0, 41)
            )
            norms = np.linalg.norm(results.y, axis=1)
            self.assertTrue(np.all(np.abs(norms - 1) < 1e-8))
            self.assertLess(results.max_unitarity_residual, 1e-8)
            self.assertEqual(results.warnings, [])

    def test_rabi_oscillation(self):
        """Resonant circular drive gives P_1 = sin^2(Omega t / 2)."""
        t_eval = np.linspace(0, 10.0, 21)
        results = Integrator(method="magnus4", dt=1e-2).integrate(
            self.model, self.y0, [0, 10.0], t_eval=t_eval
        )
        self.assertAllClose(np.abs(results.y[:, 1]) ** 2, np.sin(0.25 * t_eval) ** 2, atol=1e-6)

    def test_adaptive(self):
        """Adaptive integration records its step sizes."""
        integrator = Integrator(method="rk4", dt=0.1, adaptive=True, rtol=1e-10, atol=1e-12)
        results = integrator.integrate(self.model, self.y0, [0, 2.0])
        reference = Integrator(method="magnus4", dt=1e-3).integrate(self.model, self.y0, [0, 2.0])
        self.assertAllClose(results.y[-1], reference.y[-1], atol=1e-7, rtol=1e-7)
        self.assertAllClose(np.sum(results.step_sizes), 2.0)
        self.assertGreater(results.num_steps, 0)

    def test_step(self):
        """A single step."""
        integrator = Integrator(method="magnus4", dt=0.01)
        t, y = integrator.step(HamiltonianModel(static_operator=Z), 0.5, self.y0)
        self.assertAllClose(t, 0.51)
        self.assertAllClose(y, expm(-0.01j * Z) @ self.y0)

    def test_propagator(self):
        """The propagator of a static Hamiltonian is its exponential."""
        model = HamiltonianModel(static_operator=Z + 0.5 * X)
        U = Integrator(method="magnus4", dt=0.1).propagator(model, 0.0, 1.0)
        self.assertAllClose(U, expm(-1j * (Z + 0.5 * X)), atol=1e-12, rtol=1e-12)

    def test_propagator_result(self):
        """The propagator result carries the unitarity residual."""
        result = Integrator(method="magnus4", dt=0.01).propagator_result(self.model, 0.0, 1.0)
        self.assertLess(result.residual, 1e-10)
        self.assertEqual(result.U.shape, (2, 2))
        self.assertUnitary(result.U)

    def test_lindblad_model(self):
        """Vectorized density matrices stay normalized under a Lindblad model."""
        model = LindbladModel(self.model, [JumpOperator(np.array([[0, 1], [0, 0]]), 0.1)])
        rho0 = vectorize_density_matrix(np.diag([0.0, 1.0]).astype(complex))
        results = Integrator(method="rk4", dt=1e-2).integrate(model, rho0, [0, 5.0])
        self.assertDensityMatrix(devectorize_density_matrix(results.y[-1], 2), atol=1e-8)
        self.assertEqual(results.max_unitarity_residual, 0.0)

    def test_stability_warning(self):
        """A residual between the thresholds warns but completes."""
        model = HamiltonianModel(static_operator=Z)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            results = Integrator(method="rk4", dt=0.15).integrate(model, self.y0, [0, 0.3])
        self.assertTrue(any(issubclass(w.category, StabilityWarning) for w in caught))
        self.assertEqual(len(results.warnings), 2)
        self.assertIn("2 steps exceeded", results.warnings[1])
        # renormalization keeps the state on the unit sphere
        self.assertAllClose(np.linalg.norm(results.y[-1]), 1.0, atol=1e-14)

    def test_stability_violation(self):
        """A residual above the fatal threshold raises."""
        model = HamiltonianModel(static_operator=10 * Z)
        with self.assertRaises(StabilityViolation) as context:
            Integrator(method="rk4", dt=1.0).integrate(model, self.y0, [0, 5.0])
        self.assertEqual(context.exception.step, 1)
        self.assertAllClose(context.exception.time, 1.0)
        self.assertGreater(context.exception.residual, 1e-6)

    def test_nan(self):
        """NaN in the state is an integration error."""
        with self.assertRaisesRegex(IntegrationError, "NaN"):
            Integrator(method="rk4", dt=0.1).integrate(NaNModel(), self.y0, [0, 1.0])

    def test_cancellation(self):
        """A cancelled token stops integration."""
        token = CancellationToken()
        token.cancel()
        with self.assertRaises(CancellationSignal):
            Integrator().integrate(self.model, self.y0, [0, 1.0], cancel_token=token)

    def test_step_callback(self):
        """The user callback runs after the stability checks."""
        seen = []
        Integrator(method="magnus4", dt=0.25).integrate(
            self.model,
            self.y0,
            [0, 1.0],
            step_callback=lambda t, step, y_prev, y_next, h: seen.append(step) or y_next,
        )
        self.assertEqual(seen, [1, 2, 3, 4])

    def test_split_requires_hamiltonian(self):
        """Split-operator steps need a HamiltonianModel."""
        model = LindbladModel(self.model)
        with self.assertRaisesRegex(ConstructionError, "HamiltonianModel"):
            Integrator(method="split").integrate(model, np.zeros(4), [0, 1.0])

    def test_validation(self):
        """Unknown methods and invalid step sizes."""
        with self.assertRaisesRegex(ConstructionError, "Unknown integration method"):
            Integrator(method="euler")
        with self.assertRaises(ConstructionError):
            Integrator(dt=-0.1)
        with self.assertRaises(ConstructionError):
            Integrator(max_retries=0)

    def test_order_and_repr(self):
        """Order of accuracy and representation."""
        self.assertEqual(Integrator(method="magnus2").order, 2)
        self.assertEqual(Integrator(method="RK4").method, "rk4")
        self.assertIn("adaptive", repr(Integrator(adaptive=True)))

    def test_time_dependent_drive(self):
        """Split and Magnus agree on a drive with two incommensurate signals."""
        model = HamiltonianModel(
            static_operator=Z,
            operators=[X, X],
            signals=[Signal(0.4, 1.0), Signal(0.2, np.sqrt(2))],
        )
        a = Integrator(method="magnus4", dt=1e-3).integrate(model, self.y0, [0, 2.0]).y[-1]
        b = Integrator(method="split", dt=1e-3).integrate(model, self.y0, [0, 2.0]).y[-1]
        self.assertAllClose(a, b, atol=1e-4, rtol=1e-4)
