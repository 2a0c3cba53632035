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
Tests for registry.py.
"""

import unittest

import numpy as np
from scipy.sparse import csr_matrix

from chronophoton.exceptions import ConstructionError
from chronophoton.models import HamiltonianModel
from chronophoton.observables import Observable, resolve_observable
from chronophoton.registry import DEFAULT_REGISTRY, GeneratorKind, Registry
from chronophoton.signals import Signal
from chronophoton.systems import pauli_x, pauli_z


def detuned_qubit(parameters, dim):
    """An external generator constructor."""
    return HamiltonianModel(
        static_operator=parameters["delta"] * pauli_z(dim),
        operators=[pauli_x(dim)],
        signals=[Signal(parameters.get("amp", 0.1), 1.0)],
    )


class TestRegistry(unittest.TestCase):
    """Registration and construction."""

    def setUp(self):
        self.registry = Registry()

    def test_builtins(self):
        """Built-in generators and their aliases."""
        names = self.registry.names()["generators"]
        for name in ["two_level", "driven_tls", "parametric_cavity", "coupled_cavities"]:
            self.assertIn(name, names)
        self.assertEqual(self.registry.generator_kind("driven_tls"), GeneratorKind.TWO_LEVEL)
        self.assertFalse(Registry(include_builtins=False).has_generator("two_level"))

    def test_build_builtin(self):
        """Built-in constructors read named parameters."""
        model = self.registry.build_generator(
            "two_level", {"omega_0": 1.0, "rabi_freq": 0.2}, dim=2
        )
        self.assertEqual(model.dim, 2)
        self.assertAlmostEqual(model.period, 2 * np.pi)
        cavity = self.registry.build_generator(
            "coupled_cavities", {"omega_c": 1.0, "j1": 0.1, "j2": 0.2}, dim=5
        )
        np.testing.assert_allclose(cavity.evaluate(0.0)[2, 3], 0.2)

    def test_build_errors(self):
        """Missing parameters, unknown names and dimension mismatches."""
        with self.assertRaisesRegex(ConstructionError, "Missing generator parameter 'omega_0'"):
            self.registry.build_generator("two_level", {"rabi_freq": 0.2}, dim=2)
        with self.assertRaisesRegex(ConstructionError, "Unknown generator"):
            self.registry.build_generator("three_level", {}, dim=3)
        with self.assertRaisesRegex(ConstructionError, "dimension 2"):
            self.registry.build_generator("two_level", {"omega_0": 1.0, "rabi_freq": 0.2}, dim=3)

    def test_external_generator(self):
        """External constructors are registered by name and checked."""
        self.registry.register_generator("detuned_qubit", detuned_qubit)
        self.assertEqual(self.registry.generator_kind("detuned_qubit"), GeneratorKind.EXTERNAL)
        model = self.registry.build_generator("detuned_qubit", {"delta": 0.5}, dim=2)
        np.testing.assert_allclose(model.evaluate(0.0), 0.5 * pauli_z() + 0.1 * pauli_x())
        self.registry.register_generator(
            "qubit", lambda parameters, _: detuned_qubit(parameters, 2)
        )
        with self.assertRaisesRegex(ConstructionError, "expected 3"):
            self.registry.build_generator("qubit", {"delta": 0.5}, dim=3)
        with self.assertRaisesRegex(ConstructionError, "failed"):
            self.registry.build_generator("detuned_qubit", {}, dim=2)

    def test_bad_generator_return(self):
        """Constructors must return a generator model."""
        self.registry.register_generator("matrix", lambda parameters, dim: np.eye(dim))
        with self.assertRaisesRegex(ConstructionError, "not a generator model"):
            self.registry.build_generator("matrix", {}, dim=2)

    def test_overwrite(self):
        """Names are not silently replaced."""
        self.registry.register_generator("detuned_qubit", detuned_qubit)
        with self.assertRaisesRegex(ConstructionError, "already registered"):
            self.registry.register_generator("detuned_qubit", detuned_qubit)
        self.registry.register_generator("detuned_qubit", detuned_qubit, overwrite=True)
        with self.assertRaises(ConstructionError):
            self.registry.register_generator("two_level", detuned_qubit)
        with self.assertRaisesRegex(ConstructionError, "not callable"):
            self.registry.register_generator("bad", 3.0)

    def test_observables(self):
        """Observable constructors may return observables, operators or functions."""
        self.registry.register_observable("x", lambda dim, dims: pauli_x(dim))
        self.registry.register_observable("sparse_z", lambda dim, dims: csr_matrix(pauli_z(dim)))
        self.registry.register_observable("dim", lambda dim, dims: lambda state: state.dim)
        self.registry.register_observable(
            "named", lambda dim, dims: Observable("named", operator=np.eye(dim))
        )
        for name in ["x", "sparse_z", "dim", "named"]:
            observable = self.registry.build_observable(name, 2)
            self.assertIsInstance(observable, Observable)
            self.assertTrue(observable.external)
        self.assertEqual(self.registry.names()["observables"], ["dim", "named", "sparse_z", "x"])

    def test_bad_observables(self):
        """Wrong shapes and unsupported return values."""
        self.registry.register_observable("wrong", lambda dim, dims: np.eye(dim + 1))
        self.registry.register_observable("number", lambda dim, dims: 3.0)
        with self.assertRaisesRegex(ConstructionError, "expected"):
            self.registry.build_observable("wrong", 2)
        with self.assertRaisesRegex(ConstructionError, "unsupported"):
            self.registry.build_observable("number", 2)
        with self.assertRaisesRegex(ConstructionError, "Unknown observable"):
            self.registry.observable("missing")

    def test_resolution_order(self):
        """Registered observables shadow built-ins of the same name."""
        self.registry.register_observable("purity", lambda dim, dims: lambda state: -1.0)
        observable = resolve_observable("purity", 2, registry=self.registry)
        self.assertTrue(observable.external)
        self.assertFalse(resolve_observable("purity", 2, registry=Registry()).external)
        self.assertFalse(resolve_observable("purity", 2).external)

    def test_default_registry(self):
        """The default registry holds the built-ins."""
        self.assertTrue(DEFAULT_REGISTRY.has_generator("parametric_cavity"))
