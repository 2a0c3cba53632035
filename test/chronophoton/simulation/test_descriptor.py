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
Tests for descriptor.py.
"""

import json
import unittest

import numpy as np

from chronophoton.exceptions import ConstructionError
from chronophoton.registry import GeneratorKind
from chronophoton.simulation import (
    BatchSpec,
    DriveTerm,
    FloquetSpec,
    GeneratorSpec,
    InitialStateSpec,
    IntegratorSpec,
    JumpOperatorSpec,
    LindbladSpec,
    ObservableSpec,
    SimulationDescriptor,
)

NESTED = {
    "simulation": {
        "name": "thermal_cavity",
        "duration": 10.0,
        "timestep": 0.02,
        "integrator": "magnus4",
        "seed": 7,
    },
    "system": {
        "hamiltonian": "parametric_cavity",
        "hilbert_dim": 5,
        "parameters": {"omega_c": 1.0, "omega_p": 2.0, "g": 0.01},
        "initial_state": {"kind": "fock", "index": 2},
    },
    "lindblad": {
        "enabled": True,
        "operators": [
            {"type": "annihilation", "rate": 0.1, "temperature": 0.0},
            {"type": "dephasing", "rate": 0.02, "temperature": 0.5, "frequency": 1.0},
        ],
    },
    "observables": {"list": ["number", "purity"], "save_interval": 0.5},
    "gpu": {"enabled": True, "batch_size": 32},
    "parameter_sweep": {
        "enabled": True,
        "parameter": "g",
        "range": [0.0, 0.1],
        "num_points": 11,
    },
}


class TestSimulationDescriptor(unittest.TestCase):
    """Construction and validation of descriptors."""

    def test_nested_layout(self):
        """Sections of the nested layout map onto the descriptor fields."""
        descriptor = SimulationDescriptor.from_dict(NESTED)
        self.assertEqual(descriptor.name, "thermal_cavity")
        self.assertEqual(descriptor.dimension, 5)
        self.assertEqual(descriptor.duration, 10.0)
        self.assertEqual(descriptor.seed, 7)
        self.assertEqual(descriptor.integrator.method, "magnus4")
        self.assertEqual(descriptor.integrator.dt, 0.02)
        self.assertEqual(descriptor.generator.parameters["g"], 0.01)
        self.assertEqual(descriptor.initial_state.kind, "fock")
        self.assertEqual(descriptor.observables.names, ["number", "purity"])
        self.assertEqual(descriptor.observables.sample_interval, 0.5)

        jumps = descriptor.lindblad.jump_operators
        self.assertEqual(jumps[0].operator, "annihilation")
        self.assertIsNone(jumps[0].temperature)
        self.assertEqual(jumps[1].temperature, 0.5)

        batch = descriptor.batch
        self.assertEqual(batch.lane, "device")
        self.assertEqual(batch.batch_width, 32)
        self.assertEqual(len(batch.parameter_values()), 11)
        self.assertIs(descriptor.validate(), descriptor)

    def test_nested_defaults(self):
        """Disabled sections are left out."""
        data = {
            "simulation": {"duration": 1.0},
            "system": {"hamiltonian": "two_level", "hilbert_dim": 2},
            "lindblad": {"enabled": False, "operators": [{"type": "annihilation", "rate": 1.0}]},
        }
        descriptor = SimulationDescriptor.from_dict(data)
        self.assertIsNone(descriptor.lindblad)
        self.assertIsNone(descriptor.batch)
        self.assertIsNone(descriptor.floquet)
        self.assertEqual(descriptor.integrator, IntegratorSpec())

    def test_flat_round_trip(self):
        """to_dict output is plain python and restores an equal descriptor."""
        descriptor = SimulationDescriptor(
            dimension=2,
            generator=GeneratorSpec(
                static=np.diag([0.5, -0.5]),
                terms=[DriveTerm("sigma_x", amplitude=0.1, frequency=1.0)],
                period=2 * np.pi,
            ),
            initial_state=InitialStateSpec(kind="excited"),
            lindblad=LindbladSpec([JumpOperatorSpec("sigma_minus", 0.05)]),
            observables=ObservableSpec(names=["sigma_z"], sample_interval=0.1),
            batch=BatchSpec(parameter="duration", values=[1.0, 2.0]),
        )
        data = json.loads(json.dumps(descriptor.to_dict()))
        restored = SimulationDescriptor.from_dict(data)
        np.testing.assert_allclose(restored.generator.static, descriptor.generator.static)
        self.assertEqual(restored.generator.terms, descriptor.generator.terms)
        self.assertEqual(restored.lindblad, descriptor.lindblad)
        self.assertEqual(restored.batch, descriptor.batch)
        self.assertEqual(restored.observables, descriptor.observables)

    def test_malformed(self):
        """Missing sections and unknown fields."""
        with self.assertRaisesRegex(ConstructionError, "Malformed"):
            SimulationDescriptor.from_dict({"system": {"hilbert_dim": 2}})
        with self.assertRaisesRegex(ConstructionError, "Unknown IntegratorSpec fields"):
            SimulationDescriptor.from_dict(
                {
                    "dimension": 2,
                    "generator": {"name": "two_level"},
                    "integrator": {"method": "rk4", "order": 4},
                }
            )

    def test_templates(self):
        """Every template is valid."""
        for name in ["driven_tls", "parametric_cavity", "coupled_cavities", "damped_cavity"]:
            descriptor = SimulationDescriptor.template(name).validate()
            self.assertEqual(descriptor.name, name)
        self.assertEqual(
            SimulationDescriptor.template("driven_tls").generator.kind(), GeneratorKind.TWO_LEVEL
        )
        with self.assertRaisesRegex(ConstructionError, "Unknown template"):
            SimulationDescriptor.template("bose_hubbard")

    def test_templates_are_independent(self):
        """Each call builds a new descriptor."""
        a = SimulationDescriptor.template("driven_tls")
        a.generator.parameters["omega_0"] = 1.0
        fresh = SimulationDescriptor.template("driven_tls")
        self.assertEqual(fresh.generator.parameters["omega_0"], 5.0)

    def test_with_parameter(self):
        """Generator parameters, top level fields and dotted paths."""
        base = SimulationDescriptor.template("damped_cavity")
        base.batch = BatchSpec(parameter="g", values=[0.1])

        swept = base.with_parameter("g", 0.3)
        self.assertEqual(swept.generator.parameters["g"], 0.3)
        self.assertEqual(base.generator.parameters["g"], 0.0)
        self.assertIsNone(swept.batch)

        self.assertEqual(base.with_parameter("duration", 2.0).duration, 2.0)
        self.assertEqual(base.with_parameter("integrator.dt", 0.1).integrator.dt, 0.1)
        rate = base.with_parameter("lindblad.jump_operators.0.rate", 0.7)
        self.assertEqual(rate.lindblad.jump_operators[0].rate, 0.7)
        self.assertEqual(base.lindblad.jump_operators[0].rate, 0.2)

        with self.assertRaisesRegex(ConstructionError, "no parameter"):
            base.with_parameter("integrator.order", 4)
        with self.assertRaisesRegex(ConstructionError, "no parameter"):
            base.with_parameter("lindblad.jump_operators.3.rate", 0.1)

    def test_validation(self):
        """The first problem found is reported."""
        cases = [
            ({"dimension": 0}, "Dimension"),
            ({"duration": -1.0}, "Duration"),
            ({"generator": GeneratorSpec()}, "registry name or explicit terms"),
            ({"generator": GeneratorSpec(name="two_level", static=np.eye(2))}, "not both"),
            ({"initial_state": InitialStateSpec(kind="coherent")}, "initial state"),
            ({"initial_state": InitialStateSpec(kind="explicit")}, "needs data"),
            ({"integrator": IntegratorSpec(method="euler")}, "Unknown integrator"),
            ({"integrator": IntegratorSpec(dt=0.0)}, "Step size"),
            ({"observables": ObservableSpec(sample_interval=0.0)}, "sample interval"),
            ({"floquet": FloquetSpec(method="arnoldi")}, "Floquet method"),
            ({"subsystem_dims": [2, 3]}, "multiply"),
            ({"batch": BatchSpec(parameter="g")}, "explicit values"),
            ({"batch": BatchSpec(parameter="g", values=[1.0], lane="gpu")}, "lane"),
        ]
        for changes, message in cases:
            descriptor = SimulationDescriptor(
                dimension=2, generator=GeneratorSpec(name="two_level")
            )
            for key, value in changes.items():
                setattr(descriptor, key, value)
            with self.assertRaisesRegex(ConstructionError, message):
                descriptor.validate()

    def test_open_system_validation(self):
        """Jump operators exclude split-operator steps and Floquet analysis."""
        descriptor = SimulationDescriptor.template("damped_cavity")
        descriptor.integrator.method = "split"
        with self.assertRaisesRegex(ConstructionError, "Split-operator"):
            descriptor.validate()
        descriptor = SimulationDescriptor.template("damped_cavity")
        descriptor.floquet = FloquetSpec()
        with self.assertRaisesRegex(ConstructionError, "closed system"):
            descriptor.validate()


class TestBatchSpec(unittest.TestCase):
    """Parameter sweeps."""

    def test_values(self):
        """Explicit values and ranges."""
        self.assertEqual(BatchSpec("g", values=(0.1, 0.2)).parameter_values(), [0.1, 0.2])
        np.testing.assert_allclose(
            BatchSpec("g", start=0.0, stop=1.0, num_points=5).parameter_values(),
            [0.0, 0.25, 0.5, 0.75, 1.0],
        )
        single = BatchSpec("g", start=0.3, stop=1.0, num_points=1)
        self.assertEqual(single.parameter_values(), [0.3])

    def test_validation(self):
        """Empty sweeps and bad widths."""
        with self.assertRaises(ConstructionError):
            BatchSpec("g", values=[]).validate()
        with self.assertRaises(ConstructionError):
            BatchSpec("", values=[1.0]).validate()
        with self.assertRaises(ConstructionError):
            BatchSpec("g", values=[1.0], batch_width=0).validate()
