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
Tests for device.py.
"""

from unittest.mock import patch

import numpy as np

from chronophoton.batch import BatchExecutor, DeviceContext, available_devices, run_device_batch
from chronophoton.batch import device
from chronophoton.exceptions import ConstructionError
from chronophoton.simulation import (
    BatchSpec,
    CancellationToken,
    GeneratorSpec,
    IntegratorSpec,
    ObservableSpec,
    SimulationDescriptor,
)

from ..common import ChronoPhotonTestCase, JAXTestBase


def rabi_sweep(values, method="magnus4"):
    """A circularly driven two-level system swept over the drive frequency."""
    return SimulationDescriptor(
        name="device_sweep",
        dimension=2,
        generator=GeneratorSpec(
            name="two_level",
            parameters={"omega_0": 2.0, "rabi_freq": 0.5, "drive": "circular"},
        ),
        integrator=IntegratorSpec(method=method, dt=0.02),
        duration=4.0,
        observables=ObservableSpec(names=["population_1", "sigma_z"], sample_interval=0.5),
        batch=BatchSpec(parameter="omega_d", values=values, lane="device"),
    )


class TestDeviceContextWithoutJAX(ChronoPhotonTestCase):
    """Behaviour of the context when JAX is not registered."""

    def test_no_devices(self):
        """Without JAX there are no devices and acquiring fails."""
        with patch.object(type(device.CHRONO_NUMPY_ALIAS), "registered_libs", return_value=["numpy"]):
            self.assertEqual(available_devices(), [])
            with self.assertRaisesRegex(ConstructionError, "No JAX devices"):
                DeviceContext().acquire()

    def test_inactive(self):
        """An unused context owns no device."""
        context = DeviceContext("gpu")
        self.assertFalse(context.active)
        self.assertIn("active=False", repr(context))
        with self.assertRaisesRegex(ConstructionError, "not active"):
            context.device  # pylint: disable=pointless-statement


class TestDeviceContext(JAXTestBase):
    """Device ownership."""

    def test_acquire_release(self):
        """Buffers placed through the context are deleted on exit."""
        with DeviceContext("cpu") as context:
            self.assertTrue(context.active)
            buffer = context.put(np.ones(3))
            self.assertAllClose(buffer, np.ones(3))
        self.assertFalse(context.active)
        self.assertTrue(buffer.is_deleted())

    def test_release_on_error(self):
        """Buffers are released when the body raises."""
        context = DeviceContext("cpu")
        with self.assertRaises(RuntimeError):
            with context:
                buffer = context.put(np.zeros(2))
                raise RuntimeError("boom")
        self.assertFalse(context.active)
        self.assertTrue(buffer.is_deleted())

    def test_bad_index(self):
        """Device indices out of range are rejected."""
        with self.assertRaisesRegex(ConstructionError, "out of range"):
            DeviceContext("cpu", device_index=len(available_devices("cpu"))).acquire()


class TestDeviceLane(JAXTestBase):
    """Device-batched integration."""

    def test_matches_sequential(self):
        """The device lane agrees with the sequential lane."""
        descriptor = rabi_sweep(list(np.linspace(1.6, 2.4, 9)))
        sequential = BatchExecutor(lane="sequential").run(descriptor)
        batch = BatchExecutor(lane="device", batch_width=4).run(descriptor)
        self.assertEqual(batch.lane, "device")
        self.assertEqual(batch.num_succeeded, 9)
        for name in ["population_1", "sigma_z"]:
            self.assertAllClose(
                batch.observable_matrix(name), sequential.observable_matrix(name), atol=1e-8
            )

    def test_rk4(self):
        """Right hand side stepping works on the device."""
        descriptor = rabi_sweep([2.0], method="rk4")
        batch = BatchExecutor(lane="device").run(descriptor)
        times = batch[0].results.times
        self.assertAllClose(
            batch.observable_matrix("population_1")[0], np.sin(0.25 * times) ** 2, atol=1e-6
        )

    def test_open_system(self):
        """Lindblad instances are integrated as vectorized density matrices."""
        descriptor = SimulationDescriptor.template("damped_cavity")
        descriptor.duration = 1.0
        descriptor.steady_state = False
        descriptor.batch = BatchSpec(
            parameter="lindblad.jump_operators.0.rate", values=[0.1, 0.2], lane="device"
        )
        batch = BatchExecutor(lane="device").run(descriptor)
        times = batch[0].results.times
        self.assertAllClose(batch[0].results["number"], 3 * np.exp(-0.1 * times), atol=1e-8)
        self.assertAllClose(batch[1].results["number"], 3 * np.exp(-0.2 * times), atol=1e-8)
        self.assertEqual(batch[1].results.final_state.data.shape, (6, 6))

    def test_positivity_violation(self):
        """An unstable step fails on the device lane exactly as on the sequential lane."""
        descriptor = SimulationDescriptor.template("damped_cavity")
        descriptor.integrator = IntegratorSpec(method="rk4", dt=0.9)
        descriptor.duration = 4.5
        descriptor.observables.sample_interval = 0.9
        descriptor.steady_state = False
        descriptor.batch = BatchSpec(
            parameter="lindblad.jump_operators.0.rate", values=[3.0, 3.5]
        )
        sequential = BatchExecutor(lane="sequential").run(descriptor)
        on_device = BatchExecutor(lane="device").run(descriptor)
        self.assertEqual(on_device.num_succeeded, 0)
        for cpu, dev in zip(sequential, on_device):
            self.assertEqual(cpu.error_kind, "StabilityViolation")
            self.assertEqual(dev.error_kind, cpu.error_kind)
            self.assertLess(dev.error.residual, -1e-12)
            self.assertAllClose(dev.error_time, cpu.error_time)

    def test_ket_monitoring(self):
        """Ket runs report their step unitarity residual like the CPU lanes."""
        batch = BatchExecutor(lane="device").run(rabi_sweep([2.0]))
        metadata = batch[0].results.metadata
        self.assertLess(metadata.max_unitarity_residual, 1e-8)
        self.assertEqual(metadata.warnings, [])

    def test_explicit_context(self):
        """An active context is used as given and left active."""
        with DeviceContext("cpu") as context:
            executor = BatchExecutor(lane="device", device_context=context)
            batch = executor.run(rabi_sweep([1.9, 2.1]))
            self.assertTrue(context.active)
        self.assertEqual(batch.num_succeeded, 2)

    def test_instance_failure(self):
        """A construction failure is isolated to its instance."""
        batch = BatchExecutor(lane="device").run(rabi_sweep([2.0, -1.0]))
        self.assertTrue(batch[0].succeeded)
        self.assertEqual(batch[1].error_kind, "ConstructionError")

    def test_cancelled(self):
        """A cancelled token stops every chunk."""
        token = CancellationToken()
        token.cancel()
        batch = BatchExecutor(lane="device").run(rabi_sweep([1.9, 2.1]), cancel_token=token)
        self.assertTrue(batch.cancelled)
        self.assertTrue(all(inst.cancelled for inst in batch))

    def test_unsupported(self):
        """Adaptive, split and Floquet runs are rejected as a whole."""
        adaptive = rabi_sweep([2.0])
        adaptive.integrator.adaptive = True
        with self.assertRaisesRegex(ConstructionError, "fixed step"):
            BatchExecutor(lane="device").run(adaptive)

        with self.assertRaisesRegex(ConstructionError, "supports"):
            BatchExecutor(lane="device").run(rabi_sweep([2.0], method="split"))

        floquet = SimulationDescriptor.template("parametric_cavity")
        floquet.batch = BatchSpec(parameter="g", values=[0.05], lane="device")
        with self.assertRaisesRegex(ConstructionError, "Floquet"):
            BatchExecutor(lane="device").run(floquet)

    def test_mismatched_structure(self):
        """Instances must share dimension, integrator and sampling."""
        first = rabi_sweep([2.0]).with_parameter("omega_d", 2.0)
        second = first.with_parameter("duration", 2.0)
        with DeviceContext("cpu") as context:
            with self.assertRaisesRegex(ConstructionError, "share"):
                run_device_batch([first, second], [None, None], context)
            self.assertEqual(run_device_batch([], [], context), [])
