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
Device context and the device-batched lane.

A batch of fixed-step runs that differ only in numbers is stacked into arrays and integrated with
one ``jax.vmap`` over :func:`.fixed_step_solver_template_jax`, in chunks of ``batch_width``
instances. The device is owned by an explicit :class:`DeviceContext` and every buffer placed on it
is released when the context exits, on every exit path.

Every device step applies the per-step checks of the CPU lanes: kets are renormalized and their
unitarity residual tracked, density matrices are symmetrized, trace corrected and their smallest
eigenvalue tracked. The running extremes travel in two extra slots at the end of the state and are
turned into the same errors and warnings on the host, located to the sample interval in which the
threshold was first crossed.
"""

import logging
from typing import List, Optional

import numpy as np

from chronophoton.arraylias import CHRONO_NUMPY_ALIAS, to_dense
from chronophoton.exceptions import (
    ChronoPhotonError,
    ConstructionError,
    IntegrationError,
    StabilityViolation,
)
from chronophoton.models import HamiltonianModel, LindbladModel
from chronophoton.results import InstanceResult, Results, RunMetadata, Trajectory
from chronophoton.solvers.fixed_step_solvers import JAX_STEPS, fixed_step_solver_template_jax
from chronophoton.solvers.integrator import UNITARITY_FATAL, UNITARITY_WARN
from chronophoton.solvers.lindblad_solver import (
    EIGENVALUE_TOL,
    TRACE_CORRECTION_BAND,
    TRACE_TOL,
)
from chronophoton.solvers.solver_utils import get_fixed_step_sizes
from chronophoton.type_utils import devectorize_density_matrix, vectorize_density_matrix
from chronophoton.simulation.builder import (
    build_initial_state,
    build_model,
    build_observables,
)
from chronophoton.simulation.runner import sample_times

try:
    import jax
    import jax.numpy as jnp
except ImportError:
    pass

logger = logging.getLogger(__name__)


def available_devices(platform: Optional[str] = None) -> list:
    """JAX devices of ``platform`` (all devices if ``None``), or ``[]`` without JAX."""
    if "jax" not in CHRONO_NUMPY_ALIAS.registered_libs():
        return []
    try:
        return list(jax.devices(platform))
    except RuntimeError:
        return []


class DeviceContext:
    """Explicit ownership of one JAX device.

    Use as a context manager. Entering selects the device and enables double precision, exiting
    deletes every buffer placed through :meth:`put`.

    .. code-block:: python

        with DeviceContext("gpu") as context:
            batch = BatchExecutor(lane="device", device_context=context).run(descriptor)
    """

    def __init__(self, platform: str = "auto", device_index: int = 0):
        self.platform = platform
        self.device_index = device_index
        self._device = None
        self._buffers = []

    @property
    def active(self) -> bool:
        return self._device is not None

    @property
    def device(self):
        """The acquired device.

        Raises:
            ConstructionError: If the context is not active.
        """
        if self._device is None:
            raise ConstructionError("DeviceContext is not active; use it as a context manager.")
        return self._device

    def acquire(self) -> "DeviceContext":
        """Select the device.

        Raises:
            ConstructionError: If JAX is unavailable or the device does not exist.
        """
        if self._device is not None:
            return self
        platform = None if self.platform in (None, "auto") else self.platform
        devices = available_devices(platform)
        if not devices:
            raise ConstructionError(
                f"No JAX devices for platform '{self.platform}'. Install chronophoton[jax]."
            )
        if not 0 <= self.device_index < len(devices):
            raise ConstructionError(
                f"Device index {self.device_index} out of range for {len(devices)} devices."
            )
        jax.config.update("jax_enable_x64", True)
        self._device = devices[self.device_index]
        logger.info("Acquired device %s", self._device)
        return self

    def release(self):
        """Delete all buffers placed on the device and drop the device."""
        for buffer in self._buffers:
            if not buffer.is_deleted():
                buffer.delete()
        num = len(self._buffers)
        self._buffers = []
        if self._device is not None:
            logger.info("Released device %s (%d buffers)", self._device, num)
        self._device = None

    def put(self, array):
        """Place ``array`` on the device, tracking the buffer for release."""
        buffer = jax.device_put(jnp.asarray(array), self.device)
        self._buffers.append(buffer)
        return buffer

    def __enter__(self):
        return self.acquire()

    def __exit__(self, exc_type, exc_value, traceback):
        self.release()
        return False

    def __repr__(self):
        return f"DeviceContext(platform={self.platform!r}, active={self.active})"


def _stack_generator(model, dim):
    """Arrays ``(G0, Gs, amps, freqs, phases)`` of the generator
    ``G(t) = G0 + sum_j amps_j cos(freqs_j t + phases_j) Gs_j``.
    """
    hamiltonian = model.hamiltonian if isinstance(model, LindbladModel) else model
    if not isinstance(hamiltonian, HamiltonianModel):
        raise ConstructionError("The device lane requires built-in or composed Hamiltonians.")
    signals = hamiltonian.signals
    if signals is not None and not signals.is_harmonic:
        raise ConstructionError("The device lane requires harmonic drive signals.")

    if isinstance(model, LindbladModel):
        size = model.vectorized_dim
        static = model.static_superoperator
        operators = model.drive_superoperators
        G0 = np.zeros((size, size), dtype=complex) if static is None else to_dense(static)
        Gs = [] if operators is None else [to_dense(op) for op in operators]
    else:
        static = hamiltonian.static_operator
        operators = hamiltonian.operators
        G0 = np.zeros((dim, dim), dtype=complex) if static is None else -1j * to_dense(static)
        Gs = [] if operators is None else [-1j * to_dense(op) for op in operators]

    if signals is None:
        amps, freqs, phases = np.zeros(0), np.zeros(0), np.zeros(0)
    else:
        amps, freqs, phases = signals.harmonic_data()
    Gs = np.array(Gs, dtype=complex).reshape(len(Gs), *G0.shape)
    return G0, Gs, np.asarray(amps, float), np.asarray(freqs, float), np.asarray(phases, float)


def _check_structure(descriptor):
    if descriptor.integrator.adaptive:
        raise ConstructionError("The device lane supports fixed step integration only.")
    if descriptor.integrator.method not in JAX_STEPS:
        raise ConstructionError(
            f"The device lane supports {sorted(JAX_STEPS)}, not '{descriptor.integrator.method}'."
        )
    if descriptor.floquet is not None or descriptor.steady_state:
        raise ConstructionError(
            "Floquet analysis and steady states are not available on the device lane."
        )


def _chunked_vmap(f, args, context, max_vmap_size):
    """Map ``f`` over the leading axis of ``args`` in chunks of ``max_vmap_size``."""
    axis_size = len(args[0])
    vmapped = jax.jit(jax.vmap(f))
    outputs = []
    for start in range(0, axis_size, max_vmap_size):
        chunk = tuple(context.put(arg[start : start + max_vmap_size]) for arg in args)
        outputs.append(np.asarray(vmapped(*chunk)))
    return np.concatenate(outputs, axis=0)


def run_device_batch(
    descriptors,
    parameters,
    context: DeviceContext,
    registry=None,
    batch_width: int = 256,
    cancel_token=None,
) -> List[InstanceResult]:
    """Integrate ``descriptors`` on the device owned by ``context``.

    All descriptors must share dimension, integrator, duration, sampling and number of drive terms.
    Instances failing construction, or whose samples are non-finite or break the norm or trace
    invariant, are recorded as failures.

    Raises:
        ConstructionError: If the batch as a whole cannot run on the device lane.
    """
    if not descriptors:
        return []
    for descriptor in descriptors:
        _check_structure(descriptor)
    reference = descriptors[0]
    integrator = reference.integrator
    for descriptor in descriptors[1:]:
        if (
            descriptor.dimension != reference.dimension
            or descriptor.integrator != integrator
            or descriptor.duration != reference.duration
            or descriptor.observables.sample_interval != reference.observables.sample_interval
        ):
            raise ConstructionError("Device batches must share dimension, integrator and sampling.")

    dim = reference.dimension
    times = sample_times(reference.duration, reference.observables.sample_interval)
    t_span = [0.0, reference.duration]
    _, _, n_steps = get_fixed_step_sizes(t_span, times, integrator.dt)
    num_steps = int(np.sum(n_steps))

    instances = [None] * len(descriptors)
    prepared = []
    for idx, descriptor in enumerate(descriptors):
        try:
            model = build_model(descriptor, registry)
            state = build_initial_state(descriptor)
            observables = build_observables(descriptor, registry)
            stacked = _stack_generator(model, dim)
        except ChronoPhotonError as err:
            instances[idx] = InstanceResult(idx, parameters[idx], error=err)
            continue
        is_dm = isinstance(model, LindbladModel) or state.data.ndim == 2
        if is_dm and not isinstance(model, LindbladModel):
            model = LindbladModel(model)
            stacked = _stack_generator(model, dim)
        y0 = vectorize_density_matrix(state.to_density_matrix().data) if is_dm else state.data
        prepared.append((idx, is_dm, observables, stacked, y0))

    groups = {}
    for entry in prepared:
        _, is_dm, _, stacked, _ = entry
        groups.setdefault((is_dm, stacked[1].shape[0]), []).append(entry)

    for (is_dm, _), group in groups.items():
        solve = _group_solver(integrator, t_span, times, dim, is_dm)
        for start in range(0, len(group), batch_width):
            chunk = group[start : start + batch_width]
            if cancel_token is not None and cancel_token.is_cancelled():
                for idx, *_ in chunk:
                    instances[idx] = InstanceResult(idx, parameters[idx], cancelled=True)
                continue
            args = tuple(np.array([entry[3][k] for entry in chunk]) for k in range(5))
            args = args + (np.array([_with_monitor_slots(entry[4], is_dm) for entry in chunk]),)
            ys = _chunked_vmap(solve, args, context, batch_width)
            for (idx, _, observables, _, _), y in zip(chunk, ys):
                instances[idx] = _instance_result(
                    idx,
                    parameters[idx],
                    descriptors[idx],
                    y,
                    times,
                    is_dm,
                    dim,
                    observables,
                    num_steps,
                )
            logger.debug("Device chunk of %d instances done", len(chunk))

    return instances


def _with_monitor_slots(y0, is_dm):
    # running minimum eigenvalue and maximum trace drift, or maximum unitarity residual
    slots = [1.0, 0.0] if is_dm else [0.0, 0.0]
    return np.concatenate([np.asarray(y0, dtype=complex), np.asarray(slots, dtype=complex)])


def _monitored_step(take_step, dim, is_dm):
    """Wrap a JAX step with the corrections and checks the CPU lanes apply after each step."""

    def step(rhs_func, t, y_ext, h):
        y, slots = y_ext[:-2], y_ext[-2:].real
        y_next = take_step(rhs_func, t, y, h)
        if is_dm:
            rho = y_next.reshape(dim, dim).T
            rho = 0.5 * (rho + rho.conj().T)
            trace = jnp.trace(rho).real
            drift = jnp.abs(trace - 1.0)
            rho = jnp.where(drift > TRACE_TOL, rho / trace, rho)
            min_eig = jnp.linalg.eigvalsh(rho)[0]
            y_next = rho.T.reshape(-1)
            slots = jnp.stack([jnp.minimum(slots[0], min_eig), jnp.maximum(slots[1], drift)])
        else:
            norm = jnp.linalg.norm(y)
            next_norm = jnp.linalg.norm(y_next)
            residual = jnp.abs(next_norm - norm) / norm
            y_next = y_next * (norm / next_norm)
            slots = jnp.stack([jnp.maximum(slots[0], residual), slots[1]])
        return jnp.concatenate([y_next, slots.astype(y_ext.dtype)])

    return step


def _group_solver(integrator, t_span, times, dim, is_dm):
    take_step = _monitored_step(JAX_STEPS[integrator.method], dim, is_dm)

    def solve(G0, Gs, amps, freqs, phases, y0):
        def generator(t):
            return G0 + jnp.tensordot(amps * jnp.cos(freqs * t + phases), Gs, axes=1)

        if integrator.method == "rk4":
            rhs = lambda t, y: generator(t) @ y
        else:
            rhs = generator
        return fixed_step_solver_template_jax(take_step, rhs, t_span, y0, integrator.dt, times)[0]

    return solve


def _first_crossing(flags) -> Optional[int]:
    hits = np.nonzero(flags)[0]
    return int(hits[0]) if hits.size else None


def _check_samples(ys, slots, times, is_dm):
    """Raise the error of the earliest sample interval in which a per-step check failed.

    Returns:
        The largest step unitarity residual of a ket trajectory, or ``None``.
    """
    finite = np.all(np.isfinite(ys), axis=1) & np.all(np.isfinite(slots), axis=1)
    failures = [
        (
            _first_crossing(~finite),
            lambda i: IntegrationError(
                "NaN or Inf in state after step on the device lane.", time=float(times[i])
            ),
        )
    ]
    if is_dm:
        failures.append(
            (
                _first_crossing(slots[:, 1] > TRACE_CORRECTION_BAND),
                lambda i: IntegrationError(
                    f"Trace drifted by {slots[i, 1]:.3e}, outside the corrective band.",
                    time=float(times[i]),
                ),
            )
        )
        failures.append(
            (
                _first_crossing(slots[:, 0] < -EIGENVALUE_TOL),
                lambda i: StabilityViolation(
                    f"Density matrix eigenvalue {slots[i, 0]:.3e} violates positivity.",
                    time=float(times[i]),
                    residual=float(slots[i, 0]),
                ),
            )
        )
    else:
        failures.append(
            (
                _first_crossing(slots[:, 0] > UNITARITY_FATAL),
                lambda i: StabilityViolation(
                    f"Step unitarity residual {slots[i, 0]:.3e} exceeds {UNITARITY_FATAL:.1e}.",
                    time=float(times[i]),
                    residual=float(slots[i, 0]),
                ),
            )
        )

    found = [(index, make) for index, make in failures if index is not None]
    if found:
        index, make = min(found, key=lambda item: item[0])
        raise make(index)
    return None if is_dm else float(np.max(slots[:, 0]))


def _instance_result(idx, parameter, descriptor, ys, times, is_dm, dim, observables, num_steps):
    ys, slots = ys[:, :-2], ys[:, -2:].real
    try:
        max_residual = _check_samples(ys, slots, times, is_dm)
    except IntegrationError as err:
        return InstanceResult(idx, parameter, error=err)

    metadata = RunMetadata(
        integrator=descriptor.integrator.method,
        dt=descriptor.integrator.dt,
        adaptive=False,
        num_steps=num_steps,
        name=descriptor.name,
        seed=descriptor.seed,
        max_unitarity_residual=max_residual,
    )
    if max_residual is not None and max_residual > UNITARITY_WARN:
        message = (
            f"Step unitarity residual {max_residual:.3e} exceeds {UNITARITY_WARN:.1e} on the "
            "device lane; consider a smaller step size."
        )
        logger.warning(message)
        metadata.warnings.append(message)

    states = devectorize_density_matrix(ys, dim) if is_dm else ys
    values = {obs.name: obs.series(states, is_dm) for obs in observables}
    trajectory = Trajectory(times, states, is_dm) if descriptor.keep_trajectory else None
    results = Results(times, values, metadata, trajectory=trajectory)
    return InstanceResult(idx, parameter, results=results)
