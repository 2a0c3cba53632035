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

"""
Single simulation runs.
"""

import logging
import time
from typing import Callable, Optional

import numpy as np

from chronophoton.exceptions import CancellationSignal, ConstructionError
from chronophoton.models import LindbladModel
from chronophoton.registry import DEFAULT_REGISTRY, Registry
from chronophoton.results import Results, RunMetadata, Trajectory
from chronophoton.solvers import LindbladSolver, steady_state
from chronophoton.states import DensityMatrix
from chronophoton.type_utils import devectorize_density_matrix

from .builder import (
    build_floquet_solver,
    build_initial_state,
    build_integrator,
    build_model,
    build_observables,
)
from .checkpoint import Checkpoint
from .descriptor import SimulationDescriptor

logger = logging.getLogger(__name__)


def sample_times(duration: float, interval: float, start: float = 0.0) -> np.ndarray:
    """Sample times ``0, interval, 2 * interval, ...`` up to and including ``duration``.

    Times before ``start`` are dropped, and ``start`` itself is always included.
    """
    tol = 1e-12 * max(1.0, abs(duration))
    num = int(np.floor(duration / interval + 1e-9))
    times = interval * np.arange(num + 1)
    if duration - times[-1] > tol:
        times = np.append(times, duration)
    times = times[times > start + tol]
    return np.append(start, times)


class _SampleCheckpoints:
    """Step callback handing a :class:`.Checkpoint` to ``hook`` at every sample time reached."""

    def __init__(self, times, descriptor, hook, dim, vectorized, step_offset):
        self.times = times
        self.descriptor = descriptor
        self.hook = hook
        self.dim = dim
        self.vectorized = vectorized
        self.step_offset = step_offset
        self._next = 1

    def __call__(self, t, step, y_prev, y_next, h):
        if self.hook is None:
            return y_next
        tol = 1e-9 * max(1.0, abs(t))
        while self._next < len(self.times) and t >= self.times[self._next] - tol:
            if abs(t - self.times[self._next]) <= tol:
                state = devectorize_density_matrix(y_next, self.dim) if self.vectorized else y_next
                self.hook(
                    Checkpoint(
                        time=float(self.times[self._next]),
                        step=self.step_offset + step,
                        state=state,
                        descriptor=self.descriptor,
                    )
                )
            self._next += 1
        return y_next


def run_simulation(
    descriptor: SimulationDescriptor,
    registry: Optional[Registry] = None,
    cancel_token=None,
    checkpoint: Optional[Checkpoint] = None,
    on_checkpoint: Optional[Callable[[Checkpoint], None]] = None,
) -> Results:
    """Run the simulation described by ``descriptor``.

    The state is evolved from ``t = 0`` (or the checkpoint time) to ``descriptor.duration`` and
    sampled every ``sample_interval``, both ends included. The requested observables are then
    evaluated on the samples, followed by the optional Floquet analysis and steady state.

    Args:
        descriptor: The resolved simulation descriptor.
        registry: Name table for generators and observables. Defaults to the built-in registry.
        cancel_token: A :class:`.CancellationToken` checked between steps.
        checkpoint: Resume from this checkpoint instead of the initial state.
        on_checkpoint: Called with a :class:`.Checkpoint` at every sample time reached.

    Returns:
        Results: The observable time series, spectrum and metadata. The caller owns it.

    Raises:
        ConstructionError: If the descriptor is invalid. Raised before any step is taken.
        IntegrationError: If the trajectory fails.
        StabilityViolation: If a stability residual exceeds its fatal threshold.
        CancellationSignal: If cancelled. ``partial_results`` holds a :class:`.Results` of the
            samples reached.
    """
    wall_start = time.perf_counter()
    descriptor.validate()
    registry = registry or DEFAULT_REGISTRY
    dim = descriptor.dimension

    model = build_model(descriptor, registry)
    integrator = build_integrator(descriptor.integrator)
    observables = build_observables(descriptor, registry)
    floquet_solver = build_floquet_solver(descriptor, model)
    open_system = isinstance(model, LindbladModel)
    if descriptor.steady_state and not open_system:
        raise ConstructionError("A steady state requires jump operators.")

    if checkpoint is None:
        state = build_initial_state(descriptor)
        t0, step_offset = 0.0, 0
    else:
        state = checkpoint.to_state()
        t0, step_offset = float(checkpoint.time), int(checkpoint.step)
        if state.dim != dim:
            raise ConstructionError(
                f"Checkpoint state dimension {state.dim} does not match dimension {dim}."
            )
        if not 0 <= t0 < descriptor.duration:
            raise ConstructionError(
                f"Checkpoint time {t0} is outside the run [0, {descriptor.duration})."
            )
        if open_system:
            state = state.to_density_matrix()
    is_dm = isinstance(state, DensityMatrix)

    solver = None
    if is_dm:
        # closed systems started from a mixed state evolve under the coherent Liouvillian
        solver = LindbladSolver(model if open_system else LindbladModel(model), integrator)

    times = sample_times(descriptor.duration, descriptor.observables.sample_interval, start=t0)
    t_span = [t0, descriptor.duration]
    hook = _SampleCheckpoints(times, descriptor, on_checkpoint, dim, is_dm, step_offset)

    logger.info(
        "Starting run%s: dim=%d, %s, %d samples over [%g, %g]",
        "" if descriptor.name is None else f" '{descriptor.name}'",
        dim,
        integrator,
        len(times),
        t0,
        descriptor.duration,
    )

    def assemble(t, states, ode, spectrum=None, steady=None):
        metadata = RunMetadata(
            integrator=integrator.method,
            dt=integrator.dt,
            adaptive=integrator.adaptive,
            num_steps=step_offset + int(ode.get("num_steps", 0)),
            step_sizes=ode.get("step_sizes"),
            num_rejected=int(ode.get("num_rejected", 0)),
            warnings=list(ode.get("warnings", [])),
            max_unitarity_residual=None if is_dm else ode.get("max_unitarity_residual"),
            wall_time=time.perf_counter() - wall_start,
            name=descriptor.name,
            seed=descriptor.seed,
            resumed_from=None if checkpoint is None else t0,
        )
        if spectrum is not None:
            metadata.warnings.extend(spectrum.warnings)
        values = {obs.name: obs.series(states, is_dm) for obs in observables}
        trajectory = Trajectory(t, states, is_dm) if descriptor.keep_trajectory else None
        return Results(
            t, values, metadata, spectrum=spectrum, trajectory=trajectory, steady_state=steady
        )

    try:
        if solver is not None:
            ode = solver.evolve(
                state, t_span, t_eval=times, cancel_token=cancel_token, step_callback=hook
            )
        else:
            ode = integrator.integrate(
                model,
                state.data,
                t_span,
                t_eval=times,
                cancel_token=cancel_token,
                step_callback=hook,
            )
    except CancellationSignal as signal:
        partial = signal.partial_results
        states = partial.y
        if is_dm:
            states = devectorize_density_matrix(states, dim).reshape(-1, dim, dim)
        results = assemble(partial.t, states, partial)
        logger.info("Run cancelled at t=%g after %d samples", signal.time, len(partial.t))
        raise CancellationSignal(
            f"Run cancelled at t={signal.time:.6g}.",
            time=signal.time,
            step=signal.step,
            partial_results=results,
        ) from signal

    spectrum = None
    if floquet_solver is not None:
        try:
            spectrum = floquet_solver.solve(cancel_token=cancel_token)
        except CancellationSignal as signal:
            results = assemble(ode.t, ode.y, ode)
            raise CancellationSignal(
                "Run cancelled during Floquet analysis.",
                time=signal.time,
                step=signal.step,
                partial_results=results,
            ) from signal

    steady = steady_state(model) if descriptor.steady_state else None

    results = assemble(ode.t, ode.y, ode, spectrum=spectrum, steady=steady)
    logger.info(
        "Finished run in %.3fs: %d steps, %d warnings",
        results.metadata.wall_time,
        results.metadata.num_steps,
        len(results.metadata.warnings),
    )
    return results
