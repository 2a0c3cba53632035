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
Result containers: trajectories, Floquet spectra, per-run results and batch results.

All arrays handed out by these containers are read-only, and the core keeps no reference to a
container after returning it.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

import numpy as np

from chronophoton.states import DensityMatrix, Ket
from chronophoton.type_utils import to_jsonable


def _frozen(array) -> np.ndarray:
    array = np.array(array)
    array.setflags(write=False)
    return array


class Trajectory:
    """An ordered, immutable sequence of ``(time, state)`` samples.

    ``states`` has shape ``(n, d)`` for kets and ``(n, d, d)`` for density matrices.
    """

    def __init__(self, times, states, is_density_matrix: bool):
        self._times = _frozen(np.asarray(times, dtype=float))
        self._states = _frozen(np.asarray(states, dtype=complex))
        self._is_density_matrix = bool(is_density_matrix)
        if self._times.shape[0] != self._states.shape[0]:
            raise ValueError("Trajectory needs one state per sample time.")

    @property
    def times(self) -> np.ndarray:
        """Sample times."""
        return self._times

    @property
    def states(self) -> np.ndarray:
        """Sampled states, stacked along the first axis."""
        return self._states

    @property
    def is_density_matrix(self) -> bool:
        """Whether the states are density matrices."""
        return self._is_density_matrix

    @property
    def dim(self) -> int:
        """Hilbert space dimension."""
        return self._states.shape[-1]

    def state(self, index: int):
        """The sample at ``index`` as a :class:`.Ket` or :class:`.DensityMatrix`."""
        if self._is_density_matrix:
            return DensityMatrix(self._states[index], validate=False)
        return Ket(self._states[index], validate=False)

    @property
    def final_state(self):
        """The last sample."""
        return self.state(-1)

    def __len__(self):
        return self._times.shape[0]

    def __getitem__(self, index):
        return self._times[index], self._states[index]

    def __iter__(self):
        return zip(self._times, self._states)


class FloquetSpectrum:
    r"""Quasi-energies and Floquet modes of a periodic generator.

    Quasi-energies are reduced into :math:`(-\hbar\omega/2, \hbar\omega/2]` with
    :math:`\omega = 2\pi/T`, and sorted ascending; ``modes[:, k]`` is the mode of
    ``quasi_energies[k]`` at the start of the period. Krylov results may hold fewer than ``d``
    pairs, and ``converged`` is ``False`` when the iteration budget ran out first.
    """

    def __init__(
        self,
        quasi_energies,
        modes,
        period: float,
        method: str,
        hbar: float = 1.0,
        converged: bool = True,
        residuals=None,
        warnings: Optional[List[str]] = None,
        propagator_residual: Optional[float] = None,
    ):
        self.quasi_energies = _frozen(np.asarray(quasi_energies, dtype=float))
        self.modes = _frozen(np.asarray(modes, dtype=complex))
        self.period = float(period)
        self.method = method
        self.hbar = float(hbar)
        self.converged = bool(converged)
        self.residuals = None if residuals is None else _frozen(residuals)
        self.warnings = list(warnings or [])
        self.propagator_residual = propagator_residual

    @property
    def drive_frequency(self) -> float:
        """Angular drive frequency :math:`2\\pi/T`."""
        return 2 * np.pi / self.period

    def num_levels(self) -> int:
        """Number of quasi-energy levels."""
        return self.quasi_energies.shape[0]

    def level_spacing(self, n: int) -> Optional[float]:
        """Spacing between levels ``n`` and ``n + 1``, or ``None`` past the last level."""
        if n + 1 < self.num_levels():
            return float(self.quasi_energies[n + 1] - self.quasi_energies[n])
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Plain python representation for serialization."""
        return to_jsonable(
            {
                "quasi_energies": self.quasi_energies,
                "modes": self.modes,
                "period": self.period,
                "method": self.method,
                "hbar": self.hbar,
                "converged": self.converged,
                "residuals": self.residuals,
                "warnings": self.warnings,
                "propagator_residual": self.propagator_residual,
            }
        )

    def __repr__(self):
        return (
            f"FloquetSpectrum(method={self.method!r}, levels={self.num_levels()}, "
            f"converged={self.converged})"
        )


@dataclass
class RunMetadata:
    """Metadata of a single run."""

    integrator: str
    dt: float
    adaptive: bool
    num_steps: int = 0
    step_sizes: Optional[np.ndarray] = None
    num_rejected: int = 0
    warnings: List[str] = field(default_factory=list)
    max_unitarity_residual: Optional[float] = None
    wall_time: Optional[float] = None
    name: Optional[str] = None
    seed: Optional[int] = None
    resumed_from: Optional[float] = None


class Results:
    """Time series of observables, an optional Floquet spectrum, and run metadata."""

    def __init__(
        self,
        times,
        observables: Dict[str, np.ndarray],
        metadata: RunMetadata,
        spectrum: Optional[FloquetSpectrum] = None,
        trajectory: Optional[Trajectory] = None,
        steady_state=None,
    ):
        self._times = _frozen(np.asarray(times, dtype=float))
        self._observables = {name: _frozen(values) for name, values in observables.items()}
        self.metadata = metadata
        self.spectrum = spectrum
        self.trajectory = trajectory
        self.steady_state = steady_state

    @property
    def times(self) -> np.ndarray:
        """Sample times shared by all observables."""
        return self._times

    @property
    def observables(self) -> Dict[str, np.ndarray]:
        """Mapping from observable name to its time series."""
        return dict(self._observables)

    def observable_names(self) -> List[str]:
        """Names of the recorded observables, in request order."""
        return list(self._observables)

    def get_observable(self, name: str) -> np.ndarray:
        """Time series of ``name``.

        Raises:
            KeyError: If ``name`` was not recorded.
        """
        try:
            return self._observables[name]
        except KeyError as err:
            raise KeyError(
                f"Observable '{name}' not recorded; available: {self.observable_names()}."
            ) from err

    def __getitem__(self, name: str) -> np.ndarray:
        return self.get_observable(name)

    @property
    def final_state(self):
        """The state at the last sample time, if the trajectory was kept."""
        if self.trajectory is None:
            return None
        return self.trajectory.final_state

    @property
    def warnings(self) -> List[str]:
        """Non-fatal warnings raised during the run."""
        return list(self.metadata.warnings)

    def summary(self) -> str:
        """Human readable summary of the run."""
        lines = [
            f"Simulation results{'' if self.metadata.name is None else ': ' + self.metadata.name}",
            f"  integrator: {self.metadata.integrator} "
            f"({'adaptive' if self.metadata.adaptive else 'fixed'}, dt={self.metadata.dt:g})",
            f"  samples: {len(self._times)}, steps: {self.metadata.num_steps}",
        ]
        for name, values in self._observables.items():
            if values.ndim == 1 and values.size:
                final = values[-1]
                final = final.real if np.isrealobj(values) or abs(np.imag(final)) < 1e-12 else final
                lines.append(f"  {name}: final = {final:.6g}")
            elif values.size:
                lines.append(f"  {name}: shape {values.shape}")
        if self.spectrum is not None:
            lines.append(
                f"  floquet ({self.spectrum.method}): {self.spectrum.num_levels()} quasi-energies,"
                f" converged={self.spectrum.converged}"
            )
        for message in self.metadata.warnings:
            lines.append(f"  warning: {message}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Plain python representation for the persistence layer."""
        metadata = asdict(self.metadata)
        steady_state = None if self.steady_state is None else np.asarray(self.steady_state)
        return to_jsonable(
            {
                "times": self._times,
                "observables": dict(self._observables),
                "metadata": metadata,
                "spectrum": None if self.spectrum is None else self.spectrum.to_dict(),
                "steady_state": steady_state,
            }
        )

    def __repr__(self):
        return f"Results(observables={self.observable_names()}, samples={len(self._times)})"


@dataclass
class InstanceResult:
    """Outcome of one batch instance: ``results`` on success, ``error`` on failure."""

    index: int
    parameter: Any = None
    results: Optional[Results] = None
    error: Optional[BaseException] = None
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        """Whether the instance produced results."""
        return self.results is not None

    @property
    def error_kind(self) -> Optional[str]:
        """Class name of the error, if any."""
        return None if self.error is None else type(self.error).__name__

    @property
    def error_time(self) -> Optional[float]:
        """Time at which the instance failed, when known."""
        return getattr(self.error, "time", None)

    @property
    def error_step(self) -> Optional[int]:
        """Step at which the instance failed, when known."""
        return getattr(self.error, "step", None)


class BatchResults:
    """Per-instance outcomes of a batch, indexed by input position."""

    def __init__(self, instances: List[InstanceResult], lane: str, cancelled: bool = False):
        self._instances = sorted(instances, key=lambda inst: inst.index)
        self.lane = lane
        self.cancelled = cancelled

    def __len__(self):
        return len(self._instances)

    def __getitem__(self, index: int) -> InstanceResult:
        return self._instances[index]

    def __iter__(self):
        return iter(self._instances)

    @property
    def results(self) -> List[Optional[Results]]:
        """Results per instance, ``None`` for failed or unfinished instances."""
        return [inst.results for inst in self._instances]

    @property
    def parameters(self) -> List[Any]:
        """Parameter value per instance."""
        return [inst.parameter for inst in self._instances]

    @property
    def failures(self) -> List[InstanceResult]:
        """Instances that raised an error."""
        return [inst for inst in self._instances if inst.error is not None]

    @property
    def num_succeeded(self) -> int:
        """Number of instances with results."""
        return sum(inst.succeeded for inst in self._instances)

    def observable_matrix(self, name: str) -> np.ndarray:
        """Stack the time series of ``name`` over all instances.

        Raises:
            ValueError: If any instance has no results.
        """
        missing = [inst.index for inst in self._instances if not inst.succeeded]
        if missing:
            raise ValueError(f"Instances {missing} have no results.")
        return np.array([inst.results.get_observable(name) for inst in self._instances])

    def summary(self) -> str:
        """Human readable summary of the batch."""
        lines = [
            f"Batch of {len(self)} instances on the {self.lane} lane: "
            f"{self.num_succeeded} succeeded, {len(self.failures)} failed"
            + (", cancelled" if self.cancelled else "")
        ]
        for inst in self.failures:
            lines.append(
                f"  [{inst.index}] {inst.error_kind} at t={inst.error_time}, "
                f"step={inst.error_step}: {inst.error}"
            )
        return "\n".join(lines)
