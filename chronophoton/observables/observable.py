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
Named observables.
"""

import re
from typing import Callable, Optional, Sequence

import numpy as np
from scipy.sparse import issparse

from chronophoton.exceptions import ConstructionError
from chronophoton.states import DensityMatrix, Ket
from chronophoton.systems.operators import coherence, number, pauli_x, pauli_y, pauli_z, projector

from .entanglement import concurrence, entanglement_entropy, purity, von_neumann_entropy
from .expectation import expectation_value, expectation_values

_POPULATION = re.compile(r"^population_(\d+)$")
_COHERENCE = re.compile(r"^coherence_(\d+)_(\d+)$")

BUILTIN_OBSERVABLES = (
    "number",
    "population",
    "population_<k>",
    "coherence_<i>_<j>",
    "sigma_x",
    "sigma_y",
    "sigma_z",
    "purity",
    "entropy",
    "entanglement_entropy",
    "concurrence",
)


class Observable:
    """A named quantity evaluated on states.

    Either an ``operator``, whose expectation value is taken, or a ``function`` of a
    :class:`.Ket` or :class:`.DensityMatrix` returning a scalar or an array. Expectation values of
    Hermitian operators are returned as real numbers.
    """

    def __init__(
        self, name: str, operator=None, function: Optional[Callable] = None, external: bool = False
    ):
        if (operator is None) == (function is None):
            raise ConstructionError(
                f"Observable '{name}' needs exactly one of an operator or a function."
            )
        self.name = name
        self.external = external
        self._function = function
        self._operator = None
        self._hermitian = False
        if operator is not None:
            self._operator = operator if issparse(operator) else np.asarray(operator, dtype=complex)
            if self._operator.ndim != 2 or self._operator.shape[0] != self._operator.shape[1]:
                raise ConstructionError(
                    f"Observable '{name}' operator must be a square matrix, "
                    f"got shape {self._operator.shape}."
                )
            dense = self._operator.toarray() if issparse(self._operator) else self._operator
            self._hermitian = bool(np.allclose(dense, dense.conj().T))

    @property
    def operator(self):
        """The operator, or ``None`` for function observables."""
        return self._operator

    @property
    def is_hermitian(self) -> bool:
        """Whether the values are real expectation values of a Hermitian operator."""
        return self._hermitian

    def __call__(self, state):
        if self._operator is not None:
            value = expectation_value(self._operator, state)
            return value.real if self._hermitian else value
        return self._function(state)

    def series(self, states: np.ndarray, is_density_matrix: bool) -> np.ndarray:
        """Values over a stack of kets ``(n, d)`` or density matrices ``(n, d, d)``."""
        if self._operator is not None:
            values = expectation_values(self._operator, states, is_density_matrix)
            return values.real if self._hermitian else values
        wrap = DensityMatrix if is_density_matrix else Ket
        return np.array([self._function(wrap(s, validate=False)) for s in states])

    def __repr__(self):
        kind = "operator" if self._operator is not None else "function"
        return f"Observable({self.name!r}, {kind})"


def _populations(state) -> np.ndarray:
    if isinstance(state, Ket):
        return np.abs(state.data) ** 2
    return np.real(np.diag(state.data)).copy()


def builtin_observable(
    name: str, dim: int, subsystem_dims: Optional[Sequence[int]] = None
) -> Observable:
    """Construct a built-in observable by name.

    Args:
        name: One of :data:`BUILTIN_OBSERVABLES`, with indices filled in.
        dim: Hilbert space dimension.
        subsystem_dims: Tensor product structure, required by entanglement measures.

    Raises:
        ConstructionError: For unknown names, indices out of range, or a missing or incompatible
            tensor product structure.
    """
    if name == "number":
        return Observable(name, operator=number(dim))
    if name == "population":
        return Observable(name, function=_populations)
    if name in ("sigma_x", "sigma_y", "sigma_z"):
        if dim != 2:
            raise ConstructionError(f"Observable '{name}' requires dimension 2, got {dim}.")
        return Observable(name, operator={"x": pauli_x, "y": pauli_y, "z": pauli_z}[name[-1]]())
    if name == "purity":
        return Observable(name, function=purity)
    if name == "entropy":
        return Observable(name, function=von_neumann_entropy)

    match = _POPULATION.match(name)
    if match:
        return Observable(name, operator=projector(dim, int(match.group(1))))
    match = _COHERENCE.match(name)
    if match:
        return Observable(name, operator=coherence(dim, int(match.group(1)), int(match.group(2))))

    if name in ("entanglement_entropy", "concurrence"):
        if subsystem_dims is None:
            raise ConstructionError(f"Observable '{name}' requires subsystem dimensions.")
        dims = tuple(int(d) for d in subsystem_dims)
        if int(np.prod(dims)) != dim:
            raise ConstructionError(
                f"Subsystem dimensions {dims} do not multiply to the dimension {dim}."
            )
        if name == "concurrence":
            if dims != (2, 2):
                raise ConstructionError(
                    f"Concurrence requires subsystem dimensions (2, 2), got {dims}."
                )
            return Observable(name, function=lambda state: concurrence(state, dims))
        return Observable(name, function=lambda state: entanglement_entropy(state, dims))

    raise ConstructionError(
        f"Unknown observable '{name}'. Built-in observables: {', '.join(BUILTIN_OBSERVABLES)}."
    )


def resolve_observable(
    name: str, dim: int, subsystem_dims: Optional[Sequence[int]] = None, registry=None
) -> Observable:
    """Resolve ``name`` against ``registry`` first, then the built-in observables."""
    if registry is not None and registry.has_observable(name):
        return registry.build_observable(name, dim, subsystem_dims)
    return builtin_observable(name, dim, subsystem_dims)
