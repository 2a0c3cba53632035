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
Standard operators on a single Hilbert space of dimension ``dim``.
"""

import numpy as np

from chronophoton.exceptions import ConstructionError


def _check(dim):
    if not isinstance(dim, (int, np.integer)) or dim <= 0:
        raise ConstructionError(f"Dimension must be a positive integer, got {dim}.")


def annihilation(dim: int) -> np.ndarray:
    r"""Annihilation operator.

    Defined as the matrix with non-zero entries :math:`1, \sqrt{2}, ..., \sqrt{n - 1}` in the
    first upper off-diagonal.
    """
    _check(dim)
    return np.diag(np.sqrt(np.arange(1, dim, dtype=complex)), 1)


def creation(dim: int) -> np.ndarray:
    """Creation operator, the adjoint of :func:`annihilation`."""
    _check(dim)
    return np.diag(np.sqrt(np.arange(1, dim, dtype=complex)), -1)


def number(dim: int) -> np.ndarray:
    """The number operator ``diag(0, ..., dim - 1)``."""
    _check(dim)
    return np.diag(np.arange(dim, dtype=complex))


def identity(dim: int) -> np.ndarray:
    """The identity operator."""
    _check(dim)
    return np.eye(dim, dtype=complex)


def pauli_x(dim: int = 2) -> np.ndarray:
    """The Pauli :math:`X` operator, generalized to ``a + adag`` for higher dimensions."""
    return annihilation(dim) + creation(dim)


def pauli_y(dim: int = 2) -> np.ndarray:
    """The Pauli :math:`Y` operator, generalized to ``-1j * (a - adag)`` for higher dimensions."""
    return -1j * (annihilation(dim) - creation(dim))


def pauli_z(dim: int = 2) -> np.ndarray:
    """The Pauli :math:`Z` operator, generalized to ``I - 2 * N`` for higher dimensions."""
    return identity(dim) - 2 * number(dim)


def projector(dim: int, level: int) -> np.ndarray:
    """Projector onto ``|level>``."""
    _check(dim)
    if not 0 <= level < dim:
        raise ConstructionError(f"Level {level} out of bounds for dimension {dim}.")
    out = np.zeros((dim, dim), dtype=complex)
    out[level, level] = 1.0
    return out


def coherence(dim: int, i: int, j: int) -> np.ndarray:
    r"""The operator :math:`|j\rangle\langle i|`, whose expectation value is :math:`\rho_{ij}`."""
    _check(dim)
    if not (0 <= i < dim and 0 <= j < dim):
        raise ConstructionError(f"Coherence indices ({i}, {j}) out of bounds for dimension {dim}.")
    out = np.zeros((dim, dim), dtype=complex)
    out[j, i] = 1.0
    return out


# named static operators accepted wherever an operator may be given by name
NAMED_OPERATORS = {
    "annihilation": annihilation,
    "lowering": annihilation,
    "sigma_minus": annihilation,
    "creation": creation,
    "raising": creation,
    "sigma_plus": creation,
    "number": number,
    "dephasing": number,
    "identity": identity,
    "sigma_x": pauli_x,
    "sigma_y": pauli_y,
    "sigma_z": pauli_z,
}


def named_operator(name: str, dim: int) -> np.ndarray:
    """Construct one of :data:`NAMED_OPERATORS` by name.

    Raises:
        ConstructionError: If the name is unknown.
    """
    try:
        return NAMED_OPERATORS[name.lower()](dim)
    except KeyError as err:
        raise ConstructionError(
            f"Unknown operator '{name}'. Available: {sorted(NAMED_OPERATORS)}."
        ) from err
