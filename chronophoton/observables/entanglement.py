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
Reduced states and entanglement measures.

Composite Hilbert spaces are ordered with subsystem 0 as the leftmost tensor factor, so a
basis index ``i`` of the full space is the row-major flattening of the subsystem indices.
"""

from typing import Optional, Sequence

import numpy as np

from chronophoton.exceptions import ConstructionError
from chronophoton.states import DensityMatrix, Ket, entropy_from_eigenvalues

_SIGMA_Y2 = np.kron(np.array([[0, -1j], [1j, 0]]), np.array([[0, -1j], [1j, 0]]))


def _as_matrix(state) -> np.ndarray:
    if isinstance(state, Ket):
        psi = state.data
        return np.outer(psi, psi.conj())
    if isinstance(state, DensityMatrix):
        return state.data
    arr = np.asarray(state)
    if arr.ndim == 1:
        return np.outer(arr, arr.conj())
    return arr


def partial_trace(state, dims: Sequence[int], keep: Sequence[int]) -> np.ndarray:
    """Reduced density matrix of the subsystems in ``keep``.

    Args:
        state: A ket or density matrix on the composite space.
        dims: Subsystem dimensions, leftmost factor first.
        keep: Indices of the subsystems to keep.

    Returns:
        np.ndarray: The reduced density matrix, with the kept subsystems in increasing order.

    Raises:
        ConstructionError: If ``dims`` does not match the state or ``keep`` is out of range.
    """
    rho = _as_matrix(state)
    dims = [int(d) for d in dims]
    if int(np.prod(dims)) != rho.shape[0]:
        raise ConstructionError(
            f"Subsystem dimensions {dims} do not multiply to the state dimension {rho.shape[0]}."
        )
    keep = sorted(set(int(k) for k in keep))
    if any(k < 0 or k >= len(dims) for k in keep):
        raise ConstructionError(f"Subsystems {keep} out of range for {len(dims)} subsystems.")

    traced = [i for i in range(len(dims)) if i not in keep]
    rho = rho.reshape(dims + dims)
    # trace from the right so that lower axis indices stay valid
    for i in reversed(traced):
        rho = np.trace(rho, axis1=i, axis2=i + rho.ndim // 2)

    kept_dim = int(np.prod([dims[k] for k in keep]))
    return rho.reshape(kept_dim, kept_dim)


def purity(state) -> float:
    r"""The purity :math:`\mathrm{Tr}(\rho^2)`."""
    if isinstance(state, Ket):
        return 1.0
    rho = _as_matrix(state)
    return float(np.real(np.sum(rho * rho.T)))


def von_neumann_entropy(state, base: float = 2) -> float:
    r"""The von Neumann entropy :math:`-\mathrm{Tr}(\rho\log\rho)` in units of ``log(base)``."""
    if isinstance(state, Ket):
        return 0.0
    rho = _as_matrix(state)
    return entropy_from_eigenvalues(np.linalg.eigvalsh(0.5 * (rho + rho.conj().T)), base=base)


def entanglement_entropy(
    state, dims: Sequence[int], keep: Optional[Sequence[int]] = None, base: float = 2
) -> float:
    """Von Neumann entropy of the reduced state of ``keep`` (default: subsystem 0)."""
    keep = (0,) if keep is None else keep
    return von_neumann_entropy(partial_trace(state, dims, keep), base=base)


def concurrence(state, dims: Sequence[int] = (2, 2)) -> float:
    r"""Wootters concurrence of a two-qubit state.

    For a density matrix this is :math:`\max(0, \lambda_1 - \lambda_2 - \lambda_3 - \lambda_4)`
    with :math:`\lambda_i` the decreasing square roots of the eigenvalues of
    :math:`\rho(\sigma_y\otimes\sigma_y)\rho^*(\sigma_y\otimes\sigma_y)`.

    Raises:
        ConstructionError: If the state is not a two-qubit state.
    """
    if tuple(int(d) for d in dims) != (2, 2):
        raise ConstructionError(f"Concurrence requires subsystem dimensions (2, 2), got {dims}.")

    if isinstance(state, Ket) or np.ndim(state) == 1:
        psi = state.data if isinstance(state, Ket) else np.asarray(state)
        if psi.shape != (4,):
            raise ConstructionError("Concurrence requires a 4 dimensional state.")
        return float(abs(psi @ _SIGMA_Y2 @ psi))

    rho = _as_matrix(state)
    if rho.shape != (4, 4):
        raise ConstructionError("Concurrence requires a 4 dimensional state.")
    rho_tilde = _SIGMA_Y2 @ rho.conj() @ _SIGMA_Y2
    eigs = np.sqrt(np.abs(np.linalg.eigvals(rho @ rho_tilde)))
    eigs = np.sort(eigs)[::-1]
    return float(max(0.0, eigs[0] - eigs[1] - eigs[2] - eigs[3]))
