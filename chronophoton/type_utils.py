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

"""Utilities for type handling and conversion, and the column-stacking vectorization of
commutators and dissipators used by the Lindblad superoperator view.
"""

from typing import Union, List
import numpy as np
from scipy.sparse import csr_matrix, issparse
from scipy.sparse import kron as sparse_kron
from scipy.sparse import identity as sparse_identity

from chronophoton.arraylias import CHRONO_NUMPY as unp


def to_array(op) -> np.ndarray:
    """Convert a matrix-like object (dense array, sparse matrix, nested list, or qiskit
    ``Operator``) to a dense complex numpy array."""
    if op is None:
        return None
    if issparse(op):
        return np.asarray(op.toarray(), dtype=complex)
    return np.asarray(unp.asarray(op), dtype=complex)


def to_csr(op) -> csr_matrix:
    """Convert a matrix-like object to a complex ``csr_matrix``."""
    if issparse(op):
        return csr_matrix(op, dtype=complex)
    return csr_matrix(to_array(op))


def _per_matrix(func, A):
    """Apply ``func`` matrix by matrix to lists of sparse matrices and ``(k, n, n)`` arrays."""
    if isinstance(A, list) and len(A) > 0 and issparse(A[0]):
        return [func(mat) for mat in A]
    if not issparse(A) and np.ndim(A) == 3:
        return np.array([func(mat) for mat in np.asarray(A)])
    return None


def vec_commutator(
    A: Union[np.ndarray, csr_matrix, List[csr_matrix]]
) -> Union[np.ndarray, csr_matrix, List[csr_matrix]]:
    r"""Superoperator of :math:`X \mapsto -i[A, X]` acting on column-stacked :math:`X`.

    Column stacking turns :math:`AXB` into :math:`(B^T \otimes A)\,\mathrm{vec}(X)`, hence

    .. math::
        -i(\mathbb{1} \otimes A - A^T \otimes \mathbb{1}).

    ``A`` may be a matrix (dense or sparse), a ``(k, n, n)`` array, or a list of sparse matrices;
    the result has the same form.
    """
    stacked = _per_matrix(vec_commutator, A)
    if stacked is not None:
        return stacked

    if issparse(A):
        eye = sparse_identity(A.shape[-1], format="csr")
        left = sparse_kron(eye, A, format="csr")
        right = sparse_kron(A.T, eye, format="csr")
    else:
        A = np.asarray(A)
        eye = np.eye(A.shape[-1])
        left, right = np.kron(eye, A), np.kron(A.T, eye)
    return -1j * (left - right)


def vec_dissipator(
    L: Union[np.ndarray, csr_matrix, List[csr_matrix]]
) -> Union[np.ndarray, csr_matrix, List[csr_matrix]]:
    r"""Superoperator of the Lindblad dissipator
    :math:`X \mapsto LXL^\dagger - \frac{1}{2}\{L^\dagger L, X\}` on column-stacked :math:`X`:

    .. math::
        \bar{L} \otimes L - \frac{1}{2}\left(\mathbb{1} \otimes L^\dagger L
        + (L^\dagger L)^T \otimes \mathbb{1}\right).

    Accepts the same forms as :func:`vec_commutator`.
    """
    stacked = _per_matrix(vec_dissipator, L)
    if stacked is not None:
        return stacked

    if issparse(L):
        eye = sparse_identity(L.shape[-1], format="csr")
        number = L.conj().T @ L
        jump = sparse_kron(L.conj(), L, format="csr")
        anticommutator = sparse_kron(eye, number, format="csr") + sparse_kron(
            number.T, eye, format="csr"
        )
    else:
        L = np.asarray(L)
        eye = np.eye(L.shape[-1])
        number = L.conj().T @ L
        jump = np.kron(L.conj(), L)
        anticommutator = np.kron(eye, number) + np.kron(number.T, eye)
    return jump - 0.5 * anticommutator


def vectorize_density_matrix(rho: np.ndarray) -> np.ndarray:
    """Column-stack a density matrix (or a stack of them along the leading axis)."""
    rho = np.asarray(rho)
    if rho.ndim == 3:
        return np.array([vectorize_density_matrix(r) for r in rho])
    return rho.flatten(order="F")


def devectorize_density_matrix(vec: np.ndarray, dim: int) -> np.ndarray:
    """Inverse of :func:`vectorize_density_matrix`."""
    vec = np.asarray(vec)
    if vec.ndim == 2:
        return np.array([devectorize_density_matrix(v, dim) for v in vec])
    return vec.reshape((dim, dim), order="F")


def to_jsonable(value):
    """Convert numpy values in nested containers to plain python.

    Complex arrays and numbers become ``{"real": ..., "imag": ...}`` mappings.
    """
    if isinstance(value, np.ndarray):
        if np.iscomplexobj(value):
            return {"real": value.real.tolist(), "imag": value.imag.tolist()}
        return value.tolist()
    if isinstance(value, (np.floating, np.integer, np.bool_)):
        return value.item()
    if isinstance(value, (complex, np.complexfloating)):
        return {"real": float(np.real(value)), "imag": float(np.imag(value))}
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def from_jsonable(value):
    """Inverse of :func:`to_jsonable` for a single number or array; other values pass through."""
    if isinstance(value, dict) and set(value) == {"real", "imag"}:
        return np.asarray(value["real"]) + 1j * np.asarray(value["imag"])
    return value
