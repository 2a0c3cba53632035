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
Module containing Arnoldi iteration for the eigenpairs of implicitly defined operators.
"""

from typing import Callable, Tuple

import numpy as np


def arnoldi_basis(
    apply_A: Callable, y0: np.ndarray, k_dim: int
) -> Tuple[np.ndarray, np.ndarray, float]:
    """Reduces an operator to upper Hessenberg form in a krylov subspace of dimension k_dim
    using the Arnoldi algorithm.

    The operator is only accessed through its action ``apply_A(v)``, so it never has to be stored.
    Orthogonalization is modified Gram-Schmidt with one reorthogonalization pass.

    Args:
        apply_A: Action of the operator on a vector.
        y0: Vector to initialise the Arnoldi iteration.
        k_dim: Dimension of the krylov subspace.

    Returns:
        hessenberg : ``(k, k)`` Hessenberg projection of the operator, ``k <= k_dim``.
        q_basis : ``(n, k)`` orthonormal basis of the krylov subspace.
        beta : Norm of the residual vector, zero when an invariant subspace was found.
    """
    y0 = np.asarray(y0, dtype=complex)
    array_dim = y0.shape[0]
    k_dim = min(k_dim, array_dim)

    q_basis = np.zeros((array_dim, k_dim + 1), dtype=complex)
    hessenberg = np.zeros((k_dim + 1, k_dim), dtype=complex)

    q_basis[:, 0] = y0 / np.linalg.norm(y0)
    error = np.finfo(np.float64).eps * array_dim

    for j in range(k_dim):
        projection = np.asarray(apply_A(q_basis[:, j]), dtype=complex)
        scale = np.linalg.norm(projection)

        for i in range(j + 1):
            hessenberg[i, j] = np.vdot(q_basis[:, i], projection)
            projection = projection - hessenberg[i, j] * q_basis[:, i]

        # additional pass to increase accuracy
        for i in range(j + 1):
            delta = np.vdot(q_basis[:, i], projection)
            hessenberg[i, j] += delta
            projection = projection - delta * q_basis[:, i]

        beta = np.linalg.norm(projection)
        hessenberg[j + 1, j] = beta
        if beta <= error * max(scale, 1.0):
            return hessenberg[: j + 1, : j + 1], q_basis[:, : j + 1], 0.0
        q_basis[:, j + 1] = projection / beta

    return hessenberg[:k_dim, :k_dim], q_basis[:, :k_dim], float(hessenberg[k_dim, k_dim - 1].real)


def arnoldi_eig(
    apply_A: Callable, y0: np.ndarray, k_dim: int
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Ritz eigenpairs of an operator from a krylov subspace of dimension k_dim.

    Args:
        apply_A: Action of the operator on a vector.
        y0: Vector to initialise the Arnoldi iteration.
        k_dim: Dimension of the krylov subspace.

    Returns:
        ritz_values : Eigenvalue estimates.
        ritz_vectors : ``(n, k)`` array of normalized eigenvector estimates.
        residuals : Estimates of ``|A x - theta x|`` for each pair.
    """
    hessenberg, q_basis, beta = arnoldi_basis(apply_A, y0, k_dim)
    ritz_values, eigen_vectors_h = np.linalg.eig(hessenberg)
    ritz_vectors = q_basis @ eigen_vectors_h
    ritz_vectors = ritz_vectors / np.linalg.norm(ritz_vectors, axis=0)
    residuals = beta * np.abs(eigen_vectors_h[-1, :])
    return ritz_values, ritz_vectors, residuals
