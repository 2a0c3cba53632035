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
Quantum states: normalized kets and density matrices with explicit validity checks.
"""

from typing import Optional, Union

import numpy as np

from qiskit.quantum_info import DensityMatrix as QiskitDensityMatrix
from qiskit.quantum_info import Statevector

from chronophoton.exceptions import ConstructionError

NORM_TOL = 1e-10
EIGENVALUE_TOL = 1e-12


class Ket:
    r"""A normalized pure state :math:`|\psi\rangle` of dimension :math:`d`."""

    def __init__(self, data, validate: bool = True, atol: float = NORM_TOL):
        """Initialize.

        Args:
            data: Length ``d`` vector, or a ``qiskit.quantum_info.Statevector``.
            validate: Whether to check the normalization.
            atol: Tolerance of the normalization check.

        Raises:
            ConstructionError: If the data is not a non-empty vector, or not normalized.
        """
        if isinstance(data, Statevector):
            data = data.data
        data = np.array(data, dtype=complex)
        if data.ndim != 1 or data.shape[0] == 0:
            raise ConstructionError(f"A ket must be a non-empty vector, got shape {data.shape}.")
        if validate:
            norm = np.linalg.norm(data)
            if abs(norm - 1.0) > atol:
                raise ConstructionError(f"Ket is not normalized: norm {norm:.12f}.")
        self._data = data

    @classmethod
    def basis(cls, dim: int, index: int = 0) -> "Ket":
        """The basis state ``|index>``."""
        _check_dim(dim)
        if not 0 <= index < dim:
            raise ConstructionError(f"Basis index {index} out of range for dimension {dim}.")
        data = np.zeros(dim, dtype=complex)
        data[index] = 1.0
        return cls(data)

    @classmethod
    def ground(cls, dim: int) -> "Ket":
        """The state ``|0>``."""
        return cls.basis(dim, 0)

    @classmethod
    def random(cls, dim: int, seed: Optional[int] = None) -> "Ket":
        """A Haar-random ket, reproducible for a fixed ``seed``."""
        _check_dim(dim)
        rng = np.random.default_rng(seed)
        data = rng.normal(size=dim) + 1j * rng.normal(size=dim)
        return cls(data / np.linalg.norm(data))

    @property
    def data(self) -> np.ndarray:
        """The state vector."""
        return self._data

    @property
    def dim(self) -> int:
        """The Hilbert space dimension."""
        return self._data.shape[0]

    @property
    def norm(self) -> float:
        """The 2-norm of the state vector."""
        return float(np.linalg.norm(self._data))

    def purity(self) -> float:
        """Purity of a ket, always 1."""
        return 1.0

    def von_neumann_entropy(self, base: float = 2) -> float:
        """Entropy of a pure state, always 0."""
        return 0.0

    def to_density_matrix(self) -> "DensityMatrix":
        r"""The projector :math:`|\psi\rangle\langle\psi|`."""
        return DensityMatrix(np.outer(self._data, self._data.conj()), validate=False)

    def to_qiskit(self) -> Statevector:
        """Convert to ``qiskit.quantum_info.Statevector``."""
        return Statevector(self._data)

    def __array__(self, dtype=None, copy=None):
        return np.asarray(self._data, dtype=dtype)

    def __repr__(self):
        return f"Ket(dim={self.dim})"


class DensityMatrix:
    r"""A density matrix :math:`\rho`: Hermitian, unit trace and positive semi-definite."""

    def __init__(
        self,
        data,
        validate: bool = True,
        atol: float = NORM_TOL,
        eigenvalue_tol: float = EIGENVALUE_TOL,
    ):
        """Initialize.

        Args:
            data: ``(d, d)`` matrix, or a ``qiskit.quantum_info.DensityMatrix``.
            validate: Whether to check Hermiticity, trace and positivity.
            atol: Tolerance for Hermiticity and trace.
            eigenvalue_tol: Most negative eigenvalue allowed.

        Raises:
            ConstructionError: If the data is not a valid density matrix.
        """
        if isinstance(data, QiskitDensityMatrix):
            data = data.data
        data = np.array(data, dtype=complex)
        if data.ndim != 2 or data.shape[0] != data.shape[1] or data.shape[0] == 0:
            raise ConstructionError(
                f"A density matrix must be a non-empty square matrix, got shape {data.shape}."
            )
        self._data = data
        if validate:
            residual = np.linalg.norm(data - data.conj().T)
            if residual > atol:
                raise ConstructionError(
                    f"Density matrix is not Hermitian: residual {residual:.3e}."
                )
            trace = np.trace(data).real
            if abs(trace - 1.0) > atol:
                raise ConstructionError(f"Density matrix trace is {trace:.12f}, expected 1.")
            min_eig = self.min_eigenvalue()
            if min_eig < -eigenvalue_tol:
                raise ConstructionError(
                    f"Density matrix is not positive semi-definite: eigenvalue {min_eig:.3e}."
                )

    @classmethod
    def basis(cls, dim: int, index: int = 0) -> "DensityMatrix":
        """The projector onto ``|index>``."""
        return Ket.basis(dim, index).to_density_matrix()

    @classmethod
    def ground(cls, dim: int) -> "DensityMatrix":
        """The projector onto ``|0>``."""
        return cls.basis(dim, 0)

    @classmethod
    def maximally_mixed(cls, dim: int) -> "DensityMatrix":
        """The state :math:`I/d`."""
        _check_dim(dim)
        return cls(np.eye(dim, dtype=complex) / dim)

    @classmethod
    def random(cls, dim: int, seed: Optional[int] = None) -> "DensityMatrix":
        r"""A random mixed state :math:`GG^\dagger/\mathrm{Tr}(GG^\dagger)` from a Ginibre
        matrix."""
        _check_dim(dim)
        rng = np.random.default_rng(seed)
        ginibre = rng.normal(size=(dim, dim)) + 1j * rng.normal(size=(dim, dim))
        rho = ginibre @ ginibre.conj().T
        rho = 0.5 * (rho + rho.conj().T)
        return cls(rho / np.trace(rho).real)

    @property
    def data(self) -> np.ndarray:
        """The matrix."""
        return self._data

    @property
    def dim(self) -> int:
        """The Hilbert space dimension."""
        return self._data.shape[0]

    def trace(self) -> float:
        """Real part of the trace."""
        return float(np.trace(self._data).real)

    def eigenvalues(self) -> np.ndarray:
        """Eigenvalues in ascending order."""
        return np.linalg.eigvalsh(0.5 * (self._data + self._data.conj().T))

    def min_eigenvalue(self) -> float:
        """The smallest eigenvalue."""
        return float(self.eigenvalues()[0])

    def purity(self) -> float:
        r""":math:`\mathrm{Tr}(\rho^2)`."""
        return float(np.real(np.vdot(self._data, self._data)))

    def von_neumann_entropy(self, base: float = 2) -> float:
        r""":math:`-\mathrm{Tr}(\rho\log\rho)` in the given logarithm ``base``."""
        return entropy_from_eigenvalues(self.eigenvalues(), base=base)

    def to_density_matrix(self) -> "DensityMatrix":
        """Return self."""
        return self

    def to_qiskit(self) -> QiskitDensityMatrix:
        """Convert to ``qiskit.quantum_info.DensityMatrix``."""
        return QiskitDensityMatrix(self._data)

    def __array__(self, dtype=None, copy=None):
        return np.asarray(self._data, dtype=dtype)

    def __repr__(self):
        return f"DensityMatrix(dim={self.dim})"


State = Union[Ket, DensityMatrix]


def entropy_from_eigenvalues(eigenvalues, base: float = 2) -> float:
    """Shannon entropy of a spectrum, ignoring eigenvalues below the positivity tolerance."""
    eigenvalues = np.asarray(eigenvalues, dtype=float)
    eigenvalues = eigenvalues[eigenvalues > EIGENVALUE_TOL]
    if eigenvalues.size == 0:
        return 0.0
    return float(-np.sum(eigenvalues * np.log(eigenvalues)) / np.log(base))


def as_state(obj, dim: Optional[int] = None) -> State:
    """Coerce ``obj`` to a :class:`Ket` or :class:`DensityMatrix`.

    Accepts the package's own states, ``qiskit.quantum_info`` states, vectors and square matrices.

    Raises:
        ConstructionError: If the state is invalid or does not match ``dim``.
    """
    if isinstance(obj, (Ket, DensityMatrix)):
        state = obj
    elif isinstance(obj, Statevector):
        state = Ket(obj)
    elif isinstance(obj, QiskitDensityMatrix):
        state = DensityMatrix(obj)
    else:
        arr = np.asarray(obj)
        if arr.ndim == 1:
            state = Ket(arr)
        elif arr.ndim == 2:
            state = DensityMatrix(arr)
        else:
            raise ConstructionError(f"Cannot interpret array of shape {arr.shape} as a state.")
    if dim is not None and state.dim != dim:
        raise ConstructionError(f"State dimension {state.dim} does not match dimension {dim}.")
    return state


def _check_dim(dim):
    if not isinstance(dim, (int, np.integer)) or dim <= 0:
        raise ConstructionError(f"Dimension must be a positive integer, got {dim}.")
