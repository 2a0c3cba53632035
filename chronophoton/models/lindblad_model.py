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
Lindblad models module.
"""

from typing import List, Optional, Tuple, Union

import numpy as np
from scipy.sparse import csr_matrix, issparse

from chronophoton.arraylias.alias import ArrayLike
from chronophoton.exceptions import ConstructionError
from chronophoton.type_utils import to_array, to_csr, vec_commutator, vec_dissipator
from .generator_model import BaseGeneratorModel, HamiltonianModel
from .operator_collection import OperatorCollection, ScipySparseOperatorCollection


def thermal_occupation(frequency: float, temperature: float) -> float:
    r"""Bose-Einstein occupation :math:`n_{th} = 1/(e^{\omega/T} - 1)`, with
    :math:`\hbar = k_B = 1`."""
    if temperature == 0.0:
        return 0.0
    return 1.0 / np.expm1(frequency / temperature)


class JumpOperator:
    r"""A static jump operator :math:`L` with a non-negative rate :math:`\gamma`.

    If a ``temperature`` is given the operator models coupling to a thermal bath at transition
    frequency ``frequency``: it contributes relaxation :math:`L` at rate :math:`\gamma(n_{th}+1)`
    and excitation :math:`L^\dagger` at rate :math:`\gamma n_{th}`.
    """

    def __init__(
        self,
        operator: ArrayLike,
        rate: float,
        temperature: Optional[float] = None,
        frequency: Optional[float] = None,
        name: Optional[str] = None,
    ):
        if rate < 0 or not np.isfinite(rate):
            raise ConstructionError(f"Jump operator rate must be non-negative, got {rate}.")
        if temperature is not None:
            if temperature < 0:
                raise ConstructionError(
                    f"Bath temperature must be non-negative, got {temperature}."
                )
            if frequency is None or frequency <= 0:
                raise ConstructionError(
                    "A thermal jump operator requires a positive transition frequency."
                )

        self._operator = operator if issparse(operator) else to_array(operator)
        if self._operator.ndim != 2 or self._operator.shape[0] != self._operator.shape[1]:
            raise ConstructionError(
                f"Jump operators must be square matrices, got shape {self._operator.shape}."
            )
        self.rate = float(rate)
        self.temperature = temperature
        self.frequency = frequency
        self.name = name

    @property
    def operator(self):
        """The jump operator matrix."""
        return self._operator

    @property
    def dim(self) -> int:
        """The matrix dimension."""
        return self._operator.shape[0]

    def rate_pairs(self) -> List[Tuple[ArrayLike, float]]:
        """The ``(operator, rate)`` dissipators this jump operator contributes."""
        if self.temperature is None:
            return [(self._operator, self.rate)]
        n_th = thermal_occupation(self.frequency, self.temperature)
        pairs = [(self._operator, self.rate * (n_th + 1))]
        if n_th > 0:
            pairs.append((self._operator.conj().T, self.rate * n_th))
        return pairs

    def __repr__(self):
        label = self.name or f"{self.dim}x{self.dim}"
        return f"JumpOperator({label}, rate={self.rate}, temperature={self.temperature})"


class LindbladModel(BaseGeneratorModel):
    r"""A Lindblad master equation

    .. math::
        \dot{\rho}(t) = -i[H(t), \rho(t)]
            + \sum_k \gamma_k\left(L_k\rho L_k^\dagger
            - \frac{1}{2}\{L_k^\dagger L_k, \rho\}\right).

    The model is evaluated in the vectorized (superoperator) view using column stacking, so that
    :meth:`evaluate` returns the :math:`d^2\times d^2` Liouvillian and the same vector integrators
    used for kets apply unchanged. The dissipator part is static and assembled once.
    """

    def __init__(
        self,
        hamiltonian: HamiltonianModel,
        jump_operators: Optional[List[JumpOperator]] = None,
        sparse: Optional[bool] = None,
    ):
        """Initialize.

        Args:
            hamiltonian: The coherent part.
            jump_operators: Dissipation channels.
            sparse: Whether to store the Liouvillian as a ``csr_matrix``. Defaults to the array
                library of ``hamiltonian``.

        Raises:
            ConstructionError: On dimension mismatch between the Hamiltonian and a jump operator.
        """
        if sparse is None:
            sparse = hamiltonian.array_library == "scipy_sparse"
        super().__init__(array_library="scipy_sparse" if sparse else "numpy")
        self._sparse = bool(sparse)
        self._hamiltonian = hamiltonian
        self._jump_operators = list(jump_operators or [])

        for jump in self._jump_operators:
            if jump.dim != hamiltonian.dim:
                raise ConstructionError(
                    f"Jump operator dimension {jump.dim} does not match Hamiltonian dimension "
                    f"{hamiltonian.dim}."
                )

        self._dissipators = [
            (op, rate)
            for jump in self._jump_operators
            for op, rate in jump.rate_pairs()
            if rate > 0
        ]

        convert = to_csr if self._sparse else to_array
        static = None
        if hamiltonian.static_operator is not None:
            static = vec_commutator(convert(hamiltonian.static_operator))
        for op, rate in self._dissipators:
            term = rate * vec_dissipator(convert(op))
            static = term if static is None else static + term
        drive = None
        if hamiltonian.operators is not None:
            drive = [vec_commutator(convert(op)) for op in hamiltonian.operators]

        if self._sparse:
            self._superoperators = ScipySparseOperatorCollection(
                static_operator=static, operators=drive
            )
        else:
            self._superoperators = OperatorCollection(
                static_operator=static, operators=None if drive is None else np.array(drive)
            )

        # dense pieces for matrix-form right hand sides
        self._LdagL_sum = np.zeros((self.dim, self.dim), dtype=complex)
        self._dense_dissipators = []
        for op, rate in self._dissipators:
            dense_op = to_array(op)
            self._dense_dissipators.append((dense_op, rate))
            self._LdagL_sum += rate * dense_op.conj().T @ dense_op

    @property
    def dim(self) -> int:
        """Hilbert space dimension :math:`d`."""
        return self._hamiltonian.dim

    @property
    def vectorized_dim(self) -> int:
        """Dimension :math:`d^2` of the superoperator space."""
        return self.dim**2

    @property
    def hamiltonian(self) -> HamiltonianModel:
        """The coherent part."""
        return self._hamiltonian

    @property
    def jump_operators(self) -> List[JumpOperator]:
        """The dissipation channels, as given."""
        return self._jump_operators

    @property
    def dissipators(self) -> List[Tuple[ArrayLike, float]]:
        """Effective ``(operator, rate)`` pairs after thermal expansion."""
        return self._dissipators

    @property
    def static_superoperator(self):
        """Vectorized static part: coherent static term plus all dissipators."""
        return self._superoperators.static_operator

    @property
    def drive_superoperators(self):
        """Vectorized commutators of the drive operators, one per signal."""
        return self._superoperators.operators

    @property
    def period(self) -> Union[float, None]:
        return self._hamiltonian.period

    @property
    def is_time_independent(self) -> bool:
        return self._hamiltonian.is_time_independent

    def evaluate(self, time: float, out: Optional[np.ndarray] = None) -> ArrayLike:
        """Evaluate the vectorized Liouvillian at ``time``."""
        return self._superoperators.evaluate(self._hamiltonian.coefficients(time), out=out)

    def liouvillian(self, time: float = 0.0, sparse: bool = False) -> ArrayLike:
        """The Liouvillian at ``time`` as a dense array, or as a ``csr_matrix`` if ``sparse``."""
        mat = self.evaluate(time)
        if sparse:
            return csr_matrix(mat)
        return mat.toarray() if issparse(mat) else np.asarray(mat)

    def evaluate_rhs(self, time: float, y: ArrayLike) -> ArrayLike:
        r"""Evaluate :math:`\dot{\rho}`.

        ``y`` may be a column-stacked vector of length :math:`d^2`, in which case the Liouvillian
        is applied, or a :math:`d\times d` matrix, in which case the master equation is evaluated
        in matrix form.
        """
        y = np.asarray(y) if not issparse(y) else y
        if y.ndim == 1:
            return self.evaluate(time) @ y

        H = self._hamiltonian.evaluate(time)
        H = H.toarray() if issparse(H) else np.asarray(H)
        out = -1j * (H @ y - y @ H)
        for op, rate in self._dense_dissipators:
            out += rate * (op @ y @ op.conj().T)
        out -= 0.5 * (self._LdagL_sum @ y + y @ self._LdagL_sum)
        return out
