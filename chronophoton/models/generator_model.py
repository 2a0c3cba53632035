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
Generator models module.
"""

import logging
from abc import ABC, abstractmethod
from typing import Union, List, Optional

import numpy as np
from scipy.sparse import issparse
from scipy.sparse.linalg import norm as sparse_norm

from chronophoton.arraylias.alias import ArrayLike, _numpy_multi_dispatch, to_dense
from chronophoton.exceptions import ConstructionError, StabilityViolation
from chronophoton.signals import Signal, SignalList
from chronophoton.utils import debug_checks_enabled
from .operator_collection import OperatorCollection, ScipySparseOperatorCollection

logger = logging.getLogger(__name__)

HERMITICITY_TOL = 1e-10


class BaseGeneratorModel(ABC):
    r"""Defines an interface for a time-dependent linear differential equation of the form
    :math:`\dot{y}(t) = G(t) y(t)`. The core functionality is evaluation of the model operator at a
    time, of the generator :math:`G(t)`, and of the right hand side :math:`G(t)y`.

    Externally registered generators must subclass this and implement ``dim``, ``evaluate`` and
    ``evaluate_rhs``.
    """

    def __init__(self, array_library: Optional[str] = None):
        """Set up general information used by all subclasses."""
        self._array_library = array_library

    @property
    @abstractmethod
    def dim(self) -> int:
        """The matrix dimension."""

    @property
    def array_library(self) -> Union[None, str]:
        """Array library with which to represent the operators in the model."""
        return self._array_library

    @property
    def period(self) -> Union[float, None]:
        """Drive period, or ``None`` if the model is not periodic."""
        return None

    @property
    def is_time_independent(self) -> bool:
        """Whether the model is constant in time."""
        return False

    @abstractmethod
    def evaluate(self, time: float, out: Optional[np.ndarray] = None) -> ArrayLike:
        """Evaluate the model operator at ``time``, optionally into the buffer ``out``."""

    def evaluate_generator(self, time: float) -> ArrayLike:
        r"""Evaluate the generator :math:`G(t)` of :math:`\dot{y} = G(t)y`."""
        return self.evaluate(time)

    @abstractmethod
    def evaluate_rhs(self, time: float, y: ArrayLike) -> ArrayLike:
        r"""Evaluate the right hand side :math:`\dot{y}(t) = G(t)y`.

        Args:
            time: The time to evaluate the model at.
            y: State of the differential equation.
        """

    def __call__(self, time: float, y: Optional[ArrayLike] = None) -> ArrayLike:
        """Evaluate the model if ``y is None``, otherwise the right hand side for ``y``."""
        return self.evaluate(time) if y is None else self.evaluate_rhs(time, y)


class HamiltonianModel(BaseGeneratorModel):
    r"""A Hamiltonian :math:`H(t) = H_d + \sum_j s_j(t) H_j`.

    :math:`H_d` is the static term and the :math:`s_j(t)` are :class:`Signal` coefficients of the
    drive operators :math:`H_j`. The Schrodinger equation is :math:`\dot{y} = -iH(t)y`, so
    :meth:`evaluate` returns :math:`H(t)` while :meth:`evaluate_generator` returns
    :math:`-iH(t)`.

    Dimension mismatches between terms, and a non-Hermitian Hamiltonian at :math:`t=0`, are
    construction errors. When the ``CHRONOPHOTON_DEBUG`` environment variable is set, evaluations
    are additionally sampled with probability ``debug_probability`` and checked for Hermiticity,
    raising :class:`.StabilityViolation` during a run.
    """

    def __init__(
        self,
        static_operator: Optional[ArrayLike] = None,
        operators: Optional[ArrayLike] = None,
        signals: Optional[Union[SignalList, List[Signal]]] = None,
        array_library: Optional[str] = None,
        period: Optional[float] = None,
        validate: bool = True,
        debug_probability: float = 0.05,
        debug_seed: Optional[int] = None,
    ):
        """Initialize, ensuring that the operators are Hermitian.

        Args:
            static_operator: Time-independent term in the Hamiltonian.
            operators: List of Operator objects.
            signals: List of coefficients :math:`s_i(t)`. Must be the same length as
                ``operators``.
            array_library: Array library for storing the operators, ``"numpy"``, ``"jax"`` or
                ``"scipy_sparse"``.
            period: Drive period. Inferred from harmonic signals when not given.
            validate: Whether to check Hermiticity at :math:`t=0`.
            debug_probability: Probability of checking Hermiticity on an evaluation in debug mode.
            debug_seed: Seed of the sampler deciding which evaluations are checked.

        Raises:
            ConstructionError: For inconsistent operators and signals, or a non-Hermitian model.
        """
        super().__init__(array_library=array_library)

        if signals is not None and not isinstance(signals, SignalList):
            signals = SignalList(list(signals))

        num_operators = 0
        if operators is not None:
            if isinstance(operators, list):
                num_operators = len(operators)
            elif issparse(operators):
                num_operators = 1
            else:
                num_operators = np.shape(operators)[0]
        num_signals = 0 if signals is None else len(signals)
        if num_operators != num_signals:
            raise ConstructionError(
                f"HamiltonianModel got {num_operators} operators but {num_signals} signals."
            )

        if array_library == "scipy_sparse":
            self._operator_collection = ScipySparseOperatorCollection(
                static_operator=static_operator, operators=operators
            )
        else:
            self._operator_collection = OperatorCollection(
                static_operator=static_operator, operators=operators, array_library=array_library
            )

        self._signals = signals
        self._period = period
        if period is None and signals is not None:
            self._period = signals.period
        if period is not None and period <= 0:
            raise ConstructionError(f"Drive period must be positive, got {period}.")

        self._debug = debug_checks_enabled()
        self._debug_probability = debug_probability
        self._debug_rng = np.random.default_rng(debug_seed)

        if validate:
            self.check_hermiticity(0.0)

    @property
    def dim(self) -> int:
        return self._operator_collection.dim

    @property
    def array_library(self) -> str:
        return self._operator_collection.array_library

    @property
    def static_operator(self):
        """The static term."""
        return self._operator_collection.static_operator

    @property
    def operators(self):
        """The drive operators."""
        return self._operator_collection.operators

    @property
    def signals(self) -> Union[SignalList, None]:
        """The drive coefficients."""
        return self._signals

    @property
    def period(self) -> Union[float, None]:
        return self._period

    @property
    def is_time_independent(self) -> bool:
        return self._signals is None or all(s.is_constant for s in self._signals)

    def coefficients(self, time: float) -> Union[np.ndarray, None]:
        """Signal values at ``time``."""
        if self._signals is None:
            return None
        return self._signals(time)

    def evaluate(self, time: float, out: Optional[np.ndarray] = None) -> ArrayLike:
        """Evaluate :math:`H(t)`, writing into ``out`` when a dense numpy buffer is given."""
        result = self._operator_collection.evaluate(self.coefficients(time), out=out)
        if self._debug and self._debug_rng.random() < self._debug_probability:
            residual = _hermiticity_residual(result)
            if residual > HERMITICITY_TOL:
                raise StabilityViolation(
                    f"Hamiltonian is not Hermitian at t={time}: residual {residual:.3e}.",
                    time=float(time),
                    residual=residual,
                )
            logger.debug("Hermiticity residual %.3e at t=%s", residual, time)
        return result

    def evaluate_generator(self, time: float) -> ArrayLike:
        return -1j * self.evaluate(time)

    def evaluate_rhs(self, time: float, y: ArrayLike) -> ArrayLike:
        return -1j * _numpy_multi_dispatch(self.evaluate(time), y, path="matmul")

    def hermiticity_residual(self, time: float) -> float:
        r"""Frobenius norm of :math:`H(t) - H(t)^\dagger`."""
        return _hermiticity_residual(self._operator_collection.evaluate(self.coefficients(time)))

    def check_hermiticity(self, times: Union[float, ArrayLike], tol: float = HERMITICITY_TOL):
        """Raise if :meth:`hermiticity_residual` exceeds ``tol`` at any of ``times``.

        Raises:
            ConstructionError: At the first offending time.
        """
        for time in np.atleast_1d(times):
            residual = self.hermiticity_residual(float(time))
            if residual > tol:
                raise ConstructionError(
                    f"Hamiltonian is not Hermitian at t={time}: residual {residual:.3e}."
                )

    def split_terms(self):
        """Decompose the Hamiltonian into individually exponentiable terms.

        Returns:
            list: ``(operator, coefficient)`` pairs, where ``coefficient`` is ``None`` for the
            static term and a :class:`Signal` otherwise.
        """
        terms = []
        if self.static_operator is not None:
            terms.append((to_dense(self.static_operator), None))
        if self.operators is not None:
            for op, sig in zip(self.operators, self._signals):
                terms.append((to_dense(op), sig))
        return terms


def _hermiticity_residual(mat) -> float:
    if issparse(mat):
        return float(sparse_norm(mat - mat.conj().T))
    mat = np.asarray(mat)
    return float(np.linalg.norm(mat - mat.conj().T))
