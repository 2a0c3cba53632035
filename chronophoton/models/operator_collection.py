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

"""Static plus linear combination operators, evaluated from a coefficient vector."""

from typing import List, Optional, Tuple, Union
import numpy as np
from scipy.sparse import csr_matrix, issparse

from chronophoton.arraylias import CHRONO_NUMPY_ALIAS as numpy_alias
from chronophoton.arraylias.alias import ArrayLike, _numpy_multi_dispatch
from chronophoton.exceptions import ConstructionError


class _TermStore:
    r"""Shared storage for :math:`c \mapsto G_d + \sum_j c_j G_j`.

    Subclasses convert the operators in ``__init__`` and implement :meth:`evaluate`.
    """

    array_library = "numpy"

    def _store(self, static_operator, operators):
        _check_square_and_equal(static_operator, operators)
        self._static_operator = static_operator
        self._operators = operators

    @property
    def static_operator(self) -> Union[ArrayLike, None]:
        """:math:`G_d`, or ``None``."""
        return self._static_operator

    @property
    def operators(self) -> Union[ArrayLike, List[csr_matrix], None]:
        """The :math:`G_j`, or ``None`` when the collection is static."""
        return self._operators

    @property
    def num_operators(self) -> int:
        """How many coefficients :meth:`evaluate` expects."""
        return 0 if self._operators is None else len(self._operators)

    @property
    def dim(self) -> int:
        """Side length of each operator."""
        first = self._static_operator if self._static_operator is not None else self._operators[0]
        return first.shape[-1]

    def evaluate(self, coefficients, out=None):
        raise NotImplementedError

    def __call__(self, coefficients, out=None):
        return self.evaluate(coefficients, out=out)


class OperatorCollection(_TermStore):
    r"""Dense :math:`G_d + \sum_j c_j G_j` on the numpy or jax array library.

    Operators are held as a single ``(k, n, n)`` complex array. With the numpy library,
    :meth:`evaluate` can fill a caller-owned ``(n, n)`` buffer, which is how the integrators avoid
    allocating on every right hand side call.
    """

    def __init__(
        self,
        static_operator: Optional[ArrayLike] = None,
        operators: Optional[ArrayLike] = None,
        array_library: Optional[str] = None,
    ):
        """
        Args:
            static_operator: ``(n, n)`` static term :math:`G_d`.
            operators: ``(k, n, n)`` or ``(n, n)`` terms :math:`G_j`.
            array_library: "numpy" (default) or "jax".

        Raises:
            ConstructionError: For the "scipy_sparse" library, when no operator is given, or when
                the shapes disagree.
        """
        if array_library == "scipy_sparse":
            raise ConstructionError(
                "scipy_sparse is not a valid array_library for OperatorCollection; "
                "use ScipySparseOperatorCollection."
            )
        self.array_library = array_library or "numpy"
        to_array = numpy_alias(like=array_library).asarray

        if static_operator is not None:
            static_operator = to_array(static_operator).astype(complex)
        if operators is not None:
            operators = to_array(operators).astype(complex)
            if operators.ndim == 2:
                operators = operators[None]
            if operators.shape[0] == 0:
                operators = None

        self._store(static_operator, operators)

    def evaluate(
        self, coefficients: Union[ArrayLike, None], out: Optional[np.ndarray] = None
    ) -> ArrayLike:
        r"""Compute :math:`G_d + \sum_j c_j G_j`.

        Args:
            coefficients: The :math:`c_j`, ignored for a static collection.
            out: ``(n, n)`` complex numpy array to write into. Ignored unless the library is numpy.

        Returns:
            The operator; ``out`` itself when a buffer was used.
        """
        static, ops = self._static_operator, self._operators
        if out is not None and self.array_library == "numpy":
            if ops is None:
                out[...] = static
                return out
            np.einsum("k,kij->ij", coefficients, ops, out=out)
            if static is not None:
                out += static
            return out

        if ops is None:
            return static
        combo = _numpy_multi_dispatch(coefficients, ops, path="linear_combo")
        return combo if static is None else combo + static


class ScipySparseOperatorCollection(_TermStore):
    r"""``csr_matrix`` counterpart of :class:`OperatorCollection` for large truncated spaces."""

    array_library = "scipy_sparse"

    def __init__(
        self,
        static_operator: Optional[ArrayLike] = None,
        operators: Optional[ArrayLike] = None,
    ):
        if static_operator is not None:
            static_operator = csr_matrix(static_operator, dtype=complex)
        if operators is not None:
            single = issparse(operators) or (
                not isinstance(operators, list) and np.ndim(operators) == 2
            )
            if single:
                operators = [operators]
            operators = [csr_matrix(op, dtype=complex) for op in operators] or None

        self._store(static_operator, operators)

    def evaluate(self, coefficients, out=None) -> csr_matrix:
        r"""Compute :math:`G_d + \sum_j c_j G_j` as a ``csr_matrix``. ``out`` is not used."""
        static, ops = self._static_operator, self._operators
        if ops is None:
            return static
        combo = numpy_alias(like="scipy_sparse").linear_combo(coefficients, ops)
        return combo if static is None else combo + static


def _check_square_and_equal(static_operator, operators):
    if static_operator is None and operators is None:
        raise ConstructionError(
            "An operator collection requires a static operator or at least one operator."
        )

    shapes: List[Tuple[int, ...]] = []
    if static_operator is not None:
        shapes.append(tuple(static_operator.shape))
    if operators is not None:
        shapes.extend(tuple(op.shape[-2:]) for op in operators)

    bad = [shape for shape in shapes if len(shape) != 2 or shape[0] != shape[1]]
    if bad:
        raise ConstructionError(f"Operators must be square matrices, got shape {bad[0]}.")
    if len(set(shapes)) > 1:
        raise ConstructionError(
            f"Dimension mismatch between composed terms: {sorted(set(shapes))}."
        )
