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
Expectation values and two-time correlation functions.
"""

import logging
from typing import Optional, Sequence, Union

import numpy as np
from scipy.sparse import issparse

from chronophoton.arraylias import to_dense
from chronophoton.exceptions import ConstructionError
from chronophoton.models import BaseGeneratorModel, LindbladModel, HamiltonianModel
from chronophoton.solvers import Integrator
from chronophoton.states import Ket, as_state
from chronophoton.type_utils import devectorize_density_matrix, vectorize_density_matrix

logger = logging.getLogger(__name__)


def expectation_value(operator, state) -> complex:
    r"""The expectation value :math:`\langle\psi|O|\psi\rangle` or :math:`\mathrm{Tr}(O\rho)`.

    The state is only read.
    """
    state = as_state(state)
    if operator.shape != (state.dim, state.dim):
        raise ConstructionError(
            f"Operator of shape {operator.shape} does not act on dimension {state.dim}."
        )
    if isinstance(state, Ket):
        psi = state.data
        return complex(np.vdot(psi, operator @ psi))
    rho = state.data
    if issparse(operator):
        return complex((operator @ rho).trace())
    return complex(np.sum(np.asarray(operator) * rho.T))


def expectation_values(operator, states: np.ndarray, is_density_matrix: bool) -> np.ndarray:
    """Expectation values of ``operator`` over a stack of states.

    Args:
        operator: The operator.
        states: Array of shape ``(n, d)`` of kets or ``(n, d, d)`` of density matrices.
        is_density_matrix: Whether ``states`` holds density matrices.

    Returns:
        np.ndarray: Complex array of length ``n``.
    """
    operator = to_dense(operator)
    states = np.asarray(states)
    if is_density_matrix:
        return np.einsum("ij,nji->n", operator, states)
    return np.einsum("ni,ij,nj->n", states.conj(), operator, states)


def two_time_correlator(
    model: BaseGeneratorModel,
    state,
    A,
    B,
    t: float,
    taus: Union[Sequence[float], np.ndarray],
    integrator: Optional[Integrator] = None,
    cancel_token=None,
) -> np.ndarray:
    r"""Two-time correlation function :math:`\langle A(t+\tau)B(t)\rangle` by quantum regression.

    ``state`` is the state at time ``t``. For a ket :math:`\psi` of a closed system both
    :math:`\psi` and :math:`B\psi` are evolved from ``t`` and the correlator is
    :math:`\langle\psi(\tau)|A|B\psi(\tau)\rangle`. For a density matrix the operator
    :math:`B\rho` is evolved under the master equation (the coherent part only for a closed
    model) and the correlator is :math:`\mathrm{Tr}(A\,\Lambda(\tau))`.

    Every call re-evolves a new trajectory segment, nothing is cached.

    Args:
        model: Generator of the dynamics.
        state: State at time ``t``.
        A: Operator at the later time.
        B: Operator at time ``t``.
        t: The earlier time.
        taus: Non-negative, increasing delays.
        integrator: Integrator for the segment. Defaults to 4th order Runge-Kutta.
        cancel_token: Token checked between steps.

    Returns:
        np.ndarray: Complex correlator values for each delay.

    Raises:
        ConstructionError: For negative or unsorted delays, or dimension mismatches.
    """
    taus = np.atleast_1d(np.asarray(taus, dtype=float))
    if np.any(taus < 0) or np.any(np.diff(taus) < 0):
        raise ConstructionError("Correlator delays must be non-negative and increasing.")

    A = to_dense(A)
    B = to_dense(B)
    state = as_state(state, dim=model.dim)
    integrator = integrator or Integrator(method="rk4")
    t_eval = t + taus
    t_span = [t, t + taus[-1]]

    if isinstance(state, Ket) and not isinstance(model, LindbladModel):
        psi = state.data
        y0 = np.stack([psi, B @ psi], axis=1)
        if taus[-1] == 0.0:
            ys = np.repeat(y0[None], len(taus), axis=0)
        else:
            ys = integrator.integrate(model, y0, t_span, t_eval=t_eval, cancel_token=cancel_token).y
        return np.einsum("ni,ij,nj->n", ys[:, :, 0].conj(), A, ys[:, :, 1])

    if isinstance(model, HamiltonianModel):
        model = LindbladModel(model)
    rho = state.to_density_matrix().data if isinstance(state, Ket) else state.data
    y0 = vectorize_density_matrix(B @ rho)
    if taus[-1] == 0.0:
        ys = np.repeat(y0[None], len(taus), axis=0)
    else:
        ys = integrator.integrate(model, y0, t_span, t_eval=t_eval, cancel_token=cancel_token).y
    logger.debug("Evaluated correlator at %d delays from t=%g", len(taus), t)
    return np.einsum("ij,nji->n", A, devectorize_density_matrix(ys, model.dim))
