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
Fixed step solvers.

Each method is defined by a ``take_step(func, t, y, h)`` rule, where ``func`` is either the right
hand side :math:`f(t, y)` (Runge-Kutta) or the generator :math:`G(t)` (Magnus), and driven through
the time grid by :func:`fixed_step_solver_template` or its JAX counterpart
:func:`fixed_step_solver_template_jax`.
"""

from typing import Callable, Optional, Union, Tuple, List

import numpy as np
from scipy.integrate._ivp.ivp import OdeResult
from scipy.linalg import eigh, expm
from scipy.sparse import issparse
from scipy.sparse.linalg import expm_multiply

from chronophoton.arraylias import requires_array_library
from chronophoton.exceptions import CancellationSignal, ConstructionError, IntegrationError

from .solver_utils import get_fixed_step_sizes, trim_t_results

try:
    import jax.numpy as jnp
    from jax.lax import scan, cond
    from jax.scipy.linalg import expm as jexpm
except ImportError:
    pass


# Gauss-Legendre nodes for the 4th order Magnus expansion
_GL_C1 = 0.5 - np.sqrt(3) / 6
_GL_C2 = 0.5 + np.sqrt(3) / 6
_MAGNUS4_COMM = np.sqrt(3) / 12

# global order of accuracy of each method
METHOD_ORDERS = {"rk4": 4, "magnus2": 2, "magnus4": 4, "split": 2}

_DIV6 = 1.0 / 6


def rk4_step(rhs_func: Callable, t: float, y: np.ndarray, h: float) -> np.ndarray:
    """Classical 4th order Runge-Kutta step."""
    h2 = 0.5 * h
    t_plus_h2 = t + h2

    k1 = rhs_func(t, y)
    k2 = rhs_func(t_plus_h2, y + h2 * k1)
    k3 = rhs_func(t_plus_h2, y + h2 * k2)
    k4 = rhs_func(t + h, y + h * k3)

    return y + _DIV6 * h * (k1 + 2 * k2 + 2 * k3 + k4)


def magnus2_step(generator: Callable, t: float, y: np.ndarray, h: float) -> np.ndarray:
    """2nd order Magnus step: exponential of the generator at the midpoint."""
    return _expm_apply(h * generator(t + 0.5 * h), y)


def magnus4_step(generator: Callable, t: float, y: np.ndarray, h: float) -> np.ndarray:
    r"""4th order Magnus step from the 2-point Gauss-Legendre rule,
    :math:`\Omega = \frac{h}{2}(A_1 + A_2) + \frac{\sqrt{3}}{12}h^2[A_2, A_1]`.
    """
    A1 = generator(t + _GL_C1 * h)
    A2 = generator(t + _GL_C2 * h)
    omega = 0.5 * h * (A1 + A2) + (_MAGNUS4_COMM * h**2) * (A2 @ A1 - A1 @ A2)
    return _expm_apply(omega, y)


def _expm_apply(omega, y):
    if issparse(omega):
        return expm_multiply(omega, y)
    return expm(omega) @ y


class SplitOperatorStep:
    r"""Strang splitting over a Hamiltonian :math:`H(t) = \sum_k c_k(t) H_k`.

    Each :math:`H_k` is diagonalized once at construction (diagonal terms skip the basis change),
    so every partial exponential :math:`e^{-i\tau c_k H_k}` costs two basis rotations. With the
    coefficients sampled at the step midpoint the symmetric product

    .. math::
        e^{-i\frac{h}{2}c_1H_1}\cdots e^{-ihc_nH_n}\cdots e^{-i\frac{h}{2}c_1H_1}

    has local error :math:`O(h^3)`.
    """

    def __init__(self, terms: List[Tuple[np.ndarray, Optional[Callable]]], atol: float = 1e-10):
        """Initialize.

        Args:
            terms: ``(operator, coefficient)`` pairs, with ``coefficient`` ``None`` for static
                terms or a real valued callable of time.
            atol: Hermiticity tolerance for each term.

        Raises:
            ConstructionError: If there are no terms, a term is not Hermitian, or a coefficient
                is complex at the start time.
        """
        if len(terms) == 0:
            raise ConstructionError("Split-operator integration requires at least one term.")
        self._atol = atol
        self._parts = []
        for op, coefficient in terms:
            op = np.asarray(op, dtype=complex)
            if np.linalg.norm(op - op.conj().T) > atol:
                raise ConstructionError("Split-operator terms must each be Hermitian.")
            if coefficient is not None and _imaginary_part(coefficient(0.0)) > atol:
                raise ConstructionError("Split-operator coefficients must be real valued.")
            if np.count_nonzero(op - np.diag(np.diag(op))) == 0:
                self._parts.append((np.diag(op).real, None, coefficient))
            else:
                eigvals, eigvecs = eigh(op)
                self._parts.append((eigvals, eigvecs, coefficient))

    @property
    def num_terms(self) -> int:
        """Number of separately exponentiated terms."""
        return len(self._parts)

    def _apply(self, part, coefficient, tau, y):
        eigvals, eigvecs, _ = part
        phases = np.exp(-1j * tau * coefficient * eigvals)
        if eigvecs is None:
            return _scale_rows(phases, y)
        return eigvecs @ _scale_rows(phases, eigvecs.conj().T @ y)

    def _real_value(self, coefficient, t):
        value = coefficient(t)
        if _imaginary_part(value) > self._atol:
            raise IntegrationError(f"Split-operator coefficient is complex at t={t}.", time=t)
        return float(np.real(value))

    def __call__(self, t: float, y: np.ndarray, h: float) -> np.ndarray:
        t_mid = t + 0.5 * h
        coefficients = [1.0 if c is None else self._real_value(c, t_mid) for _, _, c in self._parts]
        last = len(self._parts) - 1
        for k in range(last):
            y = self._apply(self._parts[k], coefficients[k], 0.5 * h, y)
        y = self._apply(self._parts[last], coefficients[last], h, y)
        for k in reversed(range(last)):
            y = self._apply(self._parts[k], coefficients[k], 0.5 * h, y)
        return y

    def take_step(self, _, t, y, h):
        """Adapter to the ``take_step(func, t, y, h)`` signature of the solver templates."""
        return self(t, y, h)


def _imaginary_part(value) -> float:
    return float(np.max(np.abs(np.imag(value))))


def _scale_rows(phases, y):
    if y.ndim == 1:
        return phases * y
    return phases[:, None] * y


def fixed_step_solver_template(
    take_step: Callable,
    rhs_func: Callable,
    t_span: np.ndarray,
    y0: np.ndarray,
    max_dt: float,
    t_eval: Optional[Union[Tuple, List, np.ndarray]] = None,
    step_callback: Optional[Callable] = None,
    cancel_token=None,
) -> OdeResult:
    """Drive a single step rule across the sampling grid.

    ``take_step(rhs_func, t, y, h)`` advances ``y`` from ``t`` to ``t + h``, where ``rhs_func`` is
    whatever the rule consumes (a generator for Magnus rules, :math:`f(t, y)` for RK4). Between
    consecutive grid points of :func:`merge_t_args` the rule is applied with the equal steps
    chosen by :func:`get_fixed_step_sizes`, so no step exceeds ``max_dt`` and every sample time is
    hit exactly.

    Args:
        take_step: The step rule.
        rhs_func: Passed through to ``take_step``.
        t_span: Start and end time.
        y0: Initial state.
        max_dt: Upper bound on the step size.
        t_eval: Sample times. Without them only the end points are returned.
        step_callback: Optional ``f(t, step, y_prev, y_next, h) -> y`` run after every step, used
            for stability checks and state corrections.
        cancel_token: Optional token whose ``is_cancelled()`` is polled before each step.

    Returns:
        OdeResult: ``t`` and ``y`` at the sample times, plus the total ``num_steps``.

    Raises:
        CancellationSignal: If ``cancel_token`` is cancelled. It carries the samples reached.
    """
    t_list, h_list, n_steps_list = get_fixed_step_sizes(t_span, t_eval, max_dt)

    samples = [np.asarray(y0)]
    y = samples[0]
    step = 0
    for t, h, n_steps in zip(t_list[:-1], h_list, n_steps_list):
        for _ in range(n_steps):
            if cancel_token is not None and cancel_token.is_cancelled():
                raise _cancelled(t_list, samples, t, step, t_eval)
            y_next = take_step(rhs_func, t, y, h)
            t = t + h
            step += 1
            y = y_next if step_callback is None else step_callback(t, step, y, y_next, h)
        samples.append(y)

    return trim_t_results(OdeResult(t=t_list, y=np.array(samples), num_steps=step), t_eval)


def _cancelled(t_list, ys, time, step, t_eval):
    partial = OdeResult(t=np.asarray(t_list[: len(ys)]), y=np.array(ys), num_steps=step)
    if t_eval is not None:
        partial.t = partial.t[1:]
        partial.y = partial.y[1:]
    return CancellationSignal(
        "Integration cancelled.", time=float(time), step=step, partial_results=partial
    )


@requires_array_library("jax")
def jax_rk4_step(rhs_func: Callable, t, y, h):
    """JAX version of :func:`rk4_step`."""
    return rk4_step(rhs_func, t, y, h)


@requires_array_library("jax")
def jax_magnus2_step(generator: Callable, t, y, h):
    """JAX version of :func:`magnus2_step`."""
    return jexpm(h * generator(t + 0.5 * h)) @ y


@requires_array_library("jax")
def jax_magnus4_step(generator: Callable, t, y, h):
    """JAX version of :func:`magnus4_step`."""
    A1 = generator(t + _GL_C1 * h)
    A2 = generator(t + _GL_C2 * h)
    omega = 0.5 * h * (A1 + A2) + (_MAGNUS4_COMM * h**2) * (A2 @ A1 - A1 @ A2)
    return jexpm(omega) @ y


JAX_STEPS = {"rk4": jax_rk4_step, "magnus2": jax_magnus2_step, "magnus4": jax_magnus4_step}


@requires_array_library("jax")
def fixed_step_solver_template_jax(
    take_step: Callable,
    rhs_func: Callable,
    t_span: np.ndarray,
    y0,
    max_dt: float,
    t_eval: Optional[Union[Tuple, List, np.ndarray]] = None,
):
    """Traceable :func:`fixed_step_solver_template` built on ``jax.lax.scan``.

    The grid comes from :func:`get_fixed_step_sizes` and is computed with numpy, so ``t_span``,
    ``t_eval`` and ``max_dt`` have to be concrete. ``rhs_func`` and ``y0`` may be traced, which is
    what lets the device lane ``vmap`` this over a batch. Every interval runs the same number of
    scan iterations; steps past an interval's own count leave the state unchanged.

    Returns:
        Tuple of the states at the sample times and the sample times.
    """
    t_list, h_list, n_steps_list = get_fixed_step_sizes(t_span, t_eval, max_dt)
    padded_steps = jnp.arange(n_steps_list.max())

    def across_interval(y, interval):
        t_start, h, n_steps = interval

        def one_step(carry, k):
            t, y = carry
            y = cond(k < n_steps, lambda y: take_step(rhs_func, t, y, h), lambda y: y, y)
            return (t + h, y), None

        (_, y), _ = scan(one_step, (t_start, y), padded_steps)
        return y, y

    intervals = (jnp.asarray(t_list[:-1]), jnp.asarray(h_list), jnp.asarray(n_steps_list))
    _, ys = scan(across_interval, y0, intervals)
    ys = jnp.concatenate([jnp.asarray(y0)[None], ys])

    if t_eval is not None:
        return ys[1:-1], t_list[1:-1]
    return ys, t_list
