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
Adaptive step size control by step doubling.
"""

import logging
import warnings
from typing import Callable, Optional, Union, Tuple, List

import numpy as np
from scipy.integrate._ivp.ivp import OdeResult

from chronophoton.exceptions import (
    CancellationSignal,
    ConstructionError,
    ConvergenceWarning,
    IntegrationError,
)

from .solver_utils import merge_t_args, trim_t_results, is_finite

logger = logging.getLogger(__name__)

# bounds on the step size change after an accepted step
MAX_GROWTH = 2.0
MIN_GROWTH = 0.2
SAFETY = 0.9


def adaptive_step_solver_template(
    take_step: Callable,
    rhs_func: Callable,
    t_span: np.ndarray,
    y0: np.ndarray,
    order: int,
    dt: float,
    t_eval: Optional[Union[Tuple, List, np.ndarray]] = None,
    rtol: float = 1e-8,
    atol: float = 1e-10,
    max_dt: Optional[float] = None,
    min_dt: float = 1e-12,
    max_retries: int = 12,
    max_oscillations: int = 8,
    step_callback: Optional[Callable] = None,
    cancel_token=None,
) -> OdeResult:
    r"""Integrate with a fixed-step rule ``take_step`` under step doubling error control.

    Every step is taken once with size :math:`h` and twice with size :math:`h/2`. For a method of
    order :math:`p` the local error of the full step is estimated as
    :math:`\|y_{h/2} - y_h\| / (2^p - 1)`, and the step is accepted when this is below
    ``atol + rtol * |y|``. On acceptance the two half steps are kept and the step size grows by
    :math:`\min(2, 0.9(tol/err)^{1/(p+1)})`, capped at ``max_dt``. On rejection the step size is
    halved and the step retried.

    A step size that repeatedly grows and is then rejected is oscillating at a stability
    boundary. After ``max_oscillations`` such events growth is frozen for the rest of the run and
    a :class:`.ConvergenceWarning` is emitted; the run only fails when a single step exhausts
    ``max_retries`` halvings or the step size drops below ``min_dt``.

    Args:
        take_step: Fixed step rule ``take_step(func, t, y, h)``.
        rhs_func: Generator or right hand side passed to ``take_step``.
        t_span: Interval to solve over, increasing.
        y0: Initial state.
        order: Order of accuracy of ``take_step``.
        dt: Initial step size.
        t_eval: Optional times at which to return the solution. Steps are clipped to hit them.
        rtol: Relative tolerance.
        atol: Absolute tolerance.
        max_dt: Maximum step size. Defaults to the interval length.
        min_dt: Step sizes below this are an integration error.
        max_retries: Maximum consecutive rejections of one step.
        max_oscillations: Number of grow-then-reject events tolerated before freezing growth.
        step_callback: Optional ``f(t, step, y_prev, y_next, h) -> y`` applied after each
            accepted step.
        cancel_token: Optional token whose ``is_cancelled()`` is checked between step attempts.

    Returns:
        OdeResult: with fields ``t``, ``y``, ``num_steps``, ``step_sizes`` (accepted step sizes in
        order), ``num_rejected`` and ``warnings``.

    Raises:
        ConstructionError: For invalid tolerances or a decreasing ``t_span``.
        IntegrationError: If retries are exhausted or the step size underflows.
        CancellationSignal: If ``cancel_token`` is cancelled.
    """
    if not dt > 0 or rtol < 0 or atol < 0 or (rtol == 0 and atol == 0):
        raise ConstructionError("Adaptive integration needs dt > 0 and a positive tolerance.")

    t_list = np.asarray(merge_t_args(t_span, t_eval), dtype=float)
    if np.any(np.diff(t_list) < 0):
        raise ConstructionError("Adaptive integration only supports increasing time.")

    if max_dt is None:
        max_dt = float(t_list[-1] - t_list[0]) or dt
    dt = min(dt, max_dt)
    error_factor = 1.0 / (2**order - 1)

    y = np.asarray(y0)
    ys = [y]
    step_sizes = []
    num_rejected = 0
    oscillations = 0
    growth_frozen = False
    last_grew = False
    warning_messages = []
    step = 0

    for t_start, t_end in zip(t_list[:-1], t_list[1:]):
        t = float(t_start)
        end_tol = 1e-14 * max(1.0, abs(t_end))
        while t_end - t > end_tol:
            h = min(dt, t_end - t)
            clipped = h < dt
            retries = 0
            while True:
                if cancel_token is not None and cancel_token.is_cancelled():
                    raise _cancelled(t_list, ys, t, step, t_eval, step_sizes)

                y_full = take_step(rhs_func, t, y, h)
                y_mid = take_step(rhs_func, t, y, 0.5 * h)
                y_half = take_step(rhs_func, t + 0.5 * h, y_mid, 0.5 * h)

                if is_finite(y_full) and is_finite(y_half):
                    err = error_factor * np.linalg.norm(y_half - y_full)
                else:
                    err = np.inf
                tol = atol + rtol * np.linalg.norm(y_half if np.isfinite(err) else y)

                if err <= tol:
                    break

                num_rejected += 1
                retries += 1
                if last_grew:
                    oscillations += 1
                    last_grew = False
                    if oscillations >= max_oscillations and not growth_frozen:
                        growth_frozen = True
                        message = (
                            f"Adaptive step size oscillated {oscillations} times between accept "
                            f"and reject near t={t:.6g}; step growth frozen at dt={h:.3e}."
                        )
                        warnings.warn(message, ConvergenceWarning, stacklevel=3)
                        logger.warning(message)
                        warning_messages.append(message)
                logger.debug("Rejected step at t=%.6g with h=%.3e (err=%.3e)", t, h, err)

                if retries > max_retries:
                    raise IntegrationError(
                        f"Adaptive step retries exhausted after {max_retries} halvings.",
                        time=t,
                        step=step,
                    )
                h = 0.5 * h
                clipped = False
                if h < min_dt:
                    raise IntegrationError(
                        f"Adaptive step size {h:.3e} fell below min_dt={min_dt:.3e}.",
                        time=t,
                        step=step,
                    )

            t_next = t + h
            step += 1
            if step_callback is not None:
                y_half = step_callback(t_next, step, y, y_half, h)
            y = y_half
            t = t_next
            step_sizes.append(h)

            if clipped:
                # step was shortened to land on a sample time, keep the previous size
                last_grew = False
                continue

            if err == 0:
                factor = MAX_GROWTH
            else:
                factor = min(MAX_GROWTH, max(MIN_GROWTH, SAFETY * (tol / err) ** (1 / (order + 1))))
            if growth_frozen:
                factor = min(factor, 1.0)
            last_grew = factor > 1.0
            dt = min(h * factor, max_dt)

        ys.append(y)

    results = OdeResult(
        t=t_list,
        y=np.array(ys),
        num_steps=step,
        step_sizes=np.array(step_sizes),
        num_rejected=num_rejected,
        warnings=warning_messages,
    )
    return trim_t_results(results, t_eval)


def _cancelled(t_list, ys, time, step, t_eval, step_sizes):
    partial = OdeResult(
        t=np.asarray(t_list[: len(ys)]),
        y=np.array(ys),
        num_steps=step,
        step_sizes=np.array(step_sizes),
    )
    if t_eval is not None:
        partial.t = partial.t[1:]
        partial.y = partial.y[1:]
    return CancellationSignal(
        "Integration cancelled.", time=float(time), step=step, partial_results=partial
    )
