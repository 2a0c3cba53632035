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

"""Time grids and step checks shared by the integrators."""

from typing import Optional, Sequence, Tuple
import numpy as np
from scipy.integrate._ivp.ivp import OdeResult

from chronophoton.exceptions import ConstructionError


def merge_t_args(t_span: Sequence[float], t_eval: Optional[Sequence[float]] = None) -> np.ndarray:
    """The sampling grid ``[t_span[0], *t_eval, t_span[1]]``.

    ``t_eval`` is checked the way scipy ``solve_ivp`` checks it: it has to sit inside ``t_span``
    and run in the direction of integration. Without ``t_eval`` the grid is ``t_span`` itself.

    Raises:
        ConstructionError: If ``t_span`` or ``t_eval`` is malformed.
    """
    t_span = np.asarray(t_span, dtype=float)
    if t_span.shape != (2,):
        raise ConstructionError("t_span must contain exactly two entries.")
    if t_eval is None:
        return t_span

    t_eval = np.atleast_1d(np.asarray(t_eval, dtype=float))
    if t_eval.ndim != 1:
        raise ConstructionError("t_eval must be 1 dimensional.")
    if t_eval.min() < t_span.min() or t_eval.max() > t_span.max():
        raise ConstructionError("t_eval entries must lie in t_span.")

    forward = np.sign(t_span[1] - t_span[0])
    if np.any(forward * np.diff(t_eval) < 0.0):
        raise ConstructionError("t_eval must be ordered along the direction of integration.")

    return np.concatenate([t_span[:1], t_eval, t_span[1:]])


def trim_t_results(results: OdeResult, t_eval: Optional[Sequence[float]] = None) -> OdeResult:
    """Drop the two ``t_span`` end points that :func:`merge_t_args` put around ``t_eval``."""
    if t_eval is not None:
        results.t = results.t[1:-1]
        results.y = results.y[1:-1]
    return results


def get_fixed_step_sizes(
    t_span: Sequence[float], t_eval: Optional[Sequence[float]], max_dt: float
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Plan a fixed step integration over the grid of :func:`merge_t_args`.

    Each interval of the grid is cut into the fewest equal steps no longer than ``max_dt``. An
    interval of length zero still gets one step, of size zero.

    Returns:
        Tuple[np.ndarray, np.ndarray, np.ndarray]: The grid, the signed step size used inside each
        interval, and the number of steps in each interval.

    Raises:
        ConstructionError: If ``max_dt`` is not positive.
    """
    if not max_dt > 0:
        raise ConstructionError(f"Step size must be positive, got {max_dt}.")

    t_list = merge_t_args(t_span, t_eval)
    deltas = np.diff(t_list)
    # exact multiples of max_dt keep their step count
    n_steps = np.ceil(np.abs(deltas) / max_dt * (1.0 - 1e-15)).astype(int)
    n_steps = np.maximum(n_steps, 1)

    return t_list, deltas / n_steps, n_steps


def unitarity_residual(y_prev: np.ndarray, y_next: np.ndarray) -> float:
    r"""How far a step departs from unitarity.

    For a vector this is the relative change in norm. For a matrix of column states (e.g. a
    propagator) it is the change of the Gram matrix :math:`\|Y'^\dagger Y' - Y^\dagger Y\|`.
    """
    if y_next.ndim == 1:
        prev_norm = np.linalg.norm(y_prev)
        return float(abs(np.linalg.norm(y_next) - prev_norm) / prev_norm)
    return float(np.linalg.norm(y_next.conj().T @ y_next - y_prev.conj().T @ y_prev))


def is_finite(y) -> bool:
    """Whether every entry of ``y`` is finite."""
    return bool(np.all(np.isfinite(y)))
