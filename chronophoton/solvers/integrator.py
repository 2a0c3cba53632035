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
Integrator front end: method selection, stability monitoring and propagators.
"""

import logging
import warnings
from typing import Callable, Optional, Union, Tuple, List

import numpy as np
from scipy.integrate._ivp.ivp import OdeResult

from chronophoton.exceptions import (
    ConstructionError,
    IntegrationError,
    StabilityViolation,
    StabilityWarning,
)
from chronophoton.models import BaseGeneratorModel, HamiltonianModel, LindbladModel

from .adaptive import adaptive_step_solver_template
from .fixed_step_solvers import (
    METHOD_ORDERS,
    SplitOperatorStep,
    fixed_step_solver_template,
    magnus2_step,
    magnus4_step,
    rk4_step,
)
from .solver_utils import is_finite, unitarity_residual

logger = logging.getLogger(__name__)

UNITARITY_WARN = 1e-8
UNITARITY_FATAL = 1e-6


class _StabilityMonitor:
    """Per-run bookkeeping of the unitarity residual of each step."""

    def __init__(self, closed, renormalize, warn_residual, fatal_residual, callback=None):
        self.closed = closed
        self.renormalize = renormalize
        self.warn_residual = warn_residual
        self.fatal_residual = fatal_residual
        self.callback = callback
        self.max_residual = 0.0
        self.num_warned = 0
        self.messages = []

    def __call__(self, t, step, y_prev, y_next, h):
        if not is_finite(y_next):
            raise IntegrationError("NaN or Inf in state after step.", time=t, step=step)

        if self.closed:
            residual = unitarity_residual(y_prev, y_next)
            self.max_residual = max(self.max_residual, residual)
            if residual > self.fatal_residual:
                raise StabilityViolation(
                    f"Step unitarity residual {residual:.3e} exceeds {self.fatal_residual:.1e}.",
                    time=t,
                    step=step,
                    residual=residual,
                )
            if residual > self.warn_residual:
                if self.num_warned == 0:
                    message = (
                        f"Step unitarity residual {residual:.3e} exceeds {self.warn_residual:.1e} "
                        f"at t={t:.6g} (step {step}); consider a smaller step size."
                    )
                    warnings.warn(message, StabilityWarning, stacklevel=4)
                    logger.warning(message)
                    self.messages.append(message)
                self.num_warned += 1
            if self.renormalize and y_next.ndim == 1:
                y_next = y_next * (np.linalg.norm(y_prev) / np.linalg.norm(y_next))

        if self.callback is not None:
            y_next = self.callback(t, step, y_prev, y_next, h)
        return y_next

    def finalize(self):
        """Warning messages of the run, including a count of repeated warnings."""
        messages = list(self.messages)
        if self.num_warned > 1:
            messages.append(
                f"{self.num_warned} steps exceeded the unitarity warning threshold "
                f"(max residual {self.max_residual:.3e})."
            )
        return messages


class Integrator:
    r"""Advances states of a :class:`.BaseGeneratorModel` in time.

    Methods:

    - ``"rk4"``: classical Runge-Kutta, 4 right hand side evaluations per step. Kets are
      renormalized after every step of a closed system.
    - ``"magnus2"``: exponential of the generator at the step midpoint.
    - ``"magnus4"``: 4th order Magnus expansion on 2 Gauss-Legendre nodes. Unitary by construction.
    - ``"split"``: Strang splitting over the static and drive terms of a
      :class:`.HamiltonianModel`.

    With ``adaptive=True`` every method runs under step doubling error control.

    For closed systems each step is checked: a unitarity residual above ``warn_residual`` emits a
    :class:`.StabilityWarning`, one above ``fatal_residual`` raises
    :class:`.StabilityViolation`, and a NaN or Inf raises :class:`.IntegrationError`.
    """

    def __init__(
        self,
        method: str = "rk4",
        dt: float = 1e-2,
        adaptive: bool = False,
        rtol: float = 1e-8,
        atol: float = 1e-10,
        max_dt: Optional[float] = None,
        min_dt: float = 1e-12,
        max_retries: int = 12,
        max_oscillations: int = 8,
        warn_residual: float = UNITARITY_WARN,
        fatal_residual: float = UNITARITY_FATAL,
        renormalize: bool = True,
    ):
        """Initialize.

        Args:
            method: Integration method name.
            dt: Step size, or initial step size if ``adaptive``.
            adaptive: Whether to use step doubling error control.
            rtol: Relative tolerance of adaptive steps.
            atol: Absolute tolerance of adaptive steps.
            max_dt: Maximum adaptive step size.
            min_dt: Minimum adaptive step size.
            max_retries: Maximum consecutive rejections of one adaptive step.
            max_oscillations: Grow-then-reject events tolerated before adaptive growth is frozen.
            warn_residual: Unitarity residual above which a warning is emitted.
            fatal_residual: Unitarity residual above which integration fails.
            renormalize: Whether to renormalize kets of closed systems after each step.

        Raises:
            ConstructionError: For an unknown method or a non-positive step size.
        """
        method = method.lower()
        if method not in METHOD_ORDERS:
            raise ConstructionError(
                f"Unknown integration method '{method}'. Choose from {sorted(METHOD_ORDERS)}."
            )
        if not dt > 0:
            raise ConstructionError(f"Step size must be positive, got {dt}.")
        if max_retries < 1:
            raise ConstructionError("max_retries must be at least 1.")

        self.method = method
        self.dt = float(dt)
        self.adaptive = adaptive
        self.rtol = rtol
        self.atol = atol
        self.max_dt = max_dt
        self.min_dt = min_dt
        self.max_retries = max_retries
        self.max_oscillations = max_oscillations
        self.warn_residual = warn_residual
        self.fatal_residual = fatal_residual
        self.renormalize = renormalize

    @property
    def order(self) -> int:
        """Global order of accuracy of the method."""
        return METHOD_ORDERS[self.method]

    def __repr__(self):
        mode = "adaptive" if self.adaptive else "fixed"
        return f"Integrator(method={self.method!r}, dt={self.dt}, {mode})"

    def step_rule(self, model: BaseGeneratorModel) -> Tuple[Callable, Callable]:
        """The ``(take_step, func)`` pair integrating ``model`` with this method.

        Raises:
            ConstructionError: If the method cannot integrate ``model``.
        """
        if self.method == "split":
            if not isinstance(model, HamiltonianModel):
                raise ConstructionError(
                    "Split-operator integration requires a HamiltonianModel; it does not apply to "
                    "dissipative or externally defined generators."
                )
            return SplitOperatorStep(model.split_terms()).take_step, None

        if isinstance(model, LindbladModel):

            def rhs(t, y):
                return model.evaluate(t) @ y

            generator = model.evaluate
        else:
            rhs = model.evaluate_rhs
            generator = model.evaluate_generator

        if self.method == "rk4":
            return rk4_step, rhs
        if self.method == "magnus2":
            return magnus2_step, generator
        return magnus4_step, generator

    def step(
        self, model: BaseGeneratorModel, t: float, y: np.ndarray, dt: Optional[float] = None
    ) -> Tuple[float, np.ndarray]:
        """Take a single fixed step ``(t, y) -> (t + dt, y')`` with stability checks.

        Returns:
            The new time and state.
        """
        dt = self.dt if dt is None else dt
        take_step, func = self.step_rule(model)
        y = np.asarray(y, dtype=complex)
        monitor = self._monitor(model)
        y_next = take_step(func, t, y, dt)
        return t + dt, monitor(t + dt, 1, y, y_next, dt)

    def integrate(
        self,
        model: BaseGeneratorModel,
        y0: np.ndarray,
        t_span: Union[Tuple, List, np.ndarray],
        t_eval: Optional[Union[Tuple, List, np.ndarray]] = None,
        cancel_token=None,
        step_callback: Optional[Callable] = None,
    ) -> OdeResult:
        """Integrate ``model`` from ``y0`` over ``t_span``.

        Args:
            model: The generator. For a :class:`.LindbladModel`, ``y0`` is the column-stacked
                density matrix.
            y0: Initial state vector, or a matrix of column states.
            t_span: Interval to solve over.
            t_eval: Times at which to return the solution.
            cancel_token: Token checked between steps.
            step_callback: Extra ``f(t, step, y_prev, y_next, h) -> y`` run after the stability
                checks of every step.

        Returns:
            OdeResult: with ``t``, ``y``, ``num_steps``, ``method``, ``warnings``, and for adaptive
            runs ``step_sizes`` and ``num_rejected``.

        Raises:
            IntegrationError: If integration fails.
            StabilityViolation: If a step is not unitary.
            CancellationSignal: If cancelled.
        """
        take_step, func = self.step_rule(model)
        monitor = self._monitor(model, step_callback)
        y0 = np.asarray(y0, dtype=complex)

        logger.debug(
            "Integrating %s over %s with %s", type(model).__name__, tuple(t_span), self
        )

        if self.adaptive:
            results = adaptive_step_solver_template(
                take_step,
                func,
                t_span=t_span,
                y0=y0,
                order=self.order,
                dt=self.dt,
                t_eval=t_eval,
                rtol=self.rtol,
                atol=self.atol,
                max_dt=self.max_dt,
                min_dt=self.min_dt,
                max_retries=self.max_retries,
                max_oscillations=self.max_oscillations,
                step_callback=monitor,
                cancel_token=cancel_token,
            )
            results.warnings = list(results.warnings) + monitor.finalize()
        else:
            results = fixed_step_solver_template(
                take_step,
                func,
                t_span=t_span,
                y0=y0,
                max_dt=self.dt,
                t_eval=t_eval,
                step_callback=monitor,
                cancel_token=cancel_token,
            )
            results.warnings = monitor.finalize()

        results.method = self.method
        results.max_unitarity_residual = monitor.max_residual
        return results

    def propagator_result(
        self, model: BaseGeneratorModel, t0: float, t1: float, cancel_token=None
    ) -> OdeResult:
        """Integrate the identity from ``t0`` to ``t1``.

        The returned result carries the propagator in ``U`` and its final unitarity residual
        :math:`\\|U^\\dagger U - I\\|` in ``residual``.

        Raises:
            StabilityViolation: If the propagator of a closed system is not unitary.
        """
        dim = model.vectorized_dim if isinstance(model, LindbladModel) else model.dim
        results = self.integrate(
            model, np.eye(dim, dtype=complex), [t0, t1], cancel_token=cancel_token
        )
        U = results.y[-1]
        results.U = U
        results.residual = float(np.linalg.norm(U.conj().T @ U - np.eye(dim)))
        if not isinstance(model, LindbladModel):
            if results.residual > self.fatal_residual:
                raise StabilityViolation(
                    f"Propagator unitarity residual {results.residual:.3e} exceeds "
                    f"{self.fatal_residual:.1e}.",
                    time=t1,
                    step=results.num_steps,
                    residual=results.residual,
                )
            if results.residual > self.warn_residual:
                message = (
                    f"Propagator unitarity residual {results.residual:.3e} exceeds "
                    f"{self.warn_residual:.1e}."
                )
                warnings.warn(message, StabilityWarning, stacklevel=2)
                results.warnings.append(message)
        return results

    def propagator(
        self, model: BaseGeneratorModel, t0: float, t1: float, cancel_token=None
    ) -> np.ndarray:
        """The propagator :math:`U(t_1, t_0)` of ``model``."""
        return self.propagator_result(model, t0, t1, cancel_token=cancel_token).U

    def _monitor(self, model, callback=None):
        return _StabilityMonitor(
            closed=not isinstance(model, LindbladModel),
            renormalize=self.renormalize,
            warn_residual=self.warn_residual,
            fatal_residual=self.fatal_residual,
            callback=callback,
        )
