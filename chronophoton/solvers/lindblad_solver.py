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
Density matrix evolution under a Lindblad master equation, and steady states.
"""

import logging
import warnings
from typing import Callable, List, Optional, Tuple, Union

import numpy as np
from scipy.integrate._ivp.ivp import OdeResult
from scipy.linalg import svd
from scipy.sparse.linalg import ArpackError, ArpackNoConvergence, eigs

from chronophoton.exceptions import (
    ConstructionError,
    ConvergenceWarning,
    IntegrationError,
    StabilityViolation,
)
from chronophoton.models import LindbladModel
from chronophoton.states import DensityMatrix, Ket, as_state
from chronophoton.type_utils import devectorize_density_matrix, vectorize_density_matrix

from .integrator import Integrator

logger = logging.getLogger(__name__)

TRACE_TOL = 1e-10
TRACE_CORRECTION_BAND = 1e-6
EIGENVALUE_TOL = 1e-12

# shift for shift-invert Arnoldi, placed just right of the spectrum of a Liouvillian
STEADY_STATE_SHIFT = 1e-9


class LindbladSolver:
    r"""Evolves a density matrix under a :class:`.LindbladModel`.

    The master equation is integrated in the vectorized view with any :class:`.Integrator`
    method except split-operator. After every step the density matrix is

    - symmetrized, :math:`\rho \to (\rho + \rho^\dagger)/2`,
    - renormalized when :math:`|\mathrm{Tr}\rho - 1|` lies between ``trace_tol`` and
      ``trace_correction_band``, while a larger drift raises :class:`.IntegrationError`,
    - checked for positivity, an eigenvalue below ``-eigenvalue_tol`` raises
      :class:`.StabilityViolation`.
    """

    def __init__(
        self,
        model: LindbladModel,
        integrator: Optional[Integrator] = None,
        trace_tol: float = TRACE_TOL,
        trace_correction_band: float = TRACE_CORRECTION_BAND,
        eigenvalue_tol: float = EIGENVALUE_TOL,
        symmetrize: bool = True,
    ):
        """Initialize.

        Raises:
            ConstructionError: If ``model`` is not a Lindblad model, or the integrator uses
                split-operator steps.
        """
        if not isinstance(model, LindbladModel):
            raise ConstructionError("LindbladSolver requires a LindbladModel.")
        integrator = integrator or Integrator(method="rk4")
        if integrator.method == "split":
            raise ConstructionError(
                "Split-operator integration does not apply to dissipative dynamics."
            )
        if trace_correction_band < trace_tol:
            raise ConstructionError("trace_correction_band must be at least trace_tol.")
        self.model = model
        self.integrator = integrator
        self.trace_tol = trace_tol
        self.trace_correction_band = trace_correction_band
        self.eigenvalue_tol = eigenvalue_tol
        self.symmetrize = symmetrize

    def evolve(
        self,
        rho0: Union[DensityMatrix, Ket, np.ndarray],
        t_span: Union[Tuple, List, np.ndarray],
        t_eval: Optional[Union[Tuple, List, np.ndarray]] = None,
        cancel_token=None,
        step_callback: Optional[Callable] = None,
    ) -> OdeResult:
        """Evolve ``rho0`` over ``t_span``.

        Args:
            rho0: Initial state. Kets are converted to density matrices.
            t_span: Interval to solve over.
            t_eval: Times at which to return the solution.
            cancel_token: Token checked between steps.
            step_callback: Extra ``f(t, step, y_prev, y_next, h) -> y`` on the corrected,
                vectorized state of every step.

        Returns:
            OdeResult: ``y`` holds density matrices of shape ``(n, d, d)``. Also carries
            ``num_renormalized``, ``min_eigenvalue`` and the integrator fields.
        """
        dim = self.model.dim
        rho0 = as_state(rho0, dim=dim).to_density_matrix().data
        stats = {"num_renormalized": 0, "min_eigenvalue": np.inf}

        def enforce_invariants(t, step, y_prev, y_next, h):
            rho = devectorize_density_matrix(y_next, dim)
            if self.symmetrize:
                rho = 0.5 * (rho + rho.conj().T)
            trace = np.trace(rho).real
            drift = abs(trace - 1.0)
            if drift > self.trace_correction_band:
                raise IntegrationError(
                    f"Trace drifted to {trace:.12f}, outside the corrective band.",
                    time=t,
                    step=step,
                )
            if drift > self.trace_tol:
                rho = rho / trace
                stats["num_renormalized"] += 1
            min_eig = float(np.linalg.eigvalsh(rho)[0])
            stats["min_eigenvalue"] = min(stats["min_eigenvalue"], min_eig)
            if min_eig < -self.eigenvalue_tol:
                raise StabilityViolation(
                    f"Density matrix eigenvalue {min_eig:.3e} violates positivity.",
                    time=t,
                    step=step,
                    residual=min_eig,
                )
            y_next = vectorize_density_matrix(rho)
            if step_callback is not None:
                y_next = step_callback(t, step, y_prev, y_next, h)
            return y_next

        results = self.integrator.integrate(
            self.model,
            vectorize_density_matrix(rho0),
            t_span,
            t_eval=t_eval,
            cancel_token=cancel_token,
            step_callback=enforce_invariants,
        )
        results.y = devectorize_density_matrix(results.y, dim)
        results.num_renormalized = stats["num_renormalized"]
        results.min_eigenvalue = stats["min_eigenvalue"]
        if stats["num_renormalized"]:
            logger.debug("Renormalized the trace on %d steps", stats["num_renormalized"])
        return results


def steady_state(
    model: LindbladModel,
    t: float = 0.0,
    tol: float = 1e-12,
    maxiter: Optional[int] = None,
) -> DensityMatrix:
    r"""Steady state :math:`\rho_{ss}` with :math:`\mathcal{L}\rho_{ss} = 0`.

    The null vector of the vectorized Liouvillian at time ``t`` is found by shift-invert Arnoldi
    iteration. If the iteration fails the smallest right singular vector of the dense Liouvillian
    is used instead and a :class:`.ConvergenceWarning` is emitted. The result is renormalized to
    unit trace and symmetrized.

    Args:
        model: The Lindblad model.
        t: Time at which the Liouvillian is evaluated.
        tol: Arnoldi tolerance.
        maxiter: Maximum Arnoldi iterations.

    Returns:
        DensityMatrix: The steady state.

    Raises:
        ConstructionError: If ``model`` is not a Lindblad model.
    """
    if not isinstance(model, LindbladModel):
        raise ConstructionError("steady_state requires a LindbladModel.")

    dim = model.dim
    if dim == 1:
        return DensityMatrix(np.ones((1, 1), dtype=complex))

    liouvillian = model.liouvillian(t, sparse=True)
    try:
        _, vecs = eigs(
            liouvillian, k=1, sigma=STEADY_STATE_SHIFT, which="LM", tol=tol, maxiter=maxiter
        )
        vec = vecs[:, 0]
    except (ArpackNoConvergence, ArpackError, RuntimeError) as err:
        message = f"Iterative steady state solve failed ({err}); using a dense SVD."
        warnings.warn(message, ConvergenceWarning, stacklevel=2)
        logger.warning(message)
        vec = svd(liouvillian.toarray())[2][-1].conj()

    rho = devectorize_density_matrix(vec, dim)
    rho = rho / np.trace(rho)
    rho = 0.5 * (rho + rho.conj().T)
    return DensityMatrix(rho, validate=False)
