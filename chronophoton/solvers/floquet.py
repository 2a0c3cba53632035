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
Floquet analysis of periodic Hamiltonians.
"""

import copy
import logging
import warnings
from typing import Optional

import numpy as np
from scipy.linalg import eig
from scipy.sparse.linalg import ArpackNoConvergence, LinearOperator, eigs

from chronophoton.exceptions import ConstructionError, ConvergenceWarning, StabilityViolation
from chronophoton.models import BaseGeneratorModel, LindbladModel
from chronophoton.results import FloquetSpectrum

from .arnoldi import arnoldi_eig
from .integrator import Integrator

logger = logging.getLogger(__name__)

FLOQUET_METHODS = ("direct", "krylov")


def reduce_quasi_energies(quasi_energies, period: float, hbar: float = 1.0) -> np.ndarray:
    r"""Reduce quasi-energies into the canonical interval :math:`(-\hbar\omega/2, \hbar\omega/2]`,
    :math:`\omega = 2\pi/T`."""
    width = hbar * 2 * np.pi / period
    quasi_energies = np.asarray(quasi_energies, dtype=float)
    return quasi_energies - width * np.ceil((quasi_energies - 0.5 * width) / width)


def quasi_energies_from_eigenvalues(eigenvalues, period: float, hbar: float = 1.0) -> np.ndarray:
    r"""Quasi-energies :math:`\epsilon = -\hbar\arg(\lambda)/T` of propagator eigenvalues, reduced
    into the canonical interval."""
    return reduce_quasi_energies(-hbar * np.angle(eigenvalues) / period, period, hbar)


class FloquetSolver:
    r"""Quasi-energies and Floquet modes from the one-period propagator :math:`U(T)`.

    Eigenvalues :math:`\lambda_\alpha = e^{-i\epsilon_\alpha T/\hbar}` of :math:`U(T)` give the
    quasi-energies :math:`\epsilon_\alpha` and eigenvectors the Floquet modes at the start of the
    period.

    - ``method="direct"`` integrates the identity over one period, which builds :math:`U(T)` for
      all basis vectors at once, and diagonalizes it. If the propagator misses the unitarity bound
      with a fixed step, the period is integrated again under adaptive step control.
    - ``method="krylov"`` never forms :math:`U(T)`. It runs implicitly restarted Arnoldi (ARPACK
      through :func:`scipy.sparse.linalg.eigs`) on a :class:`~scipy.sparse.linalg.LinearOperator`
      whose action integrates a vector over one period. All eigenvalues of :math:`U(T)` lie on
      the unit circle, so the ``num_modes`` with the largest real part are targeted, i.e. the
      quasi-energies closest to zero. When ARPACK exhausts ``max_iterations`` restarts, the
      converged pairs are topped up with Ritz pairs of a single Arnoldi pass and returned with
      ``converged=False`` and a :class:`.ConvergenceWarning`.
    """

    def __init__(
        self,
        model: BaseGeneratorModel,
        integrator: Optional[Integrator] = None,
        method: str = "direct",
        period: Optional[float] = None,
        num_modes: int = 3,
        krylov_dim: Optional[int] = None,
        max_iterations: int = 300,
        tol: float = 1e-10,
        hbar: float = 1.0,
        t0: float = 0.0,
        seed: Optional[int] = None,
    ):
        """Initialize.

        Args:
            model: A closed, periodic generator.
            integrator: Integrator for one period. Defaults to 4th order Magnus.
            method: ``"direct"`` or ``"krylov"``.
            period: Drive period. Defaults to ``model.period``.
            num_modes: Number of quasi-energies returned by the krylov method.
            krylov_dim: Krylov subspace dimension, at least ``num_modes + 2``. Defaults to
                ``min(dim, max(2 * num_modes + 1, 20))``.
            max_iterations: Maximum number of implicit restarts.
            tol: Relative residual tolerance of the krylov eigenpairs.
            hbar: Value of the reduced Planck constant.
            t0: Start of the period.
            seed: Seed of the krylov start vector.

        Raises:
            ConstructionError: For an open or aperiodic model, or invalid settings.
        """
        method = method.lower()
        if method not in FLOQUET_METHODS:
            raise ConstructionError(
                f"Unknown Floquet method '{method}'. Choose from {list(FLOQUET_METHODS)}."
            )
        if isinstance(model, LindbladModel):
            raise ConstructionError("Floquet analysis requires a closed (Hamiltonian) model.")

        period = model.period if period is None else period
        if period is None:
            raise ConstructionError(
                "Floquet analysis requires a time-periodic generator or an explicit period."
            )
        if not period > 0:
            raise ConstructionError(f"Floquet period must be positive, got {period}.")
        if hbar <= 0:
            raise ConstructionError("hbar must be positive.")

        self.model = model
        self.integrator = integrator or Integrator(method="magnus4", dt=period / 200)
        self.method = method
        self.period = float(period)
        self.num_modes = num_modes
        self.krylov_dim = min(model.dim, krylov_dim or max(2 * num_modes + 1, 20))
        if method == "krylov":
            _check_krylov_sizes(model.dim, num_modes, self.krylov_dim)
        self.max_iterations = max_iterations
        self.tol = tol
        self.hbar = hbar
        self.t0 = t0
        self.seed = seed

    def one_period_propagator(self, cancel_token=None) -> np.ndarray:
        """The propagator :math:`U(t_0 + T, t_0)`."""
        return self._direct_propagator(cancel_token).U

    def solve(self, cancel_token=None) -> FloquetSpectrum:
        """Compute the quasi-energy spectrum."""
        logger.info(
            "Floquet analysis (%s) of a dimension %d model, period %.6g",
            self.method,
            self.model.dim,
            self.period,
        )
        if self.method == "direct":
            return self._solve_direct(cancel_token)
        return self._solve_krylov(cancel_token)

    def _direct_propagator(self, cancel_token):
        integrator = self.integrator
        t1 = self.t0 + self.period
        if integrator.adaptive:
            return integrator.propagator_result(self.model, self.t0, t1, cancel_token)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                result = integrator.propagator_result(self.model, self.t0, t1, cancel_token)
                failed = result.residual > integrator.warn_residual
            except StabilityViolation:
                failed = True

        if not failed:
            for warning in caught:
                warnings.warn_explicit(
                    warning.message, warning.category, warning.filename, warning.lineno
                )
            return result

        logger.info("Fixed step propagator missed the unitarity bound, switching to adaptive steps")
        adaptive = copy.copy(integrator)
        adaptive.adaptive = True
        adaptive.rtol = min(integrator.rtol, 1e-10)
        adaptive.atol = min(integrator.atol, 1e-12)
        result = adaptive.propagator_result(self.model, self.t0, t1, cancel_token)
        result.warnings.insert(
            0, "Fixed step one-period propagator was not unitary; recomputed adaptively."
        )
        return result

    def _solve_direct(self, cancel_token) -> FloquetSpectrum:
        result = self._direct_propagator(cancel_token)
        eigenvalues, modes = eig(result.U)
        quasi_energies = quasi_energies_from_eigenvalues(eigenvalues, self.period, self.hbar)
        order = np.argsort(quasi_energies, kind="stable")
        modes = modes[:, order]
        modes = modes / np.linalg.norm(modes, axis=0)
        return FloquetSpectrum(
            quasi_energies[order],
            modes,
            period=self.period,
            method="direct",
            hbar=self.hbar,
            converged=True,
            warnings=result.warnings,
            propagator_residual=result.residual,
        )

    def _solve_krylov(self, cancel_token) -> FloquetSpectrum:
        dim = self.model.dim
        t_span = [self.t0, self.t0 + self.period]
        collected_warnings = []

        def apply_U(v):
            v = np.asarray(v, dtype=complex).reshape(-1)
            result = self.integrator.integrate(self.model, v, t_span, cancel_token=cancel_token)
            collected_warnings.extend(m for m in result.warnings if m not in collected_warnings)
            return result.y[-1]

        rng = np.random.default_rng(self.seed)
        start = rng.normal(size=dim) + 1j * rng.normal(size=dim)

        converged = True
        if self.num_modes >= dim - 1:
            # ARPACK needs num_modes < dim - 1; the full Krylov space is exact
            values, vectors, _ = arnoldi_eig(apply_U, start, dim)
            keep = np.argsort(-values.real, kind="stable")[: self.num_modes]
            values, vectors = values[keep], vectors[:, keep]
        else:
            operator = LinearOperator((dim, dim), matvec=apply_U, dtype=complex)
            try:
                values, vectors = eigs(
                    operator,
                    k=self.num_modes,
                    which="LR",
                    ncv=self.krylov_dim,
                    v0=start,
                    maxiter=self.max_iterations,
                    tol=self.tol,
                )
            except ArpackNoConvergence as err:
                converged = False
                values, vectors = self._top_up(apply_U, start, err.eigenvalues, err.eigenvectors)

        vectors = vectors / np.linalg.norm(vectors, axis=0)
        residuals = np.array(
            [np.linalg.norm(apply_U(vec) - val * vec) for val, vec in zip(values, vectors.T)]
        )
        max_residual = float(np.max(residuals))
        logger.debug("Krylov Floquet eigenpairs: max residual %.3e", max_residual)

        if not converged:
            message = (
                f"Krylov Floquet iteration did not converge in {self.max_iterations} iterations "
                f"(max residual {max_residual:.3e} > tol {self.tol:.1e}); increase max_iterations "
                "or krylov_dim, or use method='direct'."
            )
            warnings.warn(message, ConvergenceWarning, stacklevel=3)
            logger.warning(message)
            collected_warnings.append(message)

        quasi_energies = quasi_energies_from_eigenvalues(values, self.period, self.hbar)
        order = np.argsort(quasi_energies, kind="stable")
        return FloquetSpectrum(
            quasi_energies[order],
            vectors[:, order],
            period=self.period,
            method="krylov",
            hbar=self.hbar,
            converged=converged,
            residuals=residuals[order],
            warnings=collected_warnings,
        )

    def _top_up(self, apply_U, start, values, vectors):
        """Complete the pairs ARPACK converged with Ritz pairs of one Arnoldi pass."""
        values = np.asarray(values, dtype=complex).reshape(-1)
        vectors = np.asarray(vectors, dtype=complex).reshape(self.model.dim, len(values))
        missing = self.num_modes - len(values)
        if missing <= 0:
            return values[: self.num_modes], vectors[:, : self.num_modes]

        ritz_values, ritz_vectors, residuals = arnoldi_eig(apply_U, start, self.krylov_dim)
        picked = []
        for index in np.argsort(residuals, kind="stable"):
            if len(picked) == missing:
                break
            if np.all(np.abs(values - ritz_values[index]) > 1e-8):
                picked.append(index)
        values = np.concatenate([values, ritz_values[picked]])
        vectors = np.concatenate([vectors, ritz_vectors[:, picked]], axis=1)
        return values, vectors


def _check_krylov_sizes(dim: int, num_modes: int, krylov_dim: int):
    if not 1 <= num_modes <= dim:
        raise ConstructionError(f"num_modes must lie in [1, {dim}], got {num_modes}.")
    if num_modes < dim - 1 and krylov_dim < num_modes + 2:
        raise ConstructionError(
            f"krylov_dim must be at least num_modes + 2 = {num_modes + 2}, got {krylov_dim}."
        )
