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

"""
Exceptions and warnings raised by ChronoPhoton.

Every error derives from :class:`ChronoPhotonError`, itself a :class:`~qiskit.QiskitError`, so
callers already handling Qiskit errors need no special casing. Errors raised during integration
carry the time and step index at which they occurred.
"""

from typing import Optional

from qiskit import QiskitError


class ChronoPhotonError(QiskitError):
    """Base class for errors raised by ChronoPhoton."""


class ConstructionError(ChronoPhotonError):
    """Raised for malformed descriptors, unknown registry names, and dimension mismatches.

    Construction errors are always raised before the first integration step is taken.
    """


class IntegrationError(ChronoPhotonError):
    """Raised when a trajectory cannot be continued.

    Examples are exhausted adaptive retries, step size underflow, a NaN or Inf in the state, or a
    trace drift too large to renormalize.
    """

    def __init__(self, *message, time: Optional[float] = None, step: Optional[int] = None):
        super().__init__(*message)
        self.time = time
        self.step = step

    def __str__(self):
        location = ""
        if self.time is not None:
            location = f" (t={self.time:.6g}, step={self.step})"
        return f"{self.message}{location}"


class StabilityViolation(IntegrationError):
    """Raised when a unitarity or positivity residual exceeds its fatal threshold."""

    def __init__(
        self,
        *message,
        time: Optional[float] = None,
        step: Optional[int] = None,
        residual: Optional[float] = None,
    ):
        super().__init__(*message, time=time, step=step)
        self.residual = residual


class CancellationSignal(ChronoPhotonError):
    """Raised when a run is stopped through a :class:`.CancellationToken`.

    ``partial_results`` holds the samples collected up to the cancellation point, when any were
    collected.
    """

    def __init__(
        self,
        *message,
        time: Optional[float] = None,
        step: Optional[int] = None,
        partial_results=None,
    ):
        super().__init__(*message)
        self.time = time
        self.step = step
        self.partial_results = partial_results


class StabilityWarning(UserWarning):
    """A unitarity residual exceeded the warning threshold but not the fatal one."""


class ConvergenceWarning(UserWarning):
    """An iterative method returned a best-effort, non-converged estimate."""
