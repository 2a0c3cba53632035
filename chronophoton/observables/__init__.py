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

r"""
==============================================
Observables (:mod:`chronophoton.observables`)
==============================================

.. currentmodule:: chronophoton.observables

Reductions of states to numbers: expectation values, two-time correlators, and
entanglement measures on a tensor product structure. None of these functions modify the
states they are given.

.. autosummary::
   :toctree: ../stubs/

   Observable
   builtin_observable
   expectation_value
   expectation_values
   two_time_correlator
   partial_trace
   purity
   von_neumann_entropy
   entanglement_entropy
   concurrence
"""

from .entanglement import (
    partial_trace,
    purity,
    von_neumann_entropy,
    entanglement_entropy,
    concurrence,
)
from .expectation import expectation_value, expectation_values, two_time_correlator
from .observable import Observable, BUILTIN_OBSERVABLES, builtin_observable, resolve_observable
