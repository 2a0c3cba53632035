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
======================================
Solvers (:mod:`chronophoton.solvers`)
======================================

.. currentmodule:: chronophoton.solvers

Time stepping, Floquet analysis and master equation evolution.

.. autosummary::
   :toctree: ../stubs/

   Integrator
   FloquetSolver
   LindbladSolver
   steady_state
   reduce_quasi_energies
"""

from .fixed_step_solvers import (
    METHOD_ORDERS,
    SplitOperatorStep,
    fixed_step_solver_template,
    magnus2_step,
    magnus4_step,
    rk4_step,
)
from .adaptive import adaptive_step_solver_template
from .arnoldi import arnoldi_basis, arnoldi_eig
from .integrator import Integrator
from .floquet import FloquetSolver, reduce_quasi_energies, quasi_energies_from_eigenvalues
from .lindblad_solver import LindbladSolver, steady_state
