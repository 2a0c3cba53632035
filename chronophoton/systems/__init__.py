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
Systems (:mod:`chronophoton.systems`)
======================================

.. currentmodule:: chronophoton.systems

Standard operators, tensor product bookkeeping, and the built-in driven systems.

.. autosummary::
   :toctree: ../stubs/

   Subsystem
   two_level
   parametric_cavity
   coupled_cavity_array
"""

from .subsystem import Subsystem, subsystem_dims, embed
from .operators import (
    annihilation,
    creation,
    number,
    identity,
    pauli_x,
    pauli_y,
    pauli_z,
    projector,
    coherence,
    named_operator,
    NAMED_OPERATORS,
)
from .driven_systems import two_level, parametric_cavity, coupled_cavity_array, site_lowering
