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
====================================
Models (:mod:`chronophoton.models`)
====================================

.. currentmodule:: chronophoton.models

Time-dependent generators. A :class:`HamiltonianModel` is a static term plus signal-weighted
drive terms; a :class:`LindbladModel` adds :class:`JumpOperator` dissipation channels and is
evaluated in the vectorized superoperator view.

.. autosummary::
   :toctree: ../stubs/

   BaseGeneratorModel
   HamiltonianModel
   LindbladModel
   JumpOperator
   OperatorCollection
   ScipySparseOperatorCollection
"""

from .operator_collection import OperatorCollection, ScipySparseOperatorCollection
from .generator_model import BaseGeneratorModel, HamiltonianModel
from .lindblad_model import LindbladModel, JumpOperator, thermal_occupation
