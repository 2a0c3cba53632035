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
===========================================
Simulation (:mod:`chronophoton.simulation`)
===========================================

.. currentmodule:: chronophoton.simulation

Descriptors, and single runs from a descriptor to :class:`.Results`.

.. autosummary::
   :toctree: ../stubs/

   SimulationDescriptor
   run_simulation
   Checkpoint
   CancellationToken
"""

from .descriptor import (
    SimulationDescriptor,
    GeneratorSpec,
    DriveTerm,
    InitialStateSpec,
    IntegratorSpec,
    LindbladSpec,
    JumpOperatorSpec,
    ObservableSpec,
    FloquetSpec,
    BatchSpec,
)
from .cancellation import CancellationToken
from .checkpoint import Checkpoint
from .builder import (
    build_generator,
    build_model,
    build_initial_state,
    build_integrator,
    build_observables,
    build_floquet_solver,
)
from .runner import run_simulation, sample_times
