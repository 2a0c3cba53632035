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
==================================
ChronoPhoton (:mod:`chronophoton`)
==================================

.. currentmodule:: chronophoton

Time evolution, Floquet analysis and observables of periodically driven, possibly open, quantum
systems, for single runs and for batches of parameter instances.
"""
from .version import __version__

from .exceptions import (
    ChronoPhotonError,
    ConstructionError,
    IntegrationError,
    StabilityViolation,
    CancellationSignal,
    StabilityWarning,
    ConvergenceWarning,
)
from .utils import configure_logging

from .signals import Signal, SignalList
from .models import HamiltonianModel, LindbladModel, JumpOperator
from .states import Ket, DensityMatrix
from .results import Results, FloquetSpectrum, Trajectory, BatchResults
from .solvers import Integrator, FloquetSolver, LindbladSolver, steady_state
from .registry import Registry, GeneratorKind, DEFAULT_REGISTRY
from .simulation import (
    SimulationDescriptor,
    CancellationToken,
    Checkpoint,
    run_simulation,
)
from .batch import BatchExecutor, DeviceContext, run_batch

from . import models
from . import signals
from . import solvers
from . import observables
from . import systems
from . import simulation
from . import batch
