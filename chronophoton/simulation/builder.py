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
Construction of models, states, integrators and observables from a descriptor.

Everything here runs before the first integration step, so any problem surfaces as a
:class:`.ConstructionError` before work begins.
"""

import logging
from dataclasses import replace
from typing import List, Optional

import numpy as np

from chronophoton.exceptions import ConstructionError
from chronophoton.models import BaseGeneratorModel, HamiltonianModel, JumpOperator, LindbladModel
from chronophoton.observables import Observable, resolve_observable
from chronophoton.registry import DEFAULT_REGISTRY, Registry
from chronophoton.signals import Signal
from chronophoton.solvers import FloquetSolver, Integrator
from chronophoton.states import DensityMatrix, Ket, State, as_state
from chronophoton.systems import named_operator
from chronophoton.type_utils import to_array

from .descriptor import (
    GeneratorSpec,
    IntegratorSpec,
    JumpOperatorSpec,
    SimulationDescriptor,
)

logger = logging.getLogger(__name__)


def _operator(operator, dim: int) -> np.ndarray:
    if isinstance(operator, str):
        return named_operator(operator, dim)
    operator = to_array(operator)
    if operator.shape != (dim, dim):
        raise ConstructionError(
            f"Operator of shape {operator.shape} does not match dimension {dim}."
        )
    return operator


def build_generator(
    spec: GeneratorSpec, dim: int, registry: Optional[Registry] = None
) -> BaseGeneratorModel:
    """The closed-system generator described by ``spec``.

    A named spec is resolved through ``registry``. A composed spec becomes a
    :class:`.HamiltonianModel` with one harmonic :class:`.Signal` per drive term.
    """
    registry = registry or DEFAULT_REGISTRY
    if spec.name is not None:
        return registry.build_generator(spec.name, spec.parameters, dim)

    static = None if spec.static is None else _operator(spec.static, dim)
    operators = None
    signals = None
    if spec.terms:
        operators = [_operator(term.operator, dim) for term in spec.terms]
        signals = [
            Signal(term.amplitude, term.frequency, term.phase, name=f"term_{idx}")
            for idx, term in enumerate(spec.terms)
        ]
    return HamiltonianModel(
        static_operator=static, operators=operators, signals=signals, period=spec.period
    )


def build_jump_operator(spec: JumpOperatorSpec, dim: int) -> JumpOperator:
    return JumpOperator(
        _operator(spec.operator, dim),
        rate=spec.rate,
        temperature=spec.temperature,
        frequency=spec.frequency,
        name=spec.operator if isinstance(spec.operator, str) else None,
    )


def build_model(
    descriptor: SimulationDescriptor, registry: Optional[Registry] = None
) -> BaseGeneratorModel:
    """The generator of ``descriptor``, wrapped in a :class:`.LindbladModel` when it has jump
    operators.

    Raises:
        ConstructionError: If jump operators are attached to a generator that is not a
            :class:`.HamiltonianModel`.
    """
    model = build_generator(descriptor.generator, descriptor.dimension, registry)
    if descriptor.lindblad is None or not descriptor.lindblad.jump_operators:
        return model
    if not isinstance(model, HamiltonianModel):
        raise ConstructionError(
            f"Jump operators require a HamiltonianModel, got {type(model).__name__}."
        )
    jumps = [
        build_jump_operator(op, descriptor.dimension) for op in descriptor.lindblad.jump_operators
    ]
    return LindbladModel(model, jumps)


def build_initial_state(descriptor: SimulationDescriptor) -> State:
    """The initial state of ``descriptor``.

    Runs with jump operators always start from a density matrix.
    """
    spec = descriptor.initial_state
    dim = descriptor.dimension
    seed = descriptor.seed if spec.seed is None else spec.seed

    if spec.kind == "ground":
        state = Ket.ground(dim)
    elif spec.kind in ("basis", "fock"):
        state = Ket.basis(dim, spec.index)
    elif spec.kind == "excited":
        state = Ket.basis(dim, 1)
    elif spec.kind == "random":
        if spec.density_matrix:
            state = DensityMatrix.random(dim, seed=seed)
        else:
            state = Ket.random(dim, seed=seed)
    elif spec.kind == "maximally_mixed":
        state = DensityMatrix.maximally_mixed(dim)
    elif spec.kind == "explicit":
        state = as_state(spec.data, dim=dim)
    else:
        raise ConstructionError(f"Unknown initial state '{spec.kind}'.")

    open_system = descriptor.lindblad is not None and bool(descriptor.lindblad.jump_operators)
    if spec.density_matrix or open_system:
        state = state.to_density_matrix()
    return state


def build_integrator(spec: IntegratorSpec) -> Integrator:
    return Integrator(
        method=spec.method,
        dt=spec.dt,
        adaptive=spec.adaptive,
        rtol=spec.rtol,
        atol=spec.atol,
        max_dt=spec.max_dt,
        min_dt=spec.min_dt,
        max_retries=spec.max_retries,
        max_oscillations=spec.max_oscillations,
    )


def build_observables(
    descriptor: SimulationDescriptor, registry: Optional[Registry] = None
) -> List[Observable]:
    """Resolve every requested observable name.

    Raises:
        ConstructionError: For unknown or duplicated names.
    """
    names = list(descriptor.observables.names)
    if len(set(names)) != len(names):
        raise ConstructionError(f"Duplicate observable names in {names}.")
    return [
        resolve_observable(
            name,
            descriptor.dimension,
            subsystem_dims=descriptor.subsystem_dims,
            registry=registry or DEFAULT_REGISTRY,
        )
        for name in names
    ]


def build_floquet_solver(
    descriptor: SimulationDescriptor, model: BaseGeneratorModel
) -> Optional[FloquetSolver]:
    """The Floquet solver requested by ``descriptor``, or ``None``.

    The period is integrated with the descriptor's integrator; ``FloquetSpec.dt`` replaces its
    step size when given.
    """
    spec = descriptor.floquet
    if spec is None:
        return None
    integrator_spec = descriptor.integrator
    if spec.dt is not None:
        integrator_spec = replace(integrator_spec, dt=spec.dt)
    integrator = build_integrator(integrator_spec)
    return FloquetSolver(
        model,
        integrator=integrator,
        method=spec.method,
        period=spec.period,
        num_modes=spec.num_modes,
        krylov_dim=spec.krylov_dim,
        max_iterations=spec.max_iterations,
        tol=spec.tol,
        hbar=spec.hbar,
        seed=descriptor.seed,
    )
