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
Resolved simulation descriptors.

Parsing configuration files happens outside the core, which consumes the dataclasses below. They
can be built directly, from a plain mapping with :meth:`SimulationDescriptor.from_dict`, or from a
ready-made :meth:`SimulationDescriptor.template`.
"""

import copy
from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

from chronophoton.exceptions import ConstructionError
from chronophoton.registry import DEFAULT_REGISTRY, GeneratorKind
from chronophoton.solvers import METHOD_ORDERS
from chronophoton.type_utils import from_jsonable, to_jsonable

INITIAL_STATE_KINDS = (
    "ground",
    "basis",
    "fock",
    "excited",
    "random",
    "maximally_mixed",
    "explicit",
)
FLOQUET_METHODS = ("direct", "krylov")
LANES = ("sequential", "parallel", "device")


@dataclass
class DriveTerm:
    """A term ``amplitude * cos(frequency * t + phase) * operator`` of a composed generator.

    ``operator`` is a matrix or the name of a standard operator.
    """

    operator: Any
    amplitude: complex = 1.0
    frequency: float = 0.0
    phase: float = 0.0


@dataclass
class GeneratorSpec:
    """A named registry generator with parameters, or a composed generator."""

    name: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    terms: List[DriveTerm] = field(default_factory=list)
    static: Any = None
    period: Optional[float] = None

    def kind(self, registry=None):
        """The :class:`.GeneratorKind` this specification resolves to."""
        if self.name is None:
            return GeneratorKind.COMPOSED
        return (registry or DEFAULT_REGISTRY).generator_kind(self.name)


@dataclass
class InitialStateSpec:
    """How to prepare the initial state.

    ``kind`` is one of ``ground``, ``basis``/``fock`` (level ``index``), ``excited`` (level 1),
    ``random`` (seeded by ``seed``), ``maximally_mixed``, or ``explicit`` (``data`` is a vector,
    a matrix, or a ``qiskit.quantum_info`` state). ``density_matrix`` forces a density matrix.
    """

    kind: str = "ground"
    index: int = 0
    data: Any = None
    seed: Optional[int] = None
    density_matrix: bool = False


@dataclass
class IntegratorSpec:
    method: str = "rk4"
    dt: float = 1e-2
    adaptive: bool = False
    rtol: float = 1e-8
    atol: float = 1e-10
    max_retries: int = 12
    min_dt: float = 1e-12
    max_dt: Optional[float] = None
    max_oscillations: int = 8


@dataclass
class JumpOperatorSpec:
    """A jump operator given by name or matrix, with a rate and optional bath temperature."""

    operator: Any
    rate: float
    temperature: Optional[float] = None
    frequency: Optional[float] = None


@dataclass
class LindbladSpec:
    jump_operators: List[JumpOperatorSpec] = field(default_factory=list)


@dataclass
class ObservableSpec:
    names: List[str] = field(default_factory=list)
    sample_interval: float = 1.0


@dataclass
class FloquetSpec:
    method: str = "direct"
    period: Optional[float] = None
    num_modes: int = 3
    krylov_dim: Optional[int] = None
    max_iterations: int = 300
    tol: float = 1e-10
    hbar: float = 1.0
    dt: Optional[float] = None


@dataclass
class BatchSpec:
    """A sweep of one parameter over explicit ``values`` or ``num_points`` in ``[start, stop]``."""

    parameter: str
    values: Optional[List[Any]] = None
    start: Optional[float] = None
    stop: Optional[float] = None
    num_points: Optional[int] = None
    lane: str = "sequential"
    batch_width: int = 256
    max_workers: Optional[int] = None
    device: str = "auto"

    def parameter_values(self) -> List[Any]:
        """The swept values, in input order."""
        if self.values is not None:
            return list(self.values)
        if self.num_points == 1:
            return [self.start]
        return list(np.linspace(self.start, self.stop, self.num_points))

    def validate(self):
        if not self.parameter:
            raise ConstructionError("A batch specification needs a parameter name.")
        if self.values is None:
            if self.start is None or self.stop is None or not self.num_points:
                raise ConstructionError(
                    "A batch specification needs explicit values or start, stop and num_points."
                )
            if self.num_points < 1:
                raise ConstructionError("num_points must be positive.")
        elif len(self.values) == 0:
            raise ConstructionError("A batch specification needs at least one value.")
        if self.lane not in LANES:
            raise ConstructionError(f"Unknown lane '{self.lane}'. Choose from {LANES}.")
        if self.batch_width < 1:
            raise ConstructionError("batch_width must be positive.")


@dataclass
class SimulationDescriptor:
    """A fully resolved description of one simulation, or of a batch of them."""

    dimension: int
    generator: GeneratorSpec
    initial_state: InitialStateSpec = field(default_factory=InitialStateSpec)
    integrator: IntegratorSpec = field(default_factory=IntegratorSpec)
    duration: float = 1.0
    lindblad: Optional[LindbladSpec] = None
    observables: ObservableSpec = field(default_factory=ObservableSpec)
    floquet: Optional[FloquetSpec] = None
    batch: Optional[BatchSpec] = None
    subsystem_dims: Optional[Sequence[int]] = None
    seed: Optional[int] = None
    name: Optional[str] = None
    steady_state: bool = False
    keep_trajectory: bool = True

    def validate(self) -> "SimulationDescriptor":
        """Check the descriptor for consistency.

        Returns:
            SimulationDescriptor: ``self``.

        Raises:
            ConstructionError: On the first problem found.
        """
        if not isinstance(self.dimension, (int, np.integer)) or self.dimension < 1:
            raise ConstructionError(f"Dimension must be a positive integer, got {self.dimension}.")
        if not self.duration > 0:
            raise ConstructionError(f"Duration must be positive, got {self.duration}.")

        gen = self.generator
        if gen.name is None and not gen.terms and gen.static is None:
            raise ConstructionError("The generator needs a registry name or explicit terms.")
        if gen.name is not None and (gen.terms or gen.static is not None):
            raise ConstructionError("A generator is either named or composed, not both.")

        state = self.initial_state
        if state.kind not in INITIAL_STATE_KINDS:
            raise ConstructionError(
                f"Unknown initial state '{state.kind}'. Choose from {INITIAL_STATE_KINDS}."
            )
        if state.kind == "explicit" and state.data is None:
            raise ConstructionError("An explicit initial state needs data.")

        integ = self.integrator
        if integ.method not in METHOD_ORDERS:
            raise ConstructionError(
                f"Unknown integrator '{integ.method}'. Choose from {sorted(METHOD_ORDERS)}."
            )
        if not integ.dt > 0:
            raise ConstructionError(f"Step size must be positive, got {integ.dt}.")
        if self.lindblad is not None and self.lindblad.jump_operators and integ.method == "split":
            raise ConstructionError("Split-operator integration does not apply to Lindblad runs.")

        if not self.observables.sample_interval > 0:
            raise ConstructionError("The sample interval must be positive.")

        if self.floquet is not None:
            if self.floquet.method not in FLOQUET_METHODS:
                raise ConstructionError(
                    f"Unknown Floquet method '{self.floquet.method}'. "
                    f"Choose from {FLOQUET_METHODS}."
                )
            if self.lindblad is not None and self.lindblad.jump_operators:
                raise ConstructionError("Floquet analysis requires a closed system.")

        if self.subsystem_dims is not None:
            if int(np.prod(self.subsystem_dims)) != self.dimension:
                raise ConstructionError(
                    f"Subsystem dimensions {list(self.subsystem_dims)} do not multiply to "
                    f"{self.dimension}."
                )

        if self.batch is not None:
            self.batch.validate()
        return self

    def with_parameter(self, name: str, value: Any) -> "SimulationDescriptor":
        """A copy with parameter ``name`` set to ``value``.

        ``name`` is a generator parameter (``"omega_d"``), a descriptor field (``"duration"``),
        or a dotted path into the descriptor (``"integrator.dt"``,
        ``"lindblad.jump_operators.0.rate"``).
        The copy carries no batch specification.

        Raises:
            ConstructionError: If a dotted path does not exist.
        """
        new = copy.deepcopy(self)
        new.batch = None
        if "." in name:
            *path, last = name.split(".")
            target = new
            try:
                for part in path:
                    if isinstance(target, list):
                        target = target[int(part)]
                    else:
                        target = getattr(target, part)
                if isinstance(target, list):
                    target[int(last)] = value
                elif isinstance(target, dict):
                    target[last] = value
                elif hasattr(target, last):
                    setattr(target, last, value)
                else:
                    raise AttributeError(last)
            except (AttributeError, IndexError, ValueError, TypeError) as err:
                raise ConstructionError(f"Descriptor has no parameter '{name}'.") from err
        elif name in _TOP_LEVEL_PARAMETERS:
            setattr(new, name, value)
        else:
            new.generator.parameters[name] = value
        return new

    def to_dict(self) -> Dict[str, Any]:
        """Plain python representation in the flat layout."""
        return to_jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SimulationDescriptor":
        """Build a descriptor from a mapping.

        Accepts the flat layout produced by :meth:`to_dict`, and the nested layout with sections
        ``simulation``, ``system``, ``lindblad``, ``observables``, ``gpu``, ``parameter_sweep``
        and ``floquet``.

        Raises:
            ConstructionError: If the mapping is malformed.
        """
        try:
            if "system" in data or "simulation" in data:
                return _from_nested(data)
            return _from_flat(data)
        except (KeyError, TypeError, ValueError) as err:
            raise ConstructionError(f"Malformed simulation descriptor: {err!r}") from err

    @classmethod
    def template(cls, name: str) -> "SimulationDescriptor":
        """A ready-made descriptor.

        Templates: ``driven_tls``, ``parametric_cavity``, ``coupled_cavities``, ``damped_cavity``.

        Raises:
            ConstructionError: For an unknown template.
        """
        try:
            builder = _TEMPLATES[name]
        except KeyError as err:
            raise ConstructionError(
                f"Unknown template '{name}'. Choose from {sorted(_TEMPLATES)}."
            ) from err
        return builder()


_TOP_LEVEL_PARAMETERS = ("duration", "seed", "dimension", "name")


def _build(klass, data: Optional[Mapping[str, Any]]):
    if data is None:
        return None
    names = {f.name for f in fields(klass)}
    unknown = set(data) - names
    if unknown:
        raise ConstructionError(f"Unknown {klass.__name__} fields: {sorted(unknown)}.")
    return klass(**{k: from_jsonable(v) for k, v in data.items()})


def _from_flat(data):
    data = dict(data)
    generator = dict(data.pop("generator"))
    generator["terms"] = [_build(DriveTerm, term) for term in generator.get("terms", [])]
    lindblad = data.pop("lindblad", None)
    if lindblad is not None:
        lindblad = LindbladSpec(
            [_build(JumpOperatorSpec, op) for op in lindblad.get("jump_operators", [])]
        )
    return SimulationDescriptor(
        generator=_build(GeneratorSpec, generator),
        initial_state=_build(InitialStateSpec, data.pop("initial_state", {})),
        integrator=_build(IntegratorSpec, data.pop("integrator", {})),
        lindblad=lindblad,
        observables=_build(ObservableSpec, data.pop("observables", {})),
        floquet=_build(FloquetSpec, data.pop("floquet", None)),
        batch=_build(BatchSpec, data.pop("batch", None)),
        **data,
    )


def _from_nested(data):
    simulation = data.get("simulation", {})
    system = data["system"]

    integrator = IntegratorSpec(
        method=simulation.get("integrator", "rk4"),
        dt=simulation.get("timestep", IntegratorSpec.dt),
        adaptive=simulation.get("adaptive", False),
    )
    for key in ("rtol", "atol", "max_retries", "min_dt", "max_dt", "max_oscillations"):
        if key in simulation:
            setattr(integrator, key, simulation[key])

    lindblad = None
    section = data.get("lindblad", {})
    if section.get("enabled", bool(section.get("operators"))):
        jump_operators = []
        for op in section.get("operators", []):
            # a zero temperature is a bath without thermal excitation
            temperature = op.get("temperature") or None
            jump_operators.append(
                JumpOperatorSpec(
                    operator=from_jsonable(op.get("type", op.get("operator"))),
                    rate=op["rate"],
                    temperature=temperature,
                    frequency=op.get("frequency"),
                )
            )
        lindblad = LindbladSpec(jump_operators)

    observables = data.get("observables", {})
    floquet = data.get("floquet")

    batch = None
    sweep = data.get("parameter_sweep", {})
    gpu = data.get("gpu", {})
    if sweep.get("enabled", False):
        lane = sweep.get("lane", "device" if gpu.get("enabled", False) else "sequential")
        values = sweep.get("values")
        start = stop = None
        if values is None:
            start, stop = sweep["range"]
        batch = BatchSpec(
            parameter=sweep["parameter"],
            values=values,
            start=start,
            stop=stop,
            num_points=sweep.get("num_points"),
            lane=lane,
            batch_width=gpu.get("batch_size", BatchSpec.batch_width),
            max_workers=sweep.get("max_workers"),
            device=gpu.get("device", BatchSpec.device),
        )

    return SimulationDescriptor(
        dimension=system["hilbert_dim"],
        generator=GeneratorSpec(
            name=system["hamiltonian"], parameters=dict(system.get("parameters", {}))
        ),
        initial_state=_build(InitialStateSpec, system.get("initial_state", {})),
        integrator=integrator,
        duration=simulation["duration"],
        lindblad=lindblad,
        observables=ObservableSpec(
            names=list(observables.get("list", [])),
            sample_interval=observables.get("save_interval", ObservableSpec.sample_interval),
        ),
        floquet=_build(FloquetSpec, floquet),
        batch=batch,
        subsystem_dims=system.get("subsystem_dims"),
        seed=simulation.get("seed"),
        name=simulation.get("name"),
        steady_state=simulation.get("steady_state", False),
    )


def _driven_tls():
    return SimulationDescriptor(
        name="driven_tls",
        dimension=2,
        generator=GeneratorSpec(
            name="two_level", parameters={"omega_0": 5.0, "omega_d": 5.0, "rabi_freq": 0.5}
        ),
        integrator=IntegratorSpec(method="rk4", dt=0.01),
        duration=50.0,
        observables=ObservableSpec(names=["population"], sample_interval=1.0),
    )


def _parametric_cavity():
    return SimulationDescriptor(
        name="parametric_cavity",
        dimension=10,
        generator=GeneratorSpec(
            name="parametric_cavity", parameters={"omega_c": 1.0, "omega_p": 2.0, "g": 0.05}
        ),
        integrator=IntegratorSpec(method="magnus4", dt=0.01),
        duration=20.0,
        observables=ObservableSpec(names=["number", "entropy"], sample_interval=0.5),
        floquet=FloquetSpec(method="direct"),
    )


def _coupled_cavities():
    return SimulationDescriptor(
        name="coupled_cavities",
        dimension=9,
        generator=GeneratorSpec(
            name="coupled_cavity_array",
            parameters={"omega_c": 1.0, "j1": 0.2, "j2": 0.05},
        ),
        initial_state=InitialStateSpec(kind="basis", index=1),
        integrator=IntegratorSpec(method="magnus4", dt=0.02),
        duration=40.0,
        observables=ObservableSpec(names=["population"], sample_interval=0.5),
    )


def _damped_cavity():
    return SimulationDescriptor(
        name="damped_cavity",
        dimension=6,
        generator=GeneratorSpec(
            name="parametric_cavity", parameters={"omega_c": 1.0, "omega_p": 2.0, "g": 0.0}
        ),
        initial_state=InitialStateSpec(kind="fock", index=3, density_matrix=True),
        integrator=IntegratorSpec(method="rk4", dt=0.005),
        duration=5.0,
        lindblad=LindbladSpec([JumpOperatorSpec(operator="annihilation", rate=0.2)]),
        observables=ObservableSpec(names=["number", "purity"], sample_interval=0.25),
        steady_state=True,
    )


_TEMPLATES = {
    "driven_tls": _driven_tls,
    "parametric_cavity": _parametric_cavity,
    "coupled_cavities": _coupled_cavities,
    "damped_cavity": _damped_cavity,
}
