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
Name tables for generators and observables.

Registration and evaluation are separate phases. External code registers constructors by name.
A run then resolves each name once, before the first step, and afterwards only calls the
constructed model or observable.

A generator constructor has the signature ``constructor(parameters, dim) -> BaseGeneratorModel``,
with ``parameters`` a mapping of named values. An observable constructor has the signature
``constructor(dim, subsystem_dims)`` and returns an :class:`.Observable`, an operator matrix, or a
function of a state.
"""

import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np
from scipy.sparse import issparse

from chronophoton.exceptions import ConstructionError
from chronophoton.models import BaseGeneratorModel
from chronophoton.observables import Observable
from chronophoton.systems import coupled_cavity_array, parametric_cavity, two_level

logger = logging.getLogger(__name__)

_REQUIRED = object()


class GeneratorKind(Enum):
    """The variants a generator specification resolves to."""

    TWO_LEVEL = "two_level"
    PARAMETRIC_CAVITY = "parametric_cavity"
    COUPLED_CAVITY_ARRAY = "coupled_cavity_array"
    COMPOSED = "composed"
    EXTERNAL = "external"


def _param(parameters: Mapping[str, Any], *names: str, default=_REQUIRED):
    for name in names:
        if name in parameters:
            return parameters[name]
    if default is _REQUIRED:
        raise ConstructionError(f"Missing generator parameter '{names[0]}'.")
    return default


def _two_level(parameters, dim):
    if dim != 2:
        raise ConstructionError(f"The two-level system has dimension 2, got {dim}.")
    return two_level(
        omega_0=_param(parameters, "omega_0"),
        rabi_frequency=_param(parameters, "rabi_freq", "rabi_frequency"),
        omega_d=_param(parameters, "omega_d", default=None),
        phase=_param(parameters, "phase", default=0.0),
        drive=_param(parameters, "drive", default="linear"),
    )


def _parametric_cavity(parameters, dim):
    return parametric_cavity(
        omega_c=_param(parameters, "omega_c"),
        omega_p=_param(parameters, "omega_p"),
        g=_param(parameters, "g"),
        dim=dim,
    )


def _coupled_cavity_array(parameters, dim):
    pattern = _param(parameters, "pattern", default=None)
    if pattern is None:
        pattern = "ssh" if "j2" in parameters else "uniform"
    drive_site = _param(parameters, "drive_site", default=None)
    return coupled_cavity_array(
        num_cavities=dim - 1,
        omega_c=_param(parameters, "omega_c"),
        j1=_param(parameters, "j1", "j"),
        j2=_param(parameters, "j2", default=None),
        pattern=pattern,
        drive_site=None if drive_site is None else int(drive_site),
        drive_amplitude=_param(parameters, "drive_amplitude", default=0.0),
        drive_frequency=_param(parameters, "drive_frequency", default=None),
    )


class Registry:
    """Lookup table from names to generator and observable constructors.

    A new registry holds the built-in generators ``two_level`` (alias ``driven_tls``),
    ``parametric_cavity`` (alias ``driven_cavity``) and ``coupled_cavity_array`` (alias
    ``coupled_cavities``). Built-in observables are resolved by
    :func:`~chronophoton.observables.builtin_observable` and need no entry.
    """

    def __init__(self, include_builtins: bool = True):
        self._lock = threading.Lock()
        self._generators = {}
        self._observables = {}
        if include_builtins:
            for names, kind, constructor in (
                (("two_level", "driven_tls"), GeneratorKind.TWO_LEVEL, _two_level),
                (
                    ("parametric_cavity", "driven_cavity"),
                    GeneratorKind.PARAMETRIC_CAVITY,
                    _parametric_cavity,
                ),
                (
                    ("coupled_cavity_array", "coupled_cavities"),
                    GeneratorKind.COUPLED_CAVITY_ARRAY,
                    _coupled_cavity_array,
                ),
            ):
                for name in names:
                    self._generators[name] = (kind, constructor)

    def register_generator(self, name: str, constructor: Callable, overwrite: bool = False):
        """Register an external generator constructor under ``name``.

        Raises:
            ConstructionError: If ``name`` is taken and ``overwrite`` is ``False``, or
                ``constructor`` is not callable.
        """
        if not callable(constructor):
            raise ConstructionError(f"Generator constructor for '{name}' is not callable.")
        with self._lock:
            if name in self._generators and not overwrite:
                raise ConstructionError(f"Generator '{name}' is already registered.")
            self._generators[name] = (GeneratorKind.EXTERNAL, constructor)
        logger.debug("Registered generator '%s'", name)

    def register_observable(self, name: str, constructor: Callable, overwrite: bool = False):
        """Register an external observable constructor under ``name``.

        Raises:
            ConstructionError: If ``name`` is taken and ``overwrite`` is ``False``, or
                ``constructor`` is not callable.
        """
        if not callable(constructor):
            raise ConstructionError(f"Observable constructor for '{name}' is not callable.")
        with self._lock:
            if name in self._observables and not overwrite:
                raise ConstructionError(f"Observable '{name}' is already registered.")
            self._observables[name] = constructor
        logger.debug("Registered observable '%s'", name)

    def has_generator(self, name: str) -> bool:
        return name in self._generators

    def has_observable(self, name: str) -> bool:
        return name in self._observables

    def generator(self, name: str) -> Callable:
        """The constructor registered under ``name``.

        Raises:
            ConstructionError: If ``name`` is unknown.
        """
        return self._generator_entry(name)[1]

    def generator_kind(self, name: str) -> GeneratorKind:
        """The variant ``name`` resolves to."""
        return self._generator_entry(name)[0]

    def observable(self, name: str) -> Callable:
        """The observable constructor registered under ``name``.

        Raises:
            ConstructionError: If ``name`` is unknown.
        """
        try:
            return self._observables[name]
        except KeyError as err:
            raise ConstructionError(f"Unknown observable '{name}'.") from err

    def names(self) -> Dict[str, List[str]]:
        """Registered generator and observable names."""
        return {"generators": sorted(self._generators), "observables": sorted(self._observables)}

    def build_generator(
        self, name: str, parameters: Mapping[str, Any], dim: int
    ) -> BaseGeneratorModel:
        """Construct the generator ``name`` and check it against ``dim``.

        Raises:
            ConstructionError: If the name is unknown, the constructor fails, or the result is not
                a generator model of dimension ``dim``.
        """
        kind, constructor = self._generator_entry(name)
        try:
            model = constructor(dict(parameters), dim)
        except ConstructionError:
            raise
        except (TypeError, ValueError, KeyError) as err:
            raise ConstructionError(f"Constructing generator '{name}' failed: {err}") from err

        if not isinstance(model, BaseGeneratorModel):
            raise ConstructionError(
                f"Generator '{name}' returned {type(model).__name__}, not a generator model."
            )
        if model.dim != dim:
            raise ConstructionError(
                f"Generator '{name}' has dimension {model.dim}, expected {dim}."
            )
        logger.debug("Constructed %s generator '%s' of dimension %d", kind.value, name, dim)
        return model

    def build_observable(
        self, name: str, dim: int, subsystem_dims: Optional[Sequence[int]] = None
    ) -> Observable:
        """Construct the registered observable ``name`` for dimension ``dim``.

        Raises:
            ConstructionError: If the name is unknown or the constructor returns something that is
                not an observable, a ``dim`` x ``dim`` operator, or a callable.
        """
        value = self.observable(name)(dim, subsystem_dims)
        if isinstance(value, Observable):
            observable = value
        elif issparse(value) or isinstance(value, np.ndarray):
            if value.shape != (dim, dim):
                raise ConstructionError(
                    f"Observable '{name}' operator has shape {value.shape}, expected {(dim, dim)}."
                )
            observable = Observable(name, operator=value)
        elif callable(value):
            observable = Observable(name, function=value)
        else:
            raise ConstructionError(
                f"Observable '{name}' constructor returned unsupported {type(value).__name__}."
            )
        observable.external = True
        return observable

    def _generator_entry(self, name):
        try:
            return self._generators[name]
        except KeyError as err:
            raise ConstructionError(
                f"Unknown generator '{name}'. Registered: {sorted(self._generators)}."
            ) from err


DEFAULT_REGISTRY = Registry()
