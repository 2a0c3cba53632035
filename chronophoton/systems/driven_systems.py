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
# pylint: disable=invalid-name

"""
Built-in periodically driven systems.
"""

from typing import Optional

import numpy as np

from chronophoton.exceptions import ConstructionError
from chronophoton.models import HamiltonianModel
from chronophoton.signals import Signal

from .operators import annihilation, creation, number, pauli_x, pauli_y

DRIVE_SHAPES = ("linear", "circular")
COUPLING_PATTERNS = ("ssh", "uniform")


def _positive(name, value):
    if not value > 0:
        raise ConstructionError(f"Parameter '{name}' must be positive, got {value}.")


def two_level(
    omega_0: float,
    rabi_frequency: float,
    omega_d: Optional[float] = None,
    phase: float = 0.0,
    drive: str = "linear",
    array_library: Optional[str] = None,
) -> HamiltonianModel:
    r"""A driven two-level system with static term :math:`\mathrm{diag}(\omega_0/2, -\omega_0/2)`.

    - ``drive="linear"``: :math:`\Omega_R\cos(\omega_d t + \phi)\sigma_x`. Rabi oscillations at
      resonance hold within the rotating wave approximation.
    - ``drive="circular"``: :math:`\frac{\Omega_R}{2}(\cos(\omega_d t + \phi)\sigma_x +
      \sin(\omega_d t + \phi)\sigma_y)`. At resonance the populations oscillate as
      :math:`\sin^2(\Omega_R t/2)` exactly.

    Args:
        omega_0: Transition frequency.
        rabi_frequency: Rabi frequency :math:`\Omega_R`.
        omega_d: Drive frequency, resonant by default.
        phase: Drive phase.
        drive: ``"linear"`` or ``"circular"``.
        array_library: Array library of the model operators.

    Returns:
        HamiltonianModel: The model, periodic with period :math:`2\pi/\omega_d`.
    """
    omega_d = omega_0 if omega_d is None else omega_d
    _positive("omega_d", omega_d)
    if drive not in DRIVE_SHAPES:
        raise ConstructionError(f"Unknown drive shape '{drive}'. Choose from {DRIVE_SHAPES}.")

    static = np.diag([omega_0 / 2, -omega_0 / 2]).astype(complex)
    if drive == "linear":
        operators = [pauli_x()]
        signals = [Signal(rabi_frequency, omega_d, phase, name="drive")]
    else:
        operators = [pauli_x(), pauli_y()]
        signals = [
            Signal(rabi_frequency / 2, omega_d, phase, name="drive_x"),
            Signal(rabi_frequency / 2, omega_d, phase - np.pi / 2, name="drive_y"),
        ]
    return HamiltonianModel(
        static_operator=static,
        operators=operators,
        signals=signals,
        array_library=array_library,
        period=2 * np.pi / omega_d,
    )


def parametric_cavity(
    omega_c: float,
    omega_p: float,
    g: float,
    dim: int,
    array_library: Optional[str] = None,
) -> HamiltonianModel:
    r"""A parametrically pumped cavity truncated to ``dim`` Fock levels,

    .. math::
        H(t) = \omega_c a^\dagger a + g\cos(\omega_p t)(a^2 + a^{\dagger 2}).

    Returns:
        HamiltonianModel: The model, periodic with period :math:`2\pi/\omega_p`.
    """
    _positive("omega_p", omega_p)
    if dim < 2:
        raise ConstructionError(f"A cavity needs at least 2 levels, got {dim}.")
    a = annihilation(dim)
    adag = creation(dim)
    return HamiltonianModel(
        static_operator=omega_c * number(dim),
        operators=[a @ a + adag @ adag],
        signals=[Signal(g, omega_p, name="pump")],
        array_library=array_library,
        period=2 * np.pi / omega_p,
    )


def site_lowering(num_cavities: int, site: int) -> np.ndarray:
    r"""The operator :math:`|0\rangle\langle i|` removing the excitation of cavity ``site``.

    Sites are numbered from 0 and the single excitation on site ``i`` is basis state ``i + 1``.
    """
    if not 0 <= site < num_cavities:
        raise ConstructionError(f"Site {site} out of range for {num_cavities} cavities.")
    out = np.zeros((num_cavities + 1, num_cavities + 1), dtype=complex)
    out[0, site + 1] = 1.0
    return out


def coupled_cavity_array(
    num_cavities: int,
    omega_c: float,
    j1: float,
    j2: Optional[float] = None,
    pattern: str = "ssh",
    drive_site: Optional[int] = None,
    drive_amplitude: float = 0.0,
    drive_frequency: Optional[float] = None,
    array_library: Optional[str] = None,
) -> HamiltonianModel:
    r"""A chain of coupled cavities in the vacuum plus single excitation sector.

    The basis is the vacuum followed by one excitation on each cavity, so the dimension is
    ``num_cavities + 1``. Neighbouring cavities hop with amplitude ``j1`` everywhere for the
    ``"uniform"`` pattern, or alternately ``j1``, ``j2`` for the ``"ssh"`` pattern.

    If ``drive_site`` is given that cavity is driven coherently from the vacuum,
    :math:`A\cos(\omega t)(|0\rangle\langle i| + |i\rangle\langle 0|)`, which makes the model
    periodic.

    Returns:
        HamiltonianModel: The model.
    """
    if not isinstance(num_cavities, (int, np.integer)) or num_cavities < 2:
        raise ConstructionError(f"A cavity array needs at least 2 cavities, got {num_cavities}.")
    if pattern not in COUPLING_PATTERNS:
        raise ConstructionError(
            f"Unknown coupling pattern '{pattern}'. Choose from {COUPLING_PATTERNS}."
        )
    if pattern == "ssh" and j2 is None:
        raise ConstructionError("The ssh pattern requires both j1 and j2.")

    dim = num_cavities + 1
    couplings = [
        j1 if (pattern == "uniform" or i % 2 == 0) else j2 for i in range(num_cavities - 1)
    ]
    static = np.zeros((dim, dim), dtype=complex)
    static[np.arange(1, dim), np.arange(1, dim)] = omega_c
    for i, j in enumerate(couplings):
        static[i + 1, i + 2] = j
        static[i + 2, i + 1] = j

    operators = None
    signals = None
    if drive_site is not None:
        drive_frequency = omega_c if drive_frequency is None else drive_frequency
        _positive("drive_frequency", drive_frequency)
        lowering = site_lowering(num_cavities, drive_site)
        operators = [lowering + lowering.conj().T]
        signals = [Signal(drive_amplitude, drive_frequency, name=f"drive_{drive_site}")]

    return HamiltonianModel(
        static_operator=static,
        operators=operators,
        signals=signals,
        array_library=array_library,
    )
