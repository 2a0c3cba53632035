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
Module for representation of drive coefficients.
"""

from fractions import Fraction
from math import lcm
from typing import List, Callable, Union, Optional

import numpy as np

from chronophoton.exceptions import ConstructionError


class Signal:
    r"""Time-dependent coefficient of a drive term.

    Represents a function of the form:

    .. math::
        Re[f(t)e^{i (\omega t + \phi)}]
                = Re[f(t)]\cos(\omega t + \phi) - Im[f(t)]\sin(\omega t + \phi),

    where

    - :math:`f(t)` is the envelope function.
    - :math:`\omega` is the angular frequency of the carrier.
    - :math:`\phi` is the phase.

    A constant envelope :math:`A` gives the harmonic drive :math:`A\cos(\omega t + \phi)`, the
    form used by built-in systems and by the device-batched lane. The envelope may also be a
    complex-valued callable, which must be vectorized over ``t``.
    """

    def __init__(
        self,
        envelope: Union[Callable, complex, float, int],
        frequency: float = 0.0,
        phase: float = 0.0,
        name: Optional[str] = None,
    ):
        """
        Initializes a signal given by an envelope and a carrier.

        Args:
            envelope: Envelope function of the signal, or a constant amplitude.
            frequency: Angular frequency of the carrier.
            phase: The phase of the carrier.
            name: Name of the signal.

        Raises:
            ConstructionError: If the envelope is neither numeric nor callable, or the frequency or
                phase is not a finite real number.
        """
        self._name = name

        if isinstance(envelope, (complex, float, int, np.number)):
            self._amplitude = complex(envelope)
            self._envelope = lambda t: self._amplitude * np.ones_like(t, dtype=complex)
        elif callable(envelope):
            self._amplitude = None
            self._envelope = envelope
        else:
            raise ConstructionError(f"Signal envelope must be numeric or callable, got {envelope}.")

        for label, value in (("frequency", frequency), ("phase", phase)):
            if isinstance(value, complex) or not np.isfinite(value):
                raise ConstructionError(f"Signal {label} must be a finite real number.")
        self._frequency = float(frequency)
        self._phase = float(phase)

    @property
    def name(self) -> str:
        """Return the name of the signal."""
        return self._name

    @property
    def frequency(self) -> float:
        """Angular frequency of the carrier."""
        return self._frequency

    @property
    def phase(self) -> float:
        """The phase of the carrier."""
        return self._phase

    @property
    def amplitude(self) -> Union[complex, None]:
        """The constant envelope value, or ``None`` if the envelope is a function."""
        return self._amplitude

    @property
    def is_harmonic(self) -> bool:
        """Whether the signal is a single constant-amplitude carrier."""
        return self._amplitude is not None

    @property
    def is_constant(self) -> bool:
        """Whether or not the signal is constant in time."""
        return self.is_harmonic and self._frequency == 0.0

    @property
    def period(self) -> Union[float, None]:
        """Period of a harmonic signal with nonzero frequency, otherwise ``None``."""
        if self.is_harmonic and self._frequency != 0.0:
            return 2 * np.pi / abs(self._frequency)
        return None

    def envelope(self, t):
        """Vectorized evaluation of the envelope at time t."""
        return self._envelope(t)

    def complex_value(self, t):
        """Vectorized evaluation of the complex value at time t."""
        return self.envelope(t) * np.exp(1j * (self._frequency * t + self._phase))

    def __call__(self, t):
        """Vectorized evaluation of the signal at time(s) t."""
        return np.real(self.complex_value(t))

    def __str__(self) -> str:
        if self.name is not None:
            return str(self.name)

        if self.is_constant:
            return f"Constant({self(0.0)})"

        return f"Signal(frequency={self.frequency}, phase={self.phase})"


class SignalList:
    """An ordered collection of signals, evaluated together into a coefficient vector."""

    def __init__(self, signal_list: List[Union[Signal, complex, float, int]]):
        self._components = [s if isinstance(s, Signal) else Signal(s) for s in signal_list]

    @property
    def components(self) -> List[Signal]:
        """The list of signals."""
        return self._components

    def __len__(self):
        return len(self._components)

    def __getitem__(self, idx):
        return self._components[idx]

    def __iter__(self):
        return iter(self._components)

    @property
    def is_harmonic(self) -> bool:
        """Whether every component is a constant-amplitude carrier."""
        return all(s.is_harmonic for s in self._components)

    def __call__(self, t) -> np.ndarray:
        """Evaluate all signals at a single time, returning a real array of coefficients."""
        return np.array([s(t) for s in self._components], dtype=float)

    def harmonic_data(self):
        """Amplitude, frequency and phase arrays of a harmonic signal list.

        Complex amplitudes :math:`|A|e^{i\\theta}` are folded into the phase so that every
        coefficient reads ``amp * cos(freq * t + phase)``.

        Raises:
            ConstructionError: If any component is not harmonic.
        """
        if not self.is_harmonic:
            raise ConstructionError("Only harmonic signals have amplitude/frequency/phase data.")
        amps = np.array([abs(s.amplitude) for s in self._components], dtype=float)
        freqs = np.array([s.frequency for s in self._components], dtype=float)
        phases = np.array(
            [s.phase + np.angle(s.amplitude) for s in self._components], dtype=float
        )
        return amps, freqs, phases

    @property
    def period(self) -> Union[float, None]:
        """Common period of the components.

        ``None`` when any component has a function envelope, since its periodicity is unknown, or
        when the carrier frequencies are incommensurate.
        """
        if not self.is_harmonic:
            return None
        return common_period([s.frequency for s in self._components])


def common_period(frequencies: List[float], max_denominator: int = 64, rtol: float = 1e-9):
    """Smallest period shared by a set of angular frequencies.

    Zero frequencies are ignored. Frequencies are treated as commensurate when their ratios to the
    smallest one are rationals with denominator at most ``max_denominator``.

    Returns:
        The common period, or ``None`` if there are no nonzero frequencies or they are
        incommensurate.
    """
    freqs = sorted({abs(float(f)) for f in frequencies if f != 0.0})
    if not freqs:
        return None
    base = freqs[0]
    denominator = 1
    for freq in freqs[1:]:
        ratio = Fraction(freq / base).limit_denominator(max_denominator)
        if abs(float(ratio) - freq / base) > rtol * freq / base:
            return None
        denominator = lcm(denominator, ratio.denominator)
    return 2 * np.pi * denominator / base
