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
Subsystem class
"""

from typing import List, Sequence

import numpy as np

from chronophoton.exceptions import ConstructionError


class Subsystem:
    """A Hilbert space with a name and a dimension."""

    def __init__(self, name: str, dim: int):
        """Initialize with name and dimension.

        Args:
            name: Name of the subsystem.
            dim: Dimension of the subsystem.

        Raises:
            ConstructionError: If ``dim`` is not a positive integer.
        """
        if not isinstance(dim, (int, np.integer)) or dim <= 0:
            raise ConstructionError(f"Subsystem dimension must be a positive integer, got {dim}.")
        self._name = name
        self._dim = int(dim)

    @property
    def name(self) -> str:
        """Name of subsystem."""
        return self._name

    @property
    def dim(self) -> int:
        """Dimension of subsystem."""
        return self._dim

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"Subsystem(name={self.name}, dim={self.dim})"

    def __eq__(self, other: "Subsystem") -> bool:
        if not isinstance(other, Subsystem):
            return False
        return self.name == other.name

    def __hash__(self):
        return hash(self.name)


def subsystem_dims(subsystems: Sequence[Subsystem]) -> List[int]:
    """Dimensions of ``subsystems``, ordered as the tensor factors from left to right."""
    return [s.dim for s in subsystems]


def embed(matrix: np.ndarray, subsystem: Subsystem, subsystems: Sequence[Subsystem]) -> np.ndarray:
    """Embed an operator on one subsystem into the tensor product of ``subsystems``.

    The first subsystem is the leftmost tensor factor.

    Raises:
        ConstructionError: If ``subsystem`` is not among ``subsystems`` or the dimension differs.
    """
    if subsystem not in subsystems:
        raise ConstructionError(f"{subsystem!r} is not one of {list(subsystems)}.")
    if matrix.shape != (subsystem.dim, subsystem.dim):
        raise ConstructionError(
            f"Operator of shape {matrix.shape} does not act on {subsystem!r}."
        )
    out = np.eye(1, dtype=complex)
    for s in subsystems:
        out = np.kron(out, matrix if s == subsystem else np.eye(s.dim, dtype=complex))
    return out
