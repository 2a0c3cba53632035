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
Checkpoints of a running trajectory.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping

import numpy as np

from chronophoton.exceptions import ConstructionError
from chronophoton.states import DensityMatrix, Ket
from chronophoton.type_utils import from_jsonable, to_jsonable

from .descriptor import SimulationDescriptor


@dataclass
class Checkpoint:
    """The ``(time, state, descriptor)`` triple a trajectory can be resumed from.

    Passing a checkpoint to :func:`.run_simulation` continues the run from ``time``. The byte
    level format is left to the persistence layer, which receives plain python from
    :meth:`to_dict`.
    """

    time: float
    step: int
    state: Any
    descriptor: SimulationDescriptor

    def __post_init__(self):
        if isinstance(self.state, (Ket, DensityMatrix)):
            self.state = self.state.data
        self.state = np.array(self.state, dtype=complex)
        if self.state.ndim not in (1, 2):
            raise ConstructionError(f"Checkpoint state has invalid shape {self.state.shape}.")

    @property
    def is_density_matrix(self) -> bool:
        return self.state.ndim == 2

    def to_state(self):
        """The checkpointed state as a :class:`.Ket` or :class:`.DensityMatrix`."""
        if self.is_density_matrix:
            return DensityMatrix(self.state, validate=False)
        return Ket(self.state, validate=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": float(self.time),
            "step": int(self.step),
            "state": to_jsonable(self.state),
            "descriptor": self.descriptor.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Checkpoint":
        """Inverse of :meth:`to_dict`.

        Raises:
            ConstructionError: If the mapping is malformed.
        """
        try:
            return cls(
                time=float(data["time"]),
                step=int(data["step"]),
                state=from_jsonable(data["state"]),
                descriptor=SimulationDescriptor.from_dict(data["descriptor"]),
            )
        except (KeyError, TypeError, ValueError) as err:
            raise ConstructionError(f"Malformed checkpoint: {err!r}") from err
