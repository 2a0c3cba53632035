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
``asarray`` conversions, including ``qiskit.quantum_info`` operators and states.
"""

from typing import Iterable

import numpy as np
from qiskit.quantum_info import DensityMatrix, Operator, Statevector
from scipy.sparse import csr_matrix, issparse

QISKIT_ARRAY_TYPES = (Operator, DensityMatrix, Statevector)


def register_asarray(alias):
    """Register ``asarray`` for the default library and SciPy sparse."""

    @alias.register_default(path="asarray")
    def _(arr):
        if isinstance(arr, QISKIT_ARRAY_TYPES):
            arr = arr.data
        return np.asarray(arr)

    @alias.register_function(lib="scipy_sparse", path="asarray")
    def _(arr):
        if issparse(arr):
            return arr
        # a sequence of sparse operators is kept as is
        if isinstance(arr, Iterable) and len(arr) > 0 and issparse(arr[0]):
            return arr
        if isinstance(arr, QISKIT_ARRAY_TYPES):
            arr = arr.data
        return csr_matrix(arr)
