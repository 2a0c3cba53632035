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
``matmul`` for SciPy sparse generators acting on states.
"""

import numpy as np
from scipy.sparse import issparse


def register_matmul(alias):
    """Register ``matmul`` for SciPy sparse operators."""

    @alias.register_function(lib="scipy_sparse", path="matmul")
    def _(x, y):
        out = x @ y
        # a dense state stays a plain ndarray, never np.matrix
        return out if issparse(out) else np.asarray(out)
