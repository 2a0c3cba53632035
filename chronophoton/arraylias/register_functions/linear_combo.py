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

r"""
``linear_combo(coeffs, mats)``: the operator sum :math:`\sum_j c_j G_j` evaluated on every
generator call.
"""

import numpy as np


def _dense_combo(coeffs, mats):
    return np.tensordot(coeffs, mats, axes=1)


def _sparse_combo(coeffs, mats):
    # sparse matrices cannot be stacked, mats is a sequence of csr matrices
    terms = (coeff * mat for coeff, mat in zip(coeffs[1:], mats[1:]))
    return sum(terms, coeffs[0] * mats[0])


def register_linear_combo(alias):
    """Register ``linear_combo`` for NumPy (also the default), SciPy sparse and JAX."""
    alias.register_default(path="linear_combo")(_dense_combo)
    alias.register_function(lib="numpy", path="linear_combo")(_dense_combo)
    alias.register_function(lib="scipy_sparse", path="linear_combo")(_sparse_combo)

    try:
        import jax.numpy as jnp

        @alias.register_function(lib="jax", path="linear_combo")
        def _(coeffs, mats):
            return jnp.tensordot(coeffs, mats, axes=1)

    except ImportError:
        pass
