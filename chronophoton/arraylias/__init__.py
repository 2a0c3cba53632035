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
==========================================
Arraylias (:mod:`chronophoton.arraylias`)
==========================================

.. currentmodule:: chronophoton.arraylias

A package-global extension of the default NumPy alias provided by `Arraylias
<https://qiskit-extensions.github.io/arraylias/>`_. Operators and generators built by ChronoPhoton
dispatch their array operations through this alias, so the same model code evaluates dense
NumPy arrays, SciPy sparse matrices, and, for the device lane, JAX arrays.

.. list-table:: Supported libraries
    :widths: 10 70
    :header-rows: 1

    * - ``array_library``
      - Registered types
    * - ``"numpy"``
      - Default supported by the Arraylias NumPy alias.
    * - ``"jax"``
      - Default supported by the Arraylias NumPy alias.
    * - ``"scipy_sparse"``
      - Subclasses of ``scipy.sparse.spmatrix``. New arrays are created as ``csr_matrix``.
"""

from .alias import (
    CHRONO_NUMPY_ALIAS,
    CHRONO_NUMPY,
    ArrayLike,
    requires_array_library,
    to_dense,
)
