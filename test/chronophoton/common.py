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
Shared infrastructure for the ChronoPhoton tests.

``ChronoPhotonTestCase`` adds numerical assertions for arrays, unitaries and density matrices.

Tests that should run once per array library are written as plain classes and decorated with
``test_array_backends``. For each requested library it creates a test case combining the class
with the matching ``<Library>TestBase``, which provides ``asarray`` for building inputs and
``assertArrayType`` for checking outputs.
"""

from typing import Type, Optional, List
import inspect
import unittest

import numpy as np
from scipy.sparse import csr_matrix, issparse

try:
    import jax.numpy as jnp
except ImportError:
    pass

from chronophoton.arraylias import to_dense


class ChronoPhotonTestCase(unittest.TestCase):
    """Numerical assertions shared by all tests."""

    def assertAllClose(self, A, B, rtol=1e-8, atol=1e-8):
        """Assert ``np.allclose`` on dense versions of ``A`` and ``B``."""
        A = np.asarray(to_dense(A))
        B = np.asarray(to_dense(B))
        if A.shape == B.shape:
            msg = f"max abs difference {np.max(np.abs(A - B), initial=0.0):.3e}"
        else:
            msg = f"shapes {A.shape} and {B.shape} differ"
        self.assertTrue(np.allclose(A, B, rtol=rtol, atol=atol), msg=msg)

    def assertUnitary(self, U, atol=1e-10):
        """Assert ``U^dagger U = 1``."""
        U = np.asarray(to_dense(U))
        self.assertAllClose(U.conj().T @ U, np.eye(U.shape[0]), rtol=0.0, atol=atol)

    def assertDensityMatrix(self, rho, atol=1e-10):
        """Assert ``rho`` is Hermitian with unit trace and no eigenvalue below ``-atol``."""
        rho = np.asarray(to_dense(rho))
        self.assertAllClose(rho, rho.conj().T, rtol=0.0, atol=atol)
        self.assertAlmostEqual(np.trace(rho).real, 1.0, delta=atol)
        self.assertGreaterEqual(np.linalg.eigvalsh(rho)[0], -atol)


class NumpyTestBase(ChronoPhotonTestCase):
    """Inputs as NumPy arrays."""

    @classmethod
    def array_library(cls):
        return "numpy"

    def asarray(self, a):
        return np.array(a)

    def assertArrayType(self, a):
        self.assertIsInstance(a, np.ndarray)


class JAXTestBase(ChronoPhotonTestCase):
    """Inputs as JAX arrays in double precision on the CPU. Skipped without JAX."""

    @classmethod
    def setUpClass(cls):
        try:
            # pylint: disable=import-outside-toplevel
            import jax

            jax.config.update("jax_enable_x64", True)
            jax.config.update("jax_platform_name", "cpu")
        except Exception as err:
            raise unittest.SkipTest("Skipping jax tests.") from err

    @classmethod
    def array_library(cls):
        return "jax"

    def asarray(self, a):
        return jnp.array(a)

    def assertArrayType(self, a):
        self.assertIsInstance(a, jnp.ndarray)


class ScipySparseTestBase(ChronoPhotonTestCase):
    """Inputs as CSR matrices."""

    @classmethod
    def array_library(cls):
        return "scipy_sparse"

    def asarray(self, a):
        return csr_matrix(a)

    def assertArrayType(self, a):
        self.assertTrue(issparse(a))


BACKEND_TEST_BASES = {
    base.array_library(): base for base in (NumpyTestBase, JAXTestBase, ScipySparseTestBase)
}


def test_array_backends(test_class: Type, array_libraries: Optional[List[str]] = None):
    """Replace ``test_class`` by one test case per array library.

    The generated classes are named ``<test_class>_<library>`` and added to the module that
    applied the decorator. ``test_class`` itself must not subclass ``unittest.TestCase``.

    Args:
        test_class: Plain class holding the tests.
        array_libraries: Keys of :data:`BACKEND_TEST_BASES`. Defaults to NumPy and JAX.
    """
    module = inspect.getmodule(inspect.stack()[1][0])
    for lib in array_libraries or ["numpy", "jax"]:
        class_name = f"{test_class.__name__}_{lib}"
        setattr(module, class_name, type(class_name, (test_class, BACKEND_TEST_BASES[lib]), {}))


# keep test collectors from treating the decorator as a test
test_array_backends.__test__ = False
