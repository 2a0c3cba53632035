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
The package alias and dispatch helpers built on it.
"""
import functools
from types import FunctionType
from typing import Callable, Union

import numpy as np
from scipy.sparse import spmatrix

from arraylias import numpy_alias
from arraylias.exceptions import LibraryError

from chronophoton.exceptions import ChronoPhotonError

from .register_functions import (
    register_asarray,
    register_matmul,
    register_linear_combo,
)

CHRONO_NUMPY_ALIAS = numpy_alias()
CHRONO_NUMPY = CHRONO_NUMPY_ALIAS()

# sparse operators dispatch as their own library
CHRONO_NUMPY_ALIAS.register_type(spmatrix, lib="scipy_sparse")

register_asarray(alias=CHRONO_NUMPY_ALIAS)
register_matmul(alias=CHRONO_NUMPY_ALIAS)
register_linear_combo(alias=CHRONO_NUMPY_ALIAS)


ArrayLike = Union[Union[CHRONO_NUMPY_ALIAS.registered_types()], list]

# dispatch order for calls mixing array libraries
LIBRARY_PRIORITY = ("jax", "scipy_sparse", "numpy")


def _preferred_lib(*args, **kwargs) -> str:
    """The library a call on ``args`` and ``kwargs`` dispatches to.

    JAX takes precedence over SciPy sparse, which takes precedence over NumPy, so a sparse operator
    applied to a JAX state is traced by JAX and a sparse operator applied to a NumPy state stays
    sparse. Python scalars and lists count as NumPy.

    Raises:
        ChronoPhotonError: If an argument belongs to a library outside :data:`LIBRARY_PRIORITY`.
    """
    found = set()
    for arg in list(args) + list(kwargs.values()):
        found.update(CHRONO_NUMPY_ALIAS.infer_libs(arg) or ("numpy",))
    for lib in LIBRARY_PRIORITY:
        if lib in found:
            return lib
    raise ChronoPhotonError(f"Cannot dispatch on array libraries {sorted(found)}.")


def _numpy_multi_dispatch(*args, path, **kwargs):
    """Call the alias function at ``path`` of the library :func:`_preferred_lib` picks."""
    lib = _preferred_lib(*args, **kwargs)
    return CHRONO_NUMPY_ALIAS(like=lib, path=path)(*args, **kwargs)


def to_dense(x):
    """``x`` as a dense array. Sparse matrices become NumPy arrays, JAX arrays stay JAX arrays."""
    if "scipy_sparse" in CHRONO_NUMPY_ALIAS.infer_libs(x):
        return np.asarray(x.toarray())
    return CHRONO_NUMPY.asarray(x)


def requires_array_library(lib: str) -> Callable:
    """Mark a function or class as needing the array library ``lib``.

    Calling the decorated function, or constructing the decorated class, raises
    ``arraylias.exceptions.LibraryError`` when ``lib`` is not registered with
    :data:`CHRONO_NUMPY_ALIAS`, typically because the optional JAX extra is not installed.

    Raises:
        ValueError: When decorating anything but a function or a class.
    """

    def check(target):
        if lib not in CHRONO_NUMPY_ALIAS.registered_libs():
            raise LibraryError(
                f"Array library '{lib}' required by {target} is not installed. "
                f"Install it to use {target}, e.g. with chronophoton[{lib}]."
            )

    def decorator(obj):
        if isinstance(obj, FunctionType):

            @functools.wraps(obj)
            def wrapped(*args, **kwargs):
                check(f"function {obj.__name__}")
                return obj(*args, **kwargs)

            return wrapped

        if isinstance(obj, type):
            init = obj.__init__

            @functools.wraps(init)
            def wrapped_init(self, *args, **kwargs):
                check(f"class {obj.__name__}")
                init(self, *args, **kwargs)

            obj.__init__ = wrapped_init
            return obj

        raise ValueError(f"Cannot decorate {obj!r}, it is neither a function nor a class.")

    return decorator
