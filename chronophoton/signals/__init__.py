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
======================================
Signals (:mod:`chronophoton.signals`)
======================================

.. currentmodule:: chronophoton.signals

Time-dependent drive coefficients :math:`s(t) = Re[f(t)e^{i(\omega t + \phi)}]`.

.. autosummary::
   :toctree: ../stubs/

   Signal
   SignalList
"""

from .signals import Signal, SignalList, common_period
