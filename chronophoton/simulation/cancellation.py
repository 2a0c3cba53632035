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
Cooperative cancellation of runs.
"""

import threading


class CancellationToken:
    """A thread-safe flag checked by integrators between steps.

    Cancelling a token stops every run it was passed to at the next step boundary. A run stopped
    this way raises :class:`.CancellationSignal`.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        """Request cancellation."""
        self._event.set()

    def is_cancelled(self) -> bool:
        """Whether cancellation was requested."""
        return self._event.is_set()

    def reset(self):
        """Clear a previous cancellation request so the token can be reused."""
        self._event.clear()

    def __repr__(self):
        return f"CancellationToken(cancelled={self.is_cancelled()})"
