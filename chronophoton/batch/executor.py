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
Batch execution of simulations over a parameter sweep.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, List, Optional, Sequence, Union

import numpy as np

from chronophoton.exceptions import CancellationSignal, ChronoPhotonError, ConstructionError
from chronophoton.results import BatchResults, InstanceResult
from chronophoton.simulation import SimulationDescriptor, run_simulation
from chronophoton.simulation.descriptor import LANES, BatchSpec

from .device import DeviceContext, run_device_batch

logger = logging.getLogger(__name__)

# numerical failures of one instance that must not abort its siblings
INSTANCE_ERRORS = (ChronoPhotonError, ArithmeticError, np.linalg.LinAlgError)


def expand_batch(
    descriptor: SimulationDescriptor, batch: Optional[BatchSpec] = None
) -> List[SimulationDescriptor]:
    """One descriptor per swept value of ``batch`` (default: ``descriptor.batch``), in order.

    Raises:
        ConstructionError: If there is no batch specification or it is invalid.
    """
    batch = batch or descriptor.batch
    if batch is None:
        raise ConstructionError("The descriptor has no batch specification.")
    batch.validate()
    return [descriptor.with_parameter(batch.parameter, value) for value in batch.parameter_values()]


class BatchExecutor:
    """Runs many simulations and returns their results in input order.

    Lanes:

    - ``"sequential"``: one instance after the other in the calling thread.
    - ``"parallel"``: instances on a thread pool of ``max_workers`` threads, submitted in chunks of
      ``batch_width``. Every instance is computed exactly as on the sequential lane, so results
      agree with it to rounding.
    - ``"device"``: fixed step instances stacked and integrated together with JAX on the device
      of ``device_context``, in chunks of ``batch_width``. Without a context the default device is
      acquired for the duration of the call.

    Errors raised by one instance are recorded on its :class:`.InstanceResult` and never abort the
    rest of the batch. Cancelling the token stops the batch; instances already finished keep their
    results and the others are marked cancelled.
    """

    def __init__(
        self,
        lane: str = "sequential",
        max_workers: Optional[int] = None,
        batch_width: int = 256,
        device_context: Optional[DeviceContext] = None,
        registry=None,
    ):
        if lane not in LANES:
            raise ConstructionError(f"Unknown lane '{lane}'. Choose from {LANES}.")
        if batch_width < 1:
            raise ConstructionError("batch_width must be positive.")
        if max_workers is not None and max_workers < 1:
            raise ConstructionError("max_workers must be positive.")
        self.lane = lane
        self.max_workers = max_workers
        self.batch_width = batch_width
        self.device_context = device_context
        self.registry = registry

    def run(
        self,
        descriptors: Union[SimulationDescriptor, Sequence[SimulationDescriptor]],
        cancel_token=None,
        batch: Optional[BatchSpec] = None,
    ) -> BatchResults:
        """Run a batch.

        Args:
            descriptors: A descriptor with a batch specification (or with ``batch`` given), which
                is expanded into one descriptor per swept value, or an explicit list of
                descriptors.
            cancel_token: Token stopping the batch.
            batch: Sweep overriding ``descriptor.batch``.

        Returns:
            BatchResults: One entry per instance, ordered as the input.

        Raises:
            ConstructionError: If the batch is malformed. Per-instance construction problems are
                recorded on the instance instead.
        """
        if isinstance(descriptors, SimulationDescriptor):
            batch = batch or descriptors.batch
            instances = expand_batch(descriptors, batch)
            parameters = batch.parameter_values()
        else:
            instances = list(descriptors)
            parameters = [None] * len(instances)
        if not instances:
            raise ConstructionError("A batch needs at least one instance.")

        logger.info("Starting batch of %d instances on the %s lane", len(instances), self.lane)
        if self.lane == "sequential":
            outcomes = self._run_sequential(instances, parameters, cancel_token)
        elif self.lane == "parallel":
            outcomes = self._run_parallel(instances, parameters, cancel_token)
        else:
            outcomes = self._run_device(instances, parameters, cancel_token)

        cancelled = cancel_token is not None and cancel_token.is_cancelled()
        results = BatchResults(outcomes, lane=self.lane, cancelled=cancelled)
        logger.info(
            "Finished batch: %d succeeded, %d failed%s",
            results.num_succeeded,
            len(results.failures),
            ", cancelled" if cancelled else "",
        )
        return results

    def _run_one(self, index: int, descriptor, parameter: Any, cancel_token) -> InstanceResult:
        if cancel_token is not None and cancel_token.is_cancelled():
            return InstanceResult(index, parameter, cancelled=True)
        try:
            results = run_simulation(descriptor, registry=self.registry, cancel_token=cancel_token)
        except CancellationSignal as signal:
            return InstanceResult(index, parameter, error=signal, cancelled=True)
        except INSTANCE_ERRORS as err:
            logger.warning("Instance %d failed: %s", index, err)
            return InstanceResult(index, parameter, error=err)
        return InstanceResult(index, parameter, results=results)

    def _run_sequential(self, instances, parameters, cancel_token):
        return [
            self._run_one(idx, descriptor, parameter, cancel_token)
            for idx, (descriptor, parameter) in enumerate(zip(instances, parameters))
        ]

    def _run_parallel(self, instances, parameters, cancel_token):
        outcomes = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            for start in range(0, len(instances), self.batch_width):
                futures = [
                    pool.submit(self._run_one, idx, instances[idx], parameters[idx], cancel_token)
                    for idx in range(start, min(start + self.batch_width, len(instances)))
                ]
                for future in as_completed(futures):
                    outcomes.append(future.result())
        return outcomes

    def _run_device(self, instances, parameters, cancel_token):
        if self.device_context is not None and self.device_context.active:
            return run_device_batch(
                instances,
                parameters,
                self.device_context,
                self.registry,
                self.batch_width,
                cancel_token,
            )
        context = self.device_context or DeviceContext()
        with context:
            return run_device_batch(
                instances, parameters, context, self.registry, self.batch_width, cancel_token
            )


def run_batch(
    descriptor: SimulationDescriptor,
    registry=None,
    cancel_token=None,
    device_context: Optional[DeviceContext] = None,
) -> BatchResults:
    """Run the sweep of ``descriptor.batch`` on the lane it names."""
    if descriptor.batch is None:
        raise ConstructionError("The descriptor has no batch specification.")
    executor = BatchExecutor(
        lane=descriptor.batch.lane,
        max_workers=descriptor.batch.max_workers,
        batch_width=descriptor.batch.batch_width,
        device_context=device_context,
        registry=registry,
    )
    return executor.run(descriptor, cancel_token=cancel_token)
