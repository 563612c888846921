from __future__ import annotations

"""Ordered step execution for multi-stage operations such as checkout.

A step that raises stops the run and the error reaches the caller, unless the step
is marked best_effort: then the error is logged and the following steps still run.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Optional, Sequence, TypeVar

logger = logging.getLogger("storefront.pipeline")

ContextT = TypeVar("ContextT")


@dataclass(frozen=True)
class Step(Generic[ContextT]):
    """One named stage; skip_if is evaluated against the context right before it runs."""
    name: str
    fn: Callable[[ContextT], None]
    skip_if: Optional[Callable[[ContextT], bool]] = None
    best_effort: bool = False


class StepRunner(Generic[ContextT]):
    """Runs a fixed sequence of steps over one shared context object."""

    def __init__(self, steps: Sequence[Step[ContextT]]) -> None:
        self._steps = tuple(steps)

    @property
    def step_names(self) -> list[str]:
        return [step.name for step in self._steps]

    def run(self, context: ContextT) -> None:
        """Purpose: Execute every step in declaration order against the context.
        Inputs/Outputs: Input is the mutable context; no return value.
        Side Effects / State: Whatever the step functions do to the context.
        Dependencies: Step.fn, Step.skip_if and Step.best_effort.
        Failure Modes: An exception from a regular step propagates immediately and no
            later step runs; an exception from a best_effort step is logged only.
        If Removed: Checkout loses its ordering of id allocation, snapshot,
            notification and reset.
        Testing Notes: A raising best_effort step must not prevent the last step.
        """
        for step in self._steps:
            if step.skip_if is not None and step.skip_if(context):
                logger.debug("step=%s status=skipped", step.name)
                continue
            if not step.best_effort:
                step.fn(context)
                logger.debug("step=%s status=done", step.name)
                continue
            try:
                step.fn(context)
            except Exception:
                logger.exception("step=%s status=failed best_effort=true", step.name)
            else:
                logger.debug("step=%s status=done", step.name)
