"""
Saga helper: runs named async steps strictly in order and keeps a journal of
what was applied. There is no automatic rollback; the journal is what makes a
half-applied sequence auditable after the fact.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

from utils.shared_utils import utc_now_iso

logger = logging.getLogger(__name__)

STEP_PENDING = "pending"
STEP_DONE = "done"
STEP_FAILED = "failed"


@dataclass
class SagaStep:
    name: str
    status: str = STEP_PENDING
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "status": self.status,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "error": self.error,
        }


class SagaStepFailed(Exception):
    """A saga step raised. `cause` is the original exception."""

    def __init__(self, saga: "Saga", step: SagaStep, cause: BaseException):
        super().__init__(f"{saga.name}: step '{step.name}' failed: {cause}")
        self.saga = saga
        self.step = step
        self.cause = cause


@dataclass
class Saga:
    name: str
    steps: List[SagaStep] = field(default_factory=list)

    @property
    def completed_steps(self) -> List[str]:
        return [step.name for step in self.steps if step.status == STEP_DONE]

    @property
    def failed_step(self) -> Optional[SagaStep]:
        for step in self.steps:
            if step.status == STEP_FAILED:
                return step
        return None

    def journal(self) -> List[dict]:
        return [step.to_dict() for step in self.steps]

    async def run(self, name: str, action: Callable[[], Awaitable[Any]]) -> Any:
        """
        Await `action` as the next step. A saga that already failed refuses
        further steps.

        Raises:
            SagaStepFailed: wrapping whatever the action raised
        """
        if self.failed_step is not None:
            raise RuntimeError(f"{self.name}: cannot run '{name}' after '{self.failed_step.name}' failed")

        step = SagaStep(name=name, started_at=utc_now_iso())
        self.steps.append(step)
        try:
            result = await action()
        except Exception as e:
            step.status = STEP_FAILED
            step.error = str(e) or e.__class__.__name__
            step.finished_at = utc_now_iso()
            logger.error(
                f"{self.name}: step '{name}' failed after {self.completed_steps}: {step.error}"
            )
            raise SagaStepFailed(self, step, e) from e

        step.status = STEP_DONE
        step.finished_at = utc_now_iso()
        logger.info(f"{self.name}: step '{name}' done")
        return result
