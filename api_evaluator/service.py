from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, Optional

from api_evaluator.config_loader import EvaluatorConfig
from api_evaluator.data_synthesizer import DataSynthesizer
from api_evaluator.errors import EvaluationInputError, EvaluationNotFoundError
from api_evaluator.evaluation import Evaluation
from api_evaluator.orchestrator import EvaluationOrchestrator
from api_evaluator.request_executor import RequestExecutor
from api_evaluator.spec_loader import SpecLoader
from api_evaluator.store import DEFAULT_LIMIT, DEFAULT_PAGE, EvaluationPage, EvaluationStore

logger = logging.getLogger(__name__)

INLINE_SPEC_LABEL = "Provided as JSON"


class EvaluationService:
    def __init__(
        self,
        store: EvaluationStore,
        loader: Optional[SpecLoader] = None,
        orchestrator: Optional[EvaluationOrchestrator] = None,
    ) -> None:
        self.store = store
        self.loader = loader or SpecLoader()
        self.orchestrator = orchestrator or EvaluationOrchestrator(store)
        self.threads: Dict[str, threading.Thread] = {}

    @classmethod
    def from_config(cls, config: EvaluatorConfig) -> "EvaluationService":
        store = EvaluationStore(config.store_dir)
        executor = RequestExecutor(
            timeout_seconds=config.timeout_seconds,
            retry_count=config.retry_count,
            retry_delay_seconds=config.retry_delay_seconds,
            max_body_chars=config.max_body_chars,
        )

        def _synthesizer(specification):
            return DataSynthesizer(
                specification,
                optional_probability=config.optional_field_probability,
                max_depth=config.max_schema_depth,
                user_agent=config.user_agent,
            )

        orchestrator = EvaluationOrchestrator(store, executor=executor, synthesizer_factory=_synthesizer)
        return cls(store, orchestrator=orchestrator)

    def create_evaluation(
        self,
        spec_url: Optional[str] = None,
        spec_content: Optional[Dict[str, Any]] = None,
        background: bool = True,
    ) -> Dict[str, Any]:
        if not spec_url and not spec_content:
            raise EvaluationInputError("Either spec_url or spec_content must be provided")

        specification = self.loader.load(spec_url or spec_content)
        endpoints = specification.endpoints()

        evaluation = Evaluation(
            spec_url=spec_url or INLINE_SPEC_LABEL,
            spec_content=specification.document,
            total_endpoints=len(endpoints),
        )
        self.store.create(evaluation)
        logger.info(
            "Created evaluation %s for %s with %d endpoint(s)",
            evaluation.id,
            evaluation.spec_url,
            len(endpoints),
        )

        if background:
            self._prune_threads()
            self.threads[evaluation.id] = self.orchestrator.start(evaluation.id, specification, endpoints)
        else:
            self.orchestrator.run(evaluation.id, specification, endpoints)

        return {
            "id": evaluation.id,
            "status": evaluation.status.value,
            "total_endpoints": len(endpoints),
            "message": "Evaluation started",
        }

    def _prune_threads(self) -> None:
        finished = [key for key, thread in self.threads.items() if not thread.is_alive()]
        for key in finished:
            del self.threads[key]

    def get_evaluation(self, evaluation_id: str) -> Evaluation:
        evaluation = self.store.get(evaluation_id)
        if evaluation is None:
            raise EvaluationNotFoundError(evaluation_id)
        return evaluation

    def list_evaluations(self, page: int = DEFAULT_PAGE, limit: int = DEFAULT_LIMIT) -> EvaluationPage:
        return self.store.list(page=page, limit=limit)

    def delete_evaluation(self, evaluation_id: str) -> None:
        if not self.store.delete(evaluation_id):
            raise EvaluationNotFoundError(evaluation_id)
        logger.info("Deleted evaluation %s", evaluation_id)

    def wait_for(self, evaluation_id: str, timeout: float = 60.0, poll_interval: float = 0.1) -> Evaluation:
        deadline = time.monotonic() + timeout
        while True:
            evaluation = self.get_evaluation(evaluation_id)
            if evaluation.status.is_terminal:
                return evaluation
            if time.monotonic() >= deadline:
                raise TimeoutError(
                    f"Evaluation {evaluation_id} still {evaluation.status.value} after {timeout}s"
                )
            time.sleep(poll_interval)
