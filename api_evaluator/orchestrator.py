from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from api_evaluator.data_synthesizer import DataSynthesizer
from api_evaluator.errors import OrchestrationError
from api_evaluator.evaluation import Evaluation, EvaluationStatus
from api_evaluator.request_executor import RequestExecutor, RequestOutcome
from api_evaluator.result_aggregator import ResultAggregator
from api_evaluator.spec_loader import Endpoint, Specification
from api_evaluator.store import EvaluationStore

logger = logging.getLogger(__name__)

SynthesizerFactory = Callable[[Specification], DataSynthesizer]


class EvaluationOrchestrator:
    def __init__(
        self,
        store: EvaluationStore,
        executor: Optional[RequestExecutor] = None,
        aggregator: Optional[ResultAggregator] = None,
        synthesizer_factory: Optional[SynthesizerFactory] = None,
    ) -> None:
        self.store = store
        self.executor = executor or RequestExecutor()
        self.aggregator = aggregator or ResultAggregator()
        self.synthesizer_factory = synthesizer_factory or DataSynthesizer

    def start(
        self,
        evaluation_id: str,
        specification: Specification,
        endpoints: Optional[List[Endpoint]] = None,
    ) -> threading.Thread:
        thread = threading.Thread(
            target=self.run,
            args=(evaluation_id, specification, endpoints),
            name=f"evaluation-{evaluation_id}",
            daemon=True,
        )
        thread.start()
        return thread

    def run(
        self,
        evaluation_id: str,
        specification: Specification,
        endpoints: Optional[List[Endpoint]] = None,
    ) -> Optional[Evaluation]:
        evaluation: Optional[Evaluation] = None
        try:
            evaluation = self.store.get(evaluation_id)
            if evaluation is None:
                raise OrchestrationError(f"Evaluation {evaluation_id} not found")

            evaluation.transition_to(EvaluationStatus.RUNNING)
            self.store.update(evaluation)
            logger.info("Evaluation %s running", evaluation_id)

            if endpoints is None:
                endpoints = specification.endpoints()
            synthesizer = self.synthesizer_factory(specification)

            for endpoint in endpoints:
                evaluation.record(self._evaluate_endpoint(synthesizer, endpoint))
                self.store.update(evaluation)

            summary = self.aggregator.summarize(evaluation.request_logs)
            evaluation.summary = summary.to_dict()
            evaluation.success_rate = summary.success_rate
            evaluation.transition_to(EvaluationStatus.COMPLETED)
            self.store.update(evaluation)
            logger.info(
                "Evaluation %s completed: %d/%d successful (%.1f%%)",
                evaluation_id,
                evaluation.successful_requests,
                evaluation.total_endpoints,
                evaluation.success_rate,
            )
            return evaluation
        except Exception as exc:
            logger.exception("Evaluation %s failed", evaluation_id)
            return self._mark_failed(evaluation_id, evaluation, exc)

    def _evaluate_endpoint(self, synthesizer: DataSynthesizer, endpoint: Endpoint) -> RequestOutcome:
        try:
            plan = synthesizer.build_plan(endpoint)
            outcome = self.executor.execute(plan, endpoint)
        except Exception as exc:
            logger.error("Error testing endpoint %s: %s", endpoint.key, exc)
            return RequestOutcome.failed(endpoint, str(exc))

        logger.debug(
            "%s -> %s (%s)",
            endpoint.key,
            outcome.response_status,
            "ok" if outcome.success else outcome.error,
        )
        return outcome

    def _mark_failed(
        self,
        evaluation_id: str,
        evaluation: Optional[Evaluation],
        exc: Exception,
    ) -> Optional[Evaluation]:
        # Only the status, completion stamp and error change; persisted logs stay as they were.
        try:
            persisted = self.store.get(evaluation_id)
            if persisted is None:
                return None
            if persisted.status.is_terminal:
                return persisted

            if persisted.status is EvaluationStatus.PENDING:
                persisted.transition_to(EvaluationStatus.RUNNING)
            persisted.transition_to(EvaluationStatus.FAILED)
            persisted.summary = {"error": str(exc)}
            self.store.update(persisted)
            return persisted
        except Exception:
            logger.exception("Could not mark evaluation %s as failed", evaluation_id)
            return evaluation
