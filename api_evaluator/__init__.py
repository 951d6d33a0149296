from api_evaluator.config_loader import EvaluatorConfig, load_config
from api_evaluator.data_synthesizer import DataSynthesizer, HeuristicRule, RequestPlan
from api_evaluator.errors import (
    ConfigValidationError,
    EvaluationInputError,
    EvaluationNotFoundError,
    EvaluatorError,
    InvalidTransitionError,
    OrchestrationError,
    SpecParseError,
)
from api_evaluator.evaluation import Evaluation, EvaluationStatus
from api_evaluator.orchestrator import EvaluationOrchestrator
from api_evaluator.reporter import Reporter
from api_evaluator.request_executor import RequestExecutor, RequestOutcome
from api_evaluator.result_aggregator import EndpointStats, EvaluationSummary, ResultAggregator
from api_evaluator.schema import SchemaResolver, SchemaType
from api_evaluator.service import EvaluationService
from api_evaluator.spec_loader import Endpoint, Parameter, Specification, SpecLoader
from api_evaluator.store import EvaluationPage, EvaluationStore

__all__ = [
    "ConfigValidationError",
    "DataSynthesizer",
    "Endpoint",
    "EndpointStats",
    "Evaluation",
    "EvaluationInputError",
    "EvaluationNotFoundError",
    "EvaluationOrchestrator",
    "EvaluationPage",
    "EvaluationService",
    "EvaluationStatus",
    "EvaluationStore",
    "EvaluationSummary",
    "EvaluatorConfig",
    "EvaluatorError",
    "HeuristicRule",
    "InvalidTransitionError",
    "OrchestrationError",
    "Parameter",
    "Reporter",
    "RequestExecutor",
    "RequestOutcome",
    "RequestPlan",
    "ResultAggregator",
    "SchemaResolver",
    "SchemaType",
    "SpecLoader",
    "SpecParseError",
    "Specification",
    "load_config",
]
