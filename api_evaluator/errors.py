from __future__ import annotations


class EvaluatorError(Exception):
    pass


class SpecParseError(EvaluatorError):
    pass


class ConfigValidationError(EvaluatorError, ValueError):
    pass


class EvaluationInputError(EvaluatorError, ValueError):
    pass


class EvaluationNotFoundError(EvaluatorError, LookupError):
    def __init__(self, evaluation_id: str) -> None:
        super().__init__(f"Evaluation {evaluation_id} not found")
        self.evaluation_id = evaluation_id


class InvalidTransitionError(EvaluatorError):
    pass


class OrchestrationError(EvaluatorError):
    pass
