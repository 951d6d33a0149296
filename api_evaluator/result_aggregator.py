from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Union

from api_evaluator.request_executor import RequestOutcome


@dataclass
class EndpointStats:
    total: int = 0
    successful: int = 0
    failed: int = 0
    success_rate: float = 0.0
    average_response_time: float = 0.0


@dataclass
class EvaluationSummary:
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    success_rate: float = 0.0
    average_response_time: float = 0.0
    endpoint_summary: Dict[str, EndpointStats] = field(default_factory=dict)
    status_code_distribution: Dict[str, int] = field(default_factory=dict)
    error_types: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EvaluationSummary":
        endpoints = {
            key: EndpointStats(**stats) for key, stats in (data.get("endpoint_summary") or {}).items()
        }
        return cls(
            total_requests=data.get("total_requests", 0),
            successful_requests=data.get("successful_requests", 0),
            failed_requests=data.get("failed_requests", 0),
            success_rate=data.get("success_rate", 0.0),
            average_response_time=data.get("average_response_time", 0.0),
            endpoint_summary=endpoints,
            status_code_distribution=dict(data.get("status_code_distribution") or {}),
            error_types=dict(data.get("error_types") or {}),
        )


class ResultAggregator:
    def summarize(self, outcomes: Iterable[Union[RequestOutcome, Mapping[str, Any]]]) -> EvaluationSummary:
        logs: List[RequestOutcome] = [
            item if isinstance(item, RequestOutcome) else RequestOutcome.from_dict(dict(item))
            for item in outcomes
        ]

        summary = EvaluationSummary(total_requests=len(logs))
        total_time = 0.0
        endpoint_times: Dict[str, float] = {}

        for log in logs:
            if log.success:
                summary.successful_requests += 1
            else:
                summary.failed_requests += 1
            total_time += log.response_time

            stats = summary.endpoint_summary.setdefault(log.key, EndpointStats())
            stats.total += 1
            if log.success:
                stats.successful += 1
            else:
                stats.failed += 1
            endpoint_times[log.key] = endpoint_times.get(log.key, 0.0) + log.response_time

            status = str(log.response_status)
            summary.status_code_distribution[status] = summary.status_code_distribution.get(status, 0) + 1

            if log.error:
                summary.error_types[log.error] = summary.error_types.get(log.error, 0) + 1

        if summary.total_requests:
            summary.success_rate = summary.successful_requests / summary.total_requests * 100
            summary.average_response_time = total_time / summary.total_requests

        for key, stats in summary.endpoint_summary.items():
            stats.success_rate = stats.successful / stats.total * 100
            stats.average_response_time = endpoint_times[key] / stats.total

        return summary
