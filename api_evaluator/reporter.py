from __future__ import annotations

from pathlib import Path
from typing import List

from colorama import Fore, Style, init

from api_evaluator.evaluation import Evaluation, EvaluationStatus
from api_evaluator.result_aggregator import EvaluationSummary, ResultAggregator


class Reporter:
    def __init__(self, use_color: bool = True) -> None:
        init(autoreset=True)
        self.use_color = use_color

    def render(self, evaluation: Evaluation) -> str:
        lines = ["========== EVALUATION REPORT =========="]
        lines.append(f"Evaluation: {evaluation.id}")
        lines.append(f"Specification: {evaluation.spec_url}")
        lines.append(f"Status: {self._status(evaluation.status)}")
        lines.append(f"Created: {evaluation.created_at}")
        if evaluation.completed_at:
            lines.append(f"Completed: {evaluation.completed_at}")
        lines.append("")

        for log in evaluation.request_logs:
            marker = self._marker(log.success)
            status_display = log.response_status if log.response_status else "ERR"
            message = f"HTTP {status_display}, latency={log.response_time:.1f}ms"
            if log.error:
                message += f", error={log.error}"
            lines.append(f"{marker} {log.method} {log.endpoint} - {message}")

        if evaluation.summary and "total_requests" in evaluation.summary:
            summary = EvaluationSummary.from_dict(evaluation.summary)
        else:
            summary = ResultAggregator().summarize(evaluation.request_logs)

        lines.append("=======================================")
        lines.append(
            f"Summary: successful={summary.successful_requests}, failed={summary.failed_requests}, "
            f"total={evaluation.total_endpoints}, success_rate={summary.success_rate:.1f}%, "
            f"avg_response_time={summary.average_response_time:.1f}ms"
        )
        lines.extend(self._endpoint_lines(summary))
        lines.extend(self._distribution("Status codes", summary.status_code_distribution))
        lines.extend(self._distribution("Errors", summary.error_types))
        if evaluation.status is EvaluationStatus.FAILED and evaluation.summary.get("error"):
            lines.append(f"Evaluation error: {evaluation.summary['error']}")
        return "\n".join(lines)

    def print(self, evaluation: Evaluation) -> None:
        print(self.render(evaluation))

    def write(self, evaluation: Evaluation, path: str | Path) -> None:
        plain = Reporter(use_color=False)
        Path(path).write_text(plain.render(evaluation), encoding="utf-8")

    def _endpoint_lines(self, summary: EvaluationSummary) -> List[str]:
        if not summary.endpoint_summary:
            return []
        lines = ["Endpoints:"]
        for key, stats in summary.endpoint_summary.items():
            lines.append(
                f"  {key}: {stats.successful}/{stats.total} successful "
                f"({stats.success_rate:.1f}%), avg {stats.average_response_time:.1f}ms"
            )
        return lines

    def _distribution(self, title: str, counts: dict) -> List[str]:
        if not counts:
            return []
        ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [f"{title}:"] + [f"  {name}: {count}" for name, count in ordered]

    def _marker(self, passed: bool) -> str:
        marker = "[PASS]" if passed else "[FAIL]"
        if self.use_color:
            color = Fore.GREEN if passed else Fore.RED
            marker = f"{color}{marker}{Style.RESET_ALL}"
        return marker

    def _status(self, status: EvaluationStatus) -> str:
        if not self.use_color:
            return status.value
        colors = {
            EvaluationStatus.COMPLETED: Fore.GREEN,
            EvaluationStatus.FAILED: Fore.RED,
            EvaluationStatus.RUNNING: Fore.YELLOW,
        }
        color = colors.get(status, "")
        return f"{color}{status.value}{Style.RESET_ALL}"
