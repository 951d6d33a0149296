from __future__ import annotations

import argparse
import json
import sys

from api_evaluator.config_loader import EvaluatorConfig, load_config
from api_evaluator.errors import ConfigValidationError, EvaluationNotFoundError, SpecParseError
from api_evaluator.evaluation import EvaluationStatus
from api_evaluator.logging_setup import setup_logging
from api_evaluator.reporter import Reporter
from api_evaluator.service import EvaluationService


def run(spec: str, config: EvaluatorConfig, report_file: str | None = None) -> int:
    service = EvaluationService.from_config(config)
    try:
        ack = service.create_evaluation(spec_url=spec, background=False)
    except SpecParseError as exc:
        print(f"Failed to parse specification: {exc}")
        return 2

    evaluation = service.get_evaluation(ack["id"])
    reporter = Reporter(use_color=True)
    reporter.print(evaluation)
    if report_file:
        reporter.write(evaluation, report_file)

    if evaluation.status is not EvaluationStatus.COMPLETED or evaluation.failed_requests:
        return 1
    return 0


def list_evaluations(config: EvaluatorConfig, page: int, limit: int) -> int:
    service = EvaluationService.from_config(config)
    result = service.list_evaluations(page=page, limit=limit)
    for item in result.evaluations:
        print(
            f"{item['id']}  {item['status']:<9}  "
            f"{item['successful_requests']}/{item['total_endpoints']} ok  "
            f"{item['created_at']}  {item['spec_url']}"
        )
    print(f"Page {result.current}/{result.pages} ({result.total} evaluation(s))")
    return 0


def show(config: EvaluatorConfig, evaluation_id: str, as_json: bool) -> int:
    service = EvaluationService.from_config(config)
    try:
        evaluation = service.get_evaluation(evaluation_id)
    except EvaluationNotFoundError as exc:
        print(exc)
        return 1

    if as_json:
        print(json.dumps(evaluation.to_dict(), indent=2, default=str))
    else:
        Reporter(use_color=True).print(evaluation)
    return 0


def delete(config: EvaluatorConfig, evaluation_id: str) -> int:
    service = EvaluationService.from_config(config)
    try:
        service.delete_evaluation(evaluation_id)
    except EvaluationNotFoundError as exc:
        print(exc)
        return 1
    print(f"Evaluation {evaluation_id} deleted")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Evaluate the endpoints of an OpenAPI/Swagger description")
    parser.add_argument("--config", help="Optional path to a YAML config file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Evaluate a specification (URL or file)")
    run_parser.add_argument("spec", help="URL or path of the OpenAPI/Swagger document")
    run_parser.add_argument("--report-file", help="Optional output path for plain-text report")

    list_parser = subparsers.add_parser("list", help="List stored evaluations")
    list_parser.add_argument("--page", type=int, default=1)
    list_parser.add_argument("--limit", type=int, default=10)

    show_parser = subparsers.add_parser("show", help="Show one stored evaluation")
    show_parser.add_argument("id")
    show_parser.add_argument("--json", action="store_true", help="Print the raw record")

    delete_parser = subparsers.add_parser("delete", help="Delete a stored evaluation")
    delete_parser.add_argument("id")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigValidationError as exc:
        print(f"Config validation failed: {exc}")
        return 2

    setup_logging(config.log_level, config.log_file)

    if args.command == "run":
        return run(args.spec, config, report_file=args.report_file)
    if args.command == "list":
        return list_evaluations(config, args.page, args.limit)
    if args.command == "show":
        return show(config, args.id, args.json)
    return delete(config, args.id)


if __name__ == "__main__":
    sys.exit(main())
