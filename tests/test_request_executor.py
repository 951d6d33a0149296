import json
import socket
import unittest

import requests

from api_evaluator.data_synthesizer import RequestPlan
from api_evaluator.request_executor import (
    CONNECTION_REFUSED_LABEL,
    DNS_FAILURE_LABEL,
    TIMEOUT_LABEL,
    RequestExecutor,
    RequestOutcome,
    cap_body,
    describe_error,
)
from support import PetStoreServerMixin, ScriptedSession, closed_port, make_response


def _plan(method: str = "GET", url: str = "http://example.test/pet/1", **kwargs) -> RequestPlan:
    return RequestPlan(url=url, method=method, headers={"Accept": "application/json"}, **kwargs)


class RetryTests(unittest.TestCase):
    def test_success_on_third_attempt_after_linear_backoff(self) -> None:
        session = ScriptedSession(
            [
                requests.ConnectionError("first"),
                requests.Timeout("second"),
                make_response(200, {"id": 1}),
            ]
        )
        waits = []
        executor = RequestExecutor(retry_delay_seconds=1.0, session=session, sleep=waits.append)

        outcome = executor.execute(_plan())

        self.assertTrue(outcome.success)
        self.assertEqual(outcome.attempts, 3)
        self.assertEqual(len(session.calls), 3)
        self.assertEqual(waits, [1.0, 2.0])
        self.assertEqual(outcome.response_body, {"id": 1})
        self.assertIsNone(outcome.error)

    def test_elapsed_time_includes_backoff(self) -> None:
        delay = 0.05
        session = ScriptedSession(
            [requests.ConnectionError("a"), requests.ConnectionError("b"), make_response(204)]
        )
        executor = RequestExecutor(retry_delay_seconds=delay, session=session)

        outcome = executor.execute(_plan())

        self.assertTrue(outcome.success)
        self.assertEqual(outcome.attempts, 3)
        self.assertGreaterEqual(outcome.response_time, (delay * 1 + delay * 2) * 1000)

    def test_exhausted_attempts_are_a_failure(self) -> None:
        session = ScriptedSession([requests.ConnectTimeout("t")] * 3)
        waits = []
        executor = RequestExecutor(session=session, sleep=waits.append)

        outcome = executor.execute(_plan())

        self.assertFalse(outcome.success)
        self.assertEqual(outcome.attempts, 3)
        self.assertEqual(outcome.response_status, 0)
        self.assertEqual(outcome.error, TIMEOUT_LABEL)
        self.assertEqual(waits, [1.0, 2.0])

    def test_http_error_status_is_not_retried(self) -> None:
        session = ScriptedSession([make_response(500, {"error": "boom"}, reason="Internal Server Error")])
        executor = RequestExecutor(session=session, sleep=lambda _: self.fail("should not sleep"))

        outcome = executor.execute(_plan())

        self.assertFalse(outcome.success)
        self.assertEqual(outcome.attempts, 1)
        self.assertEqual(outcome.response_status, 500)
        self.assertEqual(outcome.error, "HTTP 500: Internal Server Error")

    def test_redirect_status_counts_as_success(self) -> None:
        session = ScriptedSession([make_response(304, reason="Not Modified")])
        outcome = RequestExecutor(session=session).execute(_plan())
        self.assertTrue(outcome.success)
        self.assertIsNone(outcome.response_body)


class RequestEncodingTests(unittest.TestCase):
    def test_get_sends_no_body_and_passes_params(self) -> None:
        session = ScriptedSession([make_response(200, [])])
        RequestExecutor(session=session).execute(_plan(params={"status": "sold"}, body={"ignored": True}))

        call = session.calls[0]
        self.assertEqual(call["params"], {"status": "sold"})
        self.assertEqual(call["timeout"], 10.0)
        self.assertNotIn("json", call)

    def test_form_and_multipart_encoding(self) -> None:
        session = ScriptedSession([make_response(200), make_response(200)])
        executor = RequestExecutor(session=session)

        form = _plan("POST", body={"name": "Max", "tags": ["a"]})
        form.headers["Content-Type"] = "application/x-www-form-urlencoded"
        executor.execute(form)
        self.assertEqual(session.calls[0]["data"], {"name": "Max", "tags": json.dumps(["a"])})

        multipart = _plan("POST", body={"file": "x"})
        multipart.headers["Content-Type"] = "multipart/form-data"
        executor.execute(multipart)
        self.assertEqual(session.calls[1]["files"], {"file": (None, "x")})
        self.assertNotIn("Content-Type", session.calls[1]["headers"])

    def test_json_body(self) -> None:
        session = ScriptedSession([make_response(200)])
        plan = _plan("POST", body={"quantity": 2})
        plan.headers["Content-Type"] = "application/json"
        outcome = RequestExecutor(session=session).execute(plan)

        self.assertEqual(session.calls[0]["json"], {"quantity": 2})
        self.assertEqual(outcome.request_body, {"quantity": 2})
        self.assertEqual(outcome.request_headers["Content-Type"], "application/json")


class ErrorClassificationTests(unittest.TestCase):
    def test_timeout(self) -> None:
        self.assertEqual(describe_error(requests.ReadTimeout("read timed out")), TIMEOUT_LABEL)

    def test_dns_failure(self) -> None:
        exc = requests.ConnectionError(socket.gaierror(-2, "Name or service not known"))
        self.assertEqual(describe_error(exc), DNS_FAILURE_LABEL)

    def test_connection_refused(self) -> None:
        exc = requests.ConnectionError(ConnectionRefusedError(111, "Connection refused"))
        self.assertEqual(describe_error(exc), CONNECTION_REFUSED_LABEL)

    def test_error_carrying_a_response(self) -> None:
        response = make_response(404, reason="Not Found")
        exc = requests.HTTPError("not found", response=response)
        self.assertEqual(describe_error(exc), "HTTP 404: Not Found")

    def test_other_errors_pass_through(self) -> None:
        self.assertEqual(describe_error(requests.exceptions.InvalidURL("bad url")), "bad url")


class TruncationTests(unittest.TestCase):
    def test_oversized_body_is_truncated_with_original_size(self) -> None:
        body = {"data": "x" * 14988}
        serialized = json.dumps(body)
        self.assertEqual(len(serialized), 15000)

        capped = cap_body(body)

        self.assertTrue(capped["truncated"])
        self.assertEqual(capped["originalSize"], 15000)
        self.assertEqual(capped["data"], serialized[:10000])

    def test_small_body_is_untouched(self) -> None:
        body = {"data": "x" * 100}
        self.assertIs(cap_body(body), body)
        self.assertIsNone(cap_body(None))

    def test_non_ascii_body_is_measured_in_characters(self) -> None:
        body = {"text": "中" * 3000}
        self.assertIs(cap_body(body), body)

        large = {"text": "é" * 10000}
        capped = cap_body(large)
        self.assertEqual(capped["originalSize"], 10012)
        self.assertEqual(capped["data"], '{"text": "' + "é" * 9990)

    def test_prefix_is_reparsed_when_possible(self) -> None:
        capped = cap_body(123456, max_chars=3)
        self.assertEqual(capped["data"], 123)

        capped = cap_body([1, 2, 3], max_chars=5)
        self.assertEqual(capped["originalSize"], len("[1, 2, 3]"))
        self.assertEqual(capped["data"], "[1, 2")

    def test_executor_caps_large_responses(self) -> None:
        session = ScriptedSession([make_response(200, {"data": "y" * 20000})])
        outcome = RequestExecutor(session=session).execute(_plan())
        self.assertTrue(outcome.response_body["truncated"])
        self.assertEqual(len(outcome.response_body["data"]), 10000)


class OutcomeSerializationTests(unittest.TestCase):
    def test_dict_form_preserves_fields(self) -> None:
        outcome = RequestOutcome(endpoint="/pet", method="POST", url="http://x/pet", response_status=201, success=True)
        restored = RequestOutcome.from_dict(outcome.to_dict())
        self.assertEqual(restored, outcome)
        self.assertEqual(restored.key, "POST /pet")


class LiveExecutorTests(PetStoreServerMixin, unittest.TestCase):
    def test_live_success_and_not_found(self) -> None:
        executor = RequestExecutor(timeout_seconds=5, retry_count=0)

        found = executor.execute(_plan(url=f"{self.base_url}/pet/1"))
        self.assertTrue(found.success)
        self.assertEqual(found.response_body["id"], 1)
        self.assertEqual(found.response_headers["Content-Type"], "application/json")

        missing = executor.execute(_plan(url=f"{self.base_url}/pet/999"))
        self.assertFalse(missing.success)
        self.assertEqual(missing.response_status, 404)
        self.assertEqual(missing.error.lower(), "http 404: not found")

    def test_live_form_post(self) -> None:
        plan = _plan("POST", url=f"{self.base_url}/pet/2", body={"name": "Lucy"})
        plan.headers["Content-Type"] = "application/x-www-form-urlencoded"
        outcome = RequestExecutor(timeout_seconds=5, retry_count=0).execute(plan)
        self.assertTrue(outcome.success)
        self.assertEqual(outcome.response_body["name"], "Lucy")

    def test_refused_connection_is_retried_then_labelled(self) -> None:
        waits = []
        executor = RequestExecutor(timeout_seconds=2, retry_count=2, retry_delay_seconds=0.01, sleep=waits.append)

        outcome = executor.execute(_plan(url=f"http://127.0.0.1:{closed_port()}/pet/1"))

        self.assertFalse(outcome.success)
        self.assertEqual(outcome.attempts, 3)
        self.assertEqual(outcome.error, CONNECTION_REFUSED_LABEL)
        self.assertEqual(len(waits), 2)


if __name__ == "__main__":
    unittest.main()
