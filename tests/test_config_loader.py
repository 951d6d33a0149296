import tempfile
import textwrap
import unittest
from pathlib import Path

from api_evaluator.config_loader import EvaluatorConfig, load_config
from api_evaluator.errors import ConfigValidationError


class ConfigLoaderTests(unittest.TestCase):
    def _write_config(self, content: str) -> Path:
        tmp = tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False)
        tmp.write(textwrap.dedent(content))
        tmp.flush()
        tmp.close()
        path = Path(tmp.name)
        self.addCleanup(path.unlink, missing_ok=True)
        return path

    def test_defaults_without_file(self) -> None:
        config = load_config(None)
        self.assertEqual(config, EvaluatorConfig())
        self.assertEqual(config.timeout_seconds, 10.0)
        self.assertEqual(config.retry_count, 2)
        self.assertEqual(config.retry_delay_seconds, 1.0)
        self.assertEqual(config.max_body_chars, 10000)

    def test_load_valid_config(self) -> None:
        path = self._write_config(
            """
            timeout_seconds: 3
            retry_count: 0
            retry_delay_seconds: 0.5
            store_dir: /tmp/evaluations
            log_level: debug
            """
        )

        config = load_config(path)
        self.assertEqual(config.timeout_seconds, 3.0)
        self.assertEqual(config.retry_count, 0)
        self.assertEqual(config.retry_delay_seconds, 0.5)
        self.assertEqual(config.store_dir, "/tmp/evaluations")
        self.assertEqual(config.log_level, "DEBUG")

    def test_empty_file_yields_defaults(self) -> None:
        path = self._write_config("")
        self.assertEqual(load_config(path), EvaluatorConfig())

    def test_rejects_unknown_keys(self) -> None:
        path = self._write_config(
            """
            timeout_seconds: 3
            retries: 5
            """
        )

        with self.assertRaises(ConfigValidationError) as ctx:
            load_config(path)
        self.assertIn("retries", str(ctx.exception))

    def test_rejects_negative_retry_count(self) -> None:
        path = self._write_config("retry_count: -1\n")
        with self.assertRaises(ConfigValidationError):
            load_config(path)

    def test_rejects_invalid_log_level(self) -> None:
        path = self._write_config("log_level: LOUD\n")
        with self.assertRaises(ConfigValidationError):
            load_config(path)

    def test_rejects_probability_out_of_range(self) -> None:
        path = self._write_config("optional_field_probability: 1.5\n")
        with self.assertRaises(ConfigValidationError):
            load_config(path)

    def test_missing_file(self) -> None:
        with self.assertRaises(ConfigValidationError):
            load_config("/nonexistent/evaluator.yaml")

    def test_config_error_is_value_error(self) -> None:
        path = self._write_config("- not\n- a\n- mapping\n")
        with self.assertRaises(ValueError):
            load_config(path)


if __name__ == "__main__":
    unittest.main()
