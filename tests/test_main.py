import contextlib
import io
import json
import shutil
import tempfile
import unittest
from pathlib import Path

import main
from support import PetStoreServerMixin


class MainCliTests(PetStoreServerMixin, unittest.TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.directory = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, self.directory, ignore_errors=True)
        self.config = self.directory / "evaluator.yaml"
        self.config.write_text(
            f"store_dir: {self.directory / 'store'}\nretry_count: 0\ntimeout_seconds: 5\nlog_level: WARNING\n",
            encoding="utf-8",
        )

    def _main(self, *argv: str):
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = main.main(["--config", str(self.config), *argv])
        return code, out.getvalue()

    def test_run_list_show_delete(self) -> None:
        report = self.directory / "report.txt"
        code, output = self._main("run", f"{self.base_url}/openapi.json", "--report-file", str(report))
        self.assertEqual(code, 0, output)
        self.assertIn("Status: completed", report.read_text(encoding="utf-8"))

        code, output = self._main("list")
        self.assertEqual(code, 0)
        self.assertIn("Page 1/1 (1 evaluation(s))", output)
        evaluation_id = output.split()[0]

        code, output = self._main("show", evaluation_id, "--json")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(output)["total_endpoints"], 8)

        self.assertEqual(self._main("delete", evaluation_id)[0], 0)
        code, output = self._main("show", evaluation_id)
        self.assertEqual(code, 1)
        self.assertIn("not found", output)

    def test_unparseable_spec_exits_with_two(self) -> None:
        code, output = self._main("run", str(self.directory / "missing.yaml"))
        self.assertEqual(code, 2)
        self.assertIn("Failed to parse specification", output)

    def test_invalid_config_exits_with_two(self) -> None:
        self.config.write_text("unknown_key: 1\n", encoding="utf-8")
        code, output = self._main("list")
        self.assertEqual(code, 2)
        self.assertIn("Config validation failed", output)


if __name__ == "__main__":
    unittest.main()
