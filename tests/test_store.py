import shutil
import tempfile
import unittest
from pathlib import Path

from api_evaluator.evaluation import Evaluation, EvaluationStatus
from api_evaluator.store import EvaluationStore


def _evaluation(index: int) -> Evaluation:
    return Evaluation(
        spec_url=f"http://api.example.test/{index}.json",
        spec_content={"openapi": "3.0.0", "info": {"title": str(index)}},
        total_endpoints=index,
        created_at=f"2024-01-01T00:00:{index:02d}+00:00",
    )


class EvaluationStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.directory = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, self.directory, ignore_errors=True)
        self.store = EvaluationStore(self.directory / "evaluations")

    def test_create_get_update(self) -> None:
        evaluation = self.store.create(_evaluation(1))

        loaded = self.store.get(evaluation.id)
        self.assertEqual(loaded, evaluation)

        loaded.transition_to(EvaluationStatus.RUNNING)
        self.store.update(loaded)
        self.assertIs(self.store.get(evaluation.id).status, EvaluationStatus.RUNNING)

    def test_duplicate_create_is_rejected(self) -> None:
        evaluation = self.store.create(_evaluation(1))
        with self.assertRaises(FileExistsError):
            self.store.create(evaluation)

    def test_unknown_and_unsafe_ids(self) -> None:
        self.assertIsNone(self.store.get("missing"))
        self.assertIsNone(self.store.get("../outside"))
        self.assertFalse(self.store.delete("../outside"))

    def test_delete(self) -> None:
        first = self.store.create(_evaluation(1))
        self.store.create(_evaluation(2))

        self.assertFalse(self.store.delete("unknown"))
        self.assertEqual(self.store.count(), 2)

        self.assertTrue(self.store.delete(first.id))
        self.assertIsNone(self.store.get(first.id))
        self.assertEqual(self.store.count(), 1)

    def test_pagination_newest_first(self) -> None:
        for index in range(15):
            self.store.create(_evaluation(index))

        first = self.store.list(page=1, limit=10)
        self.assertEqual(len(first.evaluations), 10)
        self.assertEqual(first.evaluations[0]["total_endpoints"], 14)

        second = self.store.list(page=2, limit=10)
        self.assertEqual(len(second.evaluations), 5)
        self.assertEqual(second.evaluations[-1]["total_endpoints"], 0)
        self.assertEqual(second.to_dict()["pagination"], {"current": 2, "pages": 2, "total": 15})

    def test_listing_omits_logs_and_content(self) -> None:
        self.store.create(_evaluation(1))
        (listing,) = self.store.list().evaluations
        self.assertNotIn("request_logs", listing)
        self.assertNotIn("spec_content", listing)
        self.assertEqual(listing["status"], "pending")

    def test_invalid_paging_falls_back_to_defaults(self) -> None:
        self.store.create(_evaluation(1))
        page = self.store.list(page=0, limit=-5)
        self.assertEqual((page.current, page.pages, page.total), (1, 1, 1))

    def test_empty_store(self) -> None:
        page = self.store.list()
        self.assertEqual(page.to_dict(), {"evaluations": [], "pagination": {"current": 1, "pages": 0, "total": 0}})


if __name__ == "__main__":
    unittest.main()
