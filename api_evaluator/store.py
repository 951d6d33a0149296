from __future__ import annotations

import json
import logging
import math
import os
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from api_evaluator.evaluation import Evaluation

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass
class EvaluationPage:
    evaluations: List[Dict[str, Any]] = field(default_factory=list)
    current: int = DEFAULT_PAGE
    pages: int = 0
    total: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "evaluations": self.evaluations,
            "pagination": {"current": self.current, "pages": self.pages, "total": self.total},
        }


class EvaluationStore:
    """One JSON document per evaluation under ``directory``.

    Writes replace the whole document (no optimistic concurrency), so the
    last writer of a given evaluation wins.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def create(self, evaluation: Evaluation) -> Evaluation:
        with self._lock:
            if self._path(evaluation.id).exists():
                raise FileExistsError(f"Evaluation {evaluation.id} already exists")
            self._write(evaluation)
        logger.debug("Created evaluation %s", evaluation.id)
        return evaluation

    def get(self, evaluation_id: str) -> Optional[Evaluation]:
        data = self._read(evaluation_id)
        return Evaluation.from_dict(data) if data is not None else None

    def update(self, evaluation: Evaluation) -> Evaluation:
        with self._lock:
            self._write(evaluation)
        return evaluation

    def delete(self, evaluation_id: str) -> bool:
        if not _SAFE_ID.match(evaluation_id):
            return False
        with self._lock:
            path = self._path(evaluation_id)
            if not path.exists():
                return False
            path.unlink()
        logger.debug("Deleted evaluation %s", evaluation_id)
        return True

    def count(self) -> int:
        return len(list(self.directory.glob("*.json")))

    def list(self, page: int = DEFAULT_PAGE, limit: int = DEFAULT_LIMIT) -> EvaluationPage:
        page = page if page and page > 0 else DEFAULT_PAGE
        limit = limit if limit and limit > 0 else DEFAULT_LIMIT

        documents = []
        for path in self.directory.glob("*.json"):
            data = self._read(path.stem)
            if data is not None:
                documents.append(data)
        documents.sort(key=lambda doc: doc.get("created_at") or "", reverse=True)

        total = len(documents)
        skip = (page - 1) * limit
        listings = [Evaluation.from_dict(doc).to_listing() for doc in documents[skip:skip + limit]]
        return EvaluationPage(
            evaluations=listings,
            current=page,
            pages=math.ceil(total / limit),
            total=total,
        )

    def _path(self, evaluation_id: str) -> Path:
        return self.directory / f"{evaluation_id}.json"

    def _read(self, evaluation_id: str) -> Optional[Dict[str, Any]]:
        if not _SAFE_ID.match(evaluation_id):
            return None
        path = self._path(evaluation_id)
        with self._lock:
            if not path.exists():
                return None
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)

    def _write(self, evaluation: Evaluation) -> None:
        path = self._path(evaluation.id)
        tmp_path = path.with_suffix(".json.tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(evaluation.to_dict(), handle, indent=2, default=str)
        os.replace(tmp_path, path)
