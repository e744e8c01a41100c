import glob
import logging
import os
from typing import Any, Dict, List

import pandas as pd

from .levels import is_valid_level
from .services import SQLiteQuestionPool

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("level", "question_text", "correct_answer", "incorrect_answers")
ANSWER_SEPARATOR = "|"


def _cell(row: Dict[str, Any], column: str) -> str:
    value = row.get(column)
    if value is None or pd.isna(value):
        return ""
    return str(value).strip()


def _split_answers(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(ANSWER_SEPARATOR) if part.strip()]


class QuestionBank:
    """Imports question CSV files into the assignments table."""

    def __init__(self, directory: str, pool: SQLiteQuestionPool):
        self.directory = directory
        self.pool = pool

    def read_file(self, file_path: str) -> List[Dict[str, Any]]:
        df = pd.read_csv(file_path, encoding="utf-8", dtype=str)
        missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
        if missing:
            logger.error(
                f"Skipping {os.path.basename(file_path)}: Missing columns {missing}."
            )
            return []

        records = []
        for row in df.to_dict("records"):
            level = _cell(row, "level")
            if not is_valid_level(level):
                logger.warning(
                    f"Skipping question with unknown level {level!r} in {file_path}"
                )
                continue
            records.append(
                {
                    "level": level,
                    "question_text": _cell(row, "question_text"),
                    "correct_answer": _cell(row, "correct_answer"),
                    "incorrect_answers": _split_answers(
                        _cell(row, "incorrect_answers")
                    ),
                    "explanation": _cell(row, "explanation"),
                    "image_url": _cell(row, "image_url") or None,
                }
            )
        return records

    def load_all(self) -> List[Dict[str, Any]]:
        if not os.path.exists(self.directory):
            logger.warning(f"Question directory {self.directory} does not exist.")
            return []

        records = []
        for file_path in sorted(glob.glob(os.path.join(self.directory, "*.csv"))):
            try:
                loaded = self.read_file(file_path)
            except Exception as e:
                logger.error(f"Failed to load {file_path}: {e}")
                continue
            logger.info(f"Loaded {len(loaded)} questions from {file_path}")
            records.extend(loaded)
        return records

    def seed(self) -> int:
        """Fills an empty assignments table from the CSV files; returns rows added."""
        if self.pool.count_questions() > 0:
            return 0
        records = self.load_all()
        if not records:
            logger.warning("No questions imported; every level will report no data.")
            return 0
        return self.pool.add_questions(records)
