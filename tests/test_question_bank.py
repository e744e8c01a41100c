from __future__ import annotations

from rumasta.question_bank import QuestionBank
from rumasta.services import SQLiteQuestionPool

CSV_HEADER = "level,question_text,correct_answer,incorrect_answers,explanation,image_url\n"


def test_reads_rows_and_splits_answers(db) -> None:
    questions_dir = db / "questions"
    questions_dir.mkdir()
    (questions_dir / "a1.csv").write_text(
        CSV_HEADER
        + 'A1-1,"Gender of ""стол""?",masculine,feminine | neuter,Consonant ending.,\n'
        + "A1-2,Pick the verb,читаю,читает|читают,,http://img/1.png\n",
        encoding="utf-8",
    )

    records = QuestionBank(str(questions_dir), SQLiteQuestionPool()).load_all()

    assert records[0]["question_text"] == 'Gender of "стол"?'
    assert records[0]["incorrect_answers"] == ["feminine", "neuter"]
    assert records[0]["image_url"] is None
    assert records[1]["explanation"] == ""
    assert records[1]["image_url"] == "http://img/1.png"


def test_skips_unknown_levels_and_bad_files(db, caplog) -> None:
    questions_dir = db / "questions"
    questions_dir.mkdir()
    (questions_dir / "bad.csv").write_text("word,translation\nHund,dog\n", encoding="utf-8")
    (questions_dir / "mixed.csv").write_text(
        CSV_HEADER + "C2-1,Too hard,x,y,,\nB1-3,Fine,a,b|c,,\n", encoding="utf-8"
    )

    records = QuestionBank(str(questions_dir), SQLiteQuestionPool()).load_all()

    assert [record["level"] for record in records] == ["B1-3"]
    assert "Missing columns" in caplog.text


def test_seed_only_fills_an_empty_table(db) -> None:
    questions_dir = db / "questions"
    questions_dir.mkdir()
    (questions_dir / "a1.csv").write_text(
        CSV_HEADER + "A1-1,Q1,a,b|c,,\nA1-1,Q2,a,b|c,,\n", encoding="utf-8"
    )
    pool = SQLiteQuestionPool()
    bank = QuestionBank(str(questions_dir), pool)

    assert bank.seed() == 2
    assert bank.seed() == 0
    assert pool.count_questions() == 2


def test_missing_directory_seeds_nothing(db) -> None:
    bank = QuestionBank(str(db / "absent"), SQLiteQuestionPool())

    assert bank.seed() == 0
