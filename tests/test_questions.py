"""Tests for per-type answer normalization and answer progress counting."""

import pytest

from futuretek.models.assessment import Question, QuestionType


def _q(qid, qtype, options=None):
    return Question(id=qid, question_text=f"Question {qid}", question_type=qtype, options=options)


class TestNormalizeAnswer:
    def test_multiple_choice_stores_option_text(self):
        from futuretek.client.questions import normalize_answer

        question = _q("q1", QuestionType.MULTIPLE_CHOICE, ["Sun", "Moon"])
        assert normalize_answer(question, "Moon") == "Moon"

    def test_multiple_choice_rejects_unknown_option(self):
        from futuretek.client.questions import normalize_answer

        question = _q("q1", QuestionType.MULTIPLE_CHOICE, ["Sun", "Moon"])
        with pytest.raises(ValueError):
            normalize_answer(question, "Mars")

    def test_true_false_is_lowercase_string(self):
        from futuretek.client.questions import normalize_answer

        question = _q("q1", QuestionType.TRUE_FALSE, ["True", "False"])
        assert normalize_answer(question, True) == "true"
        assert normalize_answer(question, "False") == "false"

    def test_text_answers_are_kept_raw(self):
        from futuretek.client.questions import normalize_answer

        assert normalize_answer(_q("q1", QuestionType.SHORT_ANSWER), "  Saturn ") == "  Saturn "
        assert normalize_answer(_q("q2", QuestionType.ESSAY), "Long text\n") == "Long text\n"


class TestAnswerProgress:
    def test_counts_only_answered_values(self):
        from futuretek.client.questions import answer_progress

        questions = [_q(f"q{i}", QuestionType.SHORT_ANSWER) for i in range(3)]
        progress = answer_progress(questions, {"q0": "a", "q1": "", "q2": None})

        assert progress.answered == 1
        assert progress.total == 3
        assert progress.percentage == 33

    def test_rounds_half_up(self):
        from futuretek.client.questions import answer_progress

        questions = [_q(f"q{i}", QuestionType.SHORT_ANSWER) for i in range(8)]
        progress = answer_progress(questions, {"q0": "a"})

        # 12.5 -> 13
        assert progress.percentage == 13

    def test_no_questions(self):
        from futuretek.client.questions import answer_progress

        assert answer_progress([], {}).percentage == 0

    def test_stray_keys_still_count(self):
        from futuretek.client.questions import answer_progress

        questions = [_q("q0", QuestionType.SHORT_ANSWER)]
        progress = answer_progress(questions, {"unknown": "x"})

        assert progress.answered == 1


class TestDuplicateOptions:
    def test_reports_repeated_text(self):
        from futuretek.client.questions import duplicate_options, questions_with_duplicate_options

        dup = _q("q1", QuestionType.MULTIPLE_CHOICE, ["Sun", "Moon", "Sun"])
        clean = _q("q2", QuestionType.MULTIPLE_CHOICE, ["Sun", "Moon"])

        assert duplicate_options(dup) == ["Sun"]
        assert questions_with_duplicate_options([dup, clean]) == {"q1": ["Sun"]}
