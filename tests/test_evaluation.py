import pytest
from fastapi import HTTPException

from examsuite.models.exam import EvaluationPolicy, Question
from examsuite.models.submission import EvaluatorKind, compute_total_marks
from examsuite.services.evaluation import evaluate_answers, summarize_evaluations
from examsuite.services.scorer_transport import ScoringTransportError
from helpers import make_scorer, run

MCQ = Question(
    question_id="q_mcq",
    type="multiple-choice",
    text="2 + 2 = ?",
    max_marks=4,
    options=[
        {"option_id": "a", "text": "3"},
        {"option_id": "b", "text": "4", "is_correct": True},
        {"option_id": "c", "text": "5"},
    ],
)
ESSAY = Question(
    question_id="q_essay",
    type="subjective",
    text="Describe the water cycle.",
    max_marks=10,
    answer="Evaporation, condensation, precipitation, collection.",
    evaluation_policy=EvaluationPolicy(review_tone="detailed"),
)
QUESTIONS = {q.question_id: q for q in (MCQ, ESSAY)}


def slot(question_id, text=None, option=None):
    return {"question_id": question_id, "response_text": text, "response_option": option}


def evaluate(slots, scorer, policy=None):
    return run(evaluate_answers(slots, QUESTIONS, policy, scorer))


@pytest.mark.parametrize("option, marks, outcome", [
    ("b", 4, "correct"),
    ("a", 0, "incorrect"),
    ("c", 0, "incorrect"),
    (None, 0, "unanswered"),
    ("zzz", 0, "unknown-option"),
])
def test_mcq_marking(option, marks, outcome):
    scorer, transport = make_scorer()
    [entry] = evaluate([slot("q_mcq", option=option)], scorer)
    assert entry.evaluation.marks == marks
    assert entry.evaluation.evaluator == EvaluatorKind.AUTOMATIC.value
    assert entry.evaluation.meta.outcome == outcome
    assert transport.calls == 0


@pytest.mark.parametrize("text", [None, "", "   \n\t "])
def test_blank_subjective_is_zero_without_external_call(text):
    scorer, transport = make_scorer()
    [entry] = evaluate([slot("q_essay", text=text)], scorer)
    assert entry.evaluation.marks == 0
    assert entry.evaluation.meta.outcome == "empty-answer"
    assert transport.calls == 0


def test_subjective_goes_to_scorer_with_weight_and_merged_policy():
    scorer, transport = make_scorer('{"score": 75, "review": "Covers most stages."}')
    exam_policy = EvaluationPolicy(strictness="strict", review_tone="concise", expected_length=50)
    [entry] = evaluate([slot("q_essay", text="Water evaporates and falls as rain.")], scorer, exam_policy)
    assert entry.evaluation.marks == 8  # 75 * 10/100 = 7.5, rounded half up
    assert entry.evaluation.evaluator == EvaluatorKind.DELEGATED_AI.value
    prompt = transport.prompts[0]
    assert "STRICT" in prompt  # exam-level field kept
    assert "two sentences" in prompt  # question-level tone wins
    assert "about 50 words" in prompt
    assert "Evaporation, condensation" in prompt


def test_results_keep_slot_order_and_total():
    scorer, _ = make_scorer(default='{"score": 100, "review": "Perfect."}')
    entries = evaluate([slot("q_essay", text="Full answer."), slot("q_mcq", option="b")], scorer)
    assert [e.question_id for e in entries] == ["q_essay", "q_mcq"]
    assert compute_total_marks(entries) == 14


def test_scorer_outage_still_scores_every_subjective_answer():
    scorer, _ = make_scorer(default=ScoringTransportError("unreachable"))
    [entry] = evaluate([slot("q_essay", text="Evaporation then rain.")], scorer)
    assert entry.evaluation.evaluator == EvaluatorKind.SYSTEM_FALLBACK.value
    assert entry.evaluation.meta.kind == "ai-fallback-error"
    assert entry.evaluation.marks is not None


class BrokenScorer:
    async def score(self, *args, **kwargs):
        raise RuntimeError("scorer bug")


def test_one_failing_slot_does_not_block_the_others():
    entries = evaluate([slot("q_essay", text="Some answer"), slot("q_mcq", option="b")], BrokenScorer())
    essay, mcq = entries
    assert essay.evaluation.evaluator == EvaluatorKind.SYSTEM_FALLBACK.value
    assert essay.evaluation.meta.kind == "evaluation-error"
    assert essay.evaluation.meta.reason == "RuntimeError: scorer bug"
    assert essay.evaluation.marks == 0
    assert mcq.evaluation.marks == 4


def test_missing_question_is_a_data_integrity_error():
    scorer, _ = make_scorer()
    with pytest.raises(HTTPException) as exc_info:
        evaluate([slot("q_deleted", text="x")], scorer)
    assert exc_info.value.status_code == 500


def test_subjective_question_without_text_is_a_data_integrity_error():
    scorer, _ = make_scorer()
    blank = Question(question_id="q_blank", type="subjective", text=" ", max_marks=5)
    with pytest.raises(HTTPException):
        run(evaluate_answers([slot("q_blank", text="hi")], {"q_blank": blank}, None, scorer))


def test_summary_counts_fallbacks():
    scorer, _ = make_scorer(default=ScoringTransportError("down"))
    entries = evaluate([slot("q_essay", text="answer"), slot("q_mcq", option="a")], scorer)
    summary = summarize_evaluations(entries)
    assert summary["num_questions"] == 2
    assert summary["fallback_count"] == 1
    assert summary["by_meta_kind"] == {"ai-fallback-error": 1, "automatic": 1}
