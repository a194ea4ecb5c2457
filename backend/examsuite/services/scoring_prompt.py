"""
Prompt construction for subjective-answer scoring.
"""

from typing import Optional

from examsuite.models.exam import EvaluationPolicy

DEFAULT_STRICTNESS = "moderate"
DEFAULT_REVIEW_TONE = "concise"
DEFAULT_EXPECTED_LENGTH = 20

# ============== POLICY WORDING ==============
STRICTNESS_INSTRUCTIONS = {
    "lenient": "LENIENT - reward genuine understanding; minor omissions and imprecise wording lose little.",
    "moderate": "MODERATE - expect the key points; partial credit for partially correct answers.",
    "strict": "STRICT - full marks only for complete, accurate answers; missing key points lose substantial credit.",
}

REVIEW_TONE_INSTRUCTIONS = {
    "concise": "one short sentence",
    "detailed": "two sentences naming what was right and what was missing",
    "comprehensive": "up to three sentences covering strengths, gaps and one improvement",
    "exhaustive": "three dense sentences covering strengths, every gap, and how to improve",
}


def describe_policy(policy: Optional[EvaluationPolicy]) -> str:
    """Natural-language summary of the teacher's scoring guidance."""
    policy = policy or EvaluationPolicy()
    strictness = policy.strictness or DEFAULT_STRICTNESS
    tone = policy.review_tone or DEFAULT_REVIEW_TONE
    expected = policy.expected_length or DEFAULT_EXPECTED_LENGTH

    lines = [
        f"- Strictness: {STRICTNESS_INSTRUCTIONS[strictness]}",
        f"- Review style: {REVIEW_TONE_INSTRUCTIONS[tone]}.",
        f"- Expected answer length: about {expected} words; do not reward padding.",
    ]
    if policy.custom_instructions and policy.custom_instructions.strip():
        lines.append(f"- Teacher instructions: {policy.custom_instructions.strip()}")
    return "\n".join(lines)


def build_scoring_prompt(question: str, answer: str,
                         reference_answer: Optional[str] = None,
                         policy: Optional[EvaluationPolicy] = None) -> str:
    """Constrained instruction prompt demanding a single JSON object."""
    if reference_answer and reference_answer.strip():
        task = ("Compare the student's answer to the reference answer. Award full marks "
                "if the meaning matches, even with different wording.")
        reference_block = f"Reference Answer: {reference_answer.strip()}\n"
    else:
        task = "Score the student's answer for completeness, relevance and correctness."
        reference_block = ""

    return (
        "You are an exam evaluator. " + task + "\n\n"
        "Rules:\n"
        "- Score between 0 and 100.\n"
        "- Be consistent and deterministic.\n"
        "- Keep the review under 100 words and at most 3 sentences.\n"
        f"{describe_policy(policy)}\n\n"
        f"Question: {question.strip()}\n"
        f"{reference_block}"
        f"Student's Answer: {answer}\n\n"
        "Respond with ONLY a single JSON object and no other text, code fences or commentary:\n"
        '{"score": <integer 0-100>, "review": "<short review>"}'
    )
