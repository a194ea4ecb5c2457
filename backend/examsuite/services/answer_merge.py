"""
Answer merge engine - applies partial answer edits onto the fixed slot set.
"""

from typing import Iterable, List, Optional

from pydantic import BaseModel

MERGEABLE_FIELDS = ("response_text", "response_option")


def _present_fields(item) -> dict:
    """Fields the client actually sent for one incoming item."""
    if isinstance(item, BaseModel):
        return item.model_dump(exclude_unset=True)
    return dict(item)


def merge_answers(slots: List[dict], incoming: Optional[Iterable]) -> List[dict]:
    """
    Overlay incoming edits on the existing slots.

    Unknown question ids are dropped and fields missing from an item keep their
    previous value, so the result always has the same questions in the same
    order as `slots`.
    """
    merged = [dict(slot) for slot in slots]
    index = {slot["question_id"]: pos for pos, slot in enumerate(merged)}

    for item in incoming or []:
        fields = _present_fields(item)
        pos = index.get(fields.get("question_id"))
        if pos is None:
            continue
        for field in MERGEABLE_FIELDS:
            if field in fields:
                merged[pos][field] = fields[field]

    return merged


def merge_review_marks(slots: List[dict], incoming: Optional[Iterable[str]]) -> List[str]:
    """Known question ids from `incoming`, de-duplicated in first-seen order."""
    known = {slot["question_id"] for slot in slots}
    marks = []
    for question_id in incoming or []:
        if question_id in known and question_id not in marks:
            marks.append(question_id)
    return marks
