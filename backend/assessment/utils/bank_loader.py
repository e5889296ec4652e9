"""Question bank file parsing.

A bank is a JSON document, either an object with a `topics` list or a
bare list of topics:

    {"topics": [{"subject": "Physics", "name": "Kinematics",
                 "questions": [{"type": "NUMERIC_INPUT", ...}, ...]}]}

Parsing only normalizes the structure; each question is validated later
by the import service so that one bad item does not reject the file.
"""

import json
from typing import Dict, List

DEFAULT_SUBJECT = "General"


def parse_bank(file_bytes: bytes, filename: str) -> List[Dict]:
    """Return a flat list of `{subject, topic, question}` items.

    Raises ValueError for unsupported files or malformed structure.
    """
    if not filename.lower().endswith(".json"):
        raise ValueError("Unsupported file type")
    try:
        data = json.loads(file_bytes.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError(f"invalid JSON: {exc}") from exc
    topics = data.get("topics") if isinstance(data, dict) else data
    if not isinstance(topics, list):
        raise ValueError("bank must contain a list of topics")
    out = []
    for t in topics:
        if not isinstance(t, dict) or not t.get("name"):
            raise ValueError("each topic must be an object with a name")
        subject = str(t.get("subject") or DEFAULT_SUBJECT)
        for q in t.get("questions") or []:
            out.append({"subject": subject, "topic": str(t["name"]), "question": q})
    return out
