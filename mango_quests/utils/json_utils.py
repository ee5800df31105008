import json
import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict


def to_jsonable(data: Any) -> Any:
    """
    Recursively convert data into JSON-storable values.
    Handles datetime/date objects (ISO format) and Enums (value).
    """
    if isinstance(data, dict):
        return {str(k): to_jsonable(v) for k, v in data.items()}
    elif isinstance(data, (list, tuple)):
        return [to_jsonable(v) for v in data]
    elif isinstance(data, (datetime, date)):
        return data.isoformat()
    elif isinstance(data, Enum):
        return data.value
    else:
        return data


def parse_json_response(text: str) -> Dict[str, Any]:
    """Parse a JSON object from LLM response text."""
    text = text.strip()
    
    # Remove markdown code blocks if present
    if text.startswith("```"):
        lines = text.split("\n")
        start = 1 if lines[0].startswith("```") else 0
        end = len(lines)
        for i in range(len(lines) - 1, 0, -1):
            if lines[i].strip() == "```":
                end = i
                break
        text = "\n".join(lines[start:end]).strip()
    
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        # Try to find JSON object in text
        match = re.search(r"\{.*\}", text, flags=re.DOTALL)
        if not match:
            raise ValueError(f"No valid JSON found in response: {text[:200]}...")
        parsed = json.loads(match.group(0))
    
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
