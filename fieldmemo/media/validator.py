import json
import os
from functools import lru_cache
from typing import Any, Dict, Tuple

from jsonschema import ValidationError, validate

# Path: fieldmemo/media/schemas/
SCHEMA_DIR = os.path.join(
    os.path.dirname(__file__),
    "schemas"
)

# Model output kind → schema filename
OUTPUT_SCHEMAS = {
    "extracted_task": "extracted_task.json",
    "closeout": "closeout.json",
}


@lru_cache(maxsize=None)
def load_schema(kind: str) -> Dict[str, Any]:
    """
    Load the JSON schema file for a given model output kind.
    """
    filename = OUTPUT_SCHEMAS[kind]
    path = os.path.join(SCHEMA_DIR, filename)

    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def validate_output(kind: str, data: Any) -> Tuple[bool, str]:
    """
    Validate one parsed model output against its schema.

    Returns:
        (True, "") if valid
        (False, "<error message>") if invalid
    """
    schema = load_schema(kind)

    try:
        validate(instance=data, schema=schema)
        return True, ""
    except ValidationError as e:
        return False, e.message
