"""JSON line decoding for Ollama response bodies."""

import json
import logging
from typing import Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import DecodeError
from .models.common import ErrorResponse

log = logging.getLogger("ollamakit.codec")

T = TypeVar("T", bound=BaseModel)


def decode_line(line: str, cls: type[T]) -> T:
    """Decode one newline-delimited JSON record into ``cls``."""
    try:
        return cls.model_validate_json(line)
    except ValidationError as e:
        log.debug("Undecodable %s line: %s", cls.__name__, line[:200])
        raise DecodeError(f"Invalid {cls.__name__} record: {e.errors()[0]['msg']}") from e


def decode_error_text(line: str) -> str:
    """Error text of a non-200 body line; non-JSON lines are returned verbatim."""
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return line
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return ErrorResponse.model_validate(data).error
    return line


def error_detail(status_code: int, lines: Iterable[str], reason: str = "") -> str:
    """Concatenated error text of a non-200 body."""
    detail = "".join(decode_error_text(line) for line in lines if line.strip())
    if detail:
        return detail
    return "Unauthorized" if status_code == 401 else reason
