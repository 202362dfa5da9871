"""Request dependencies — body parsing into explicit schema types.

Invariants:
    - Only JSON and URL-encoded bodies are decoded; any other content type
      reads as an empty body and fails validation
    - Undecodable bodies (bad JSON, bad UTF-8) are 400 validation errors
"""

import json
from typing import Awaitable, Callable, TypeVar
from urllib.parse import parse_qsl

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def _undecodable(error_type: str, msg: str) -> RequestValidationError:
    return RequestValidationError([{
        "type": error_type,
        "loc": ("body",),
        "msg": msg,
        "input": None,
    }])


def _decode(content_type: str, raw: bytes) -> object:
    if content_type == FORM_CONTENT_TYPE:
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            raise _undecodable("form_invalid", "Request body is not valid UTF-8")
        return dict(parse_qsl(text, keep_blank_values=True))
    if content_type != JSON_CONTENT_TYPE or not raw:
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        raise _undecodable("json_invalid", "Request body is not valid JSON")


def parse_body(model: type[ModelT]) -> Callable[[Request], Awaitable[ModelT]]:
    """Dependency factory: decode a JSON or URL-encoded body and validate it."""

    async def dependency(request: Request) -> ModelT:
        content_type = (
            request.headers.get("content-type", "").split(";")[0].strip().lower()
        )
        body = b""
        if content_type in (JSON_CONTENT_TYPE, FORM_CONTENT_TYPE):
            body = await request.body()
        data = _decode(content_type, body)
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RequestValidationError([
                {**err, "loc": ("body", *err["loc"])}
                for err in e.errors(include_url=False)
            ])

    return dependency
