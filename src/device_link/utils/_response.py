import json
from typing import Any, Self

from cross_web import Response as DuckResponse


class Response(DuckResponse):
    @classmethod
    def success(cls, body: dict[str, Any], status_code: int = 200) -> Self:
        return cls(
            status_code=status_code,
            body=json.dumps(body),
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def error(
        cls,
        error: str,
        error_description: str | None = None,
        status_code: int = 400,
    ) -> Self:
        body = {"error": error}

        if error_description:
            body["error_description"] = error_description

        return cls.success(body, status_code=status_code)
