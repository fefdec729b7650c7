from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """Bad or missing ids, malformed payloads, unknown referenced users."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NotFoundError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def parse_id(value, field: str = "id") -> int:
    """Coerce a wire identifier (int or digit string) into a primary key.

    Raises ValidationError for anything that is not a positive integer id.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
    else:
        raise ValidationError(f"Invalid {field}")
    if parsed <= 0:
        raise ValidationError(f"Invalid {field}")
    return parsed
