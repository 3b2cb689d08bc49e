from typing import Any


def error_response(message: str, *, status: int = 400, **extra: Any):
    """Return the API error payload.

    Shape: ``{"error": "<human readable message>", ...extra}``; clients surface
    ``error`` verbatim, ``extra`` carries machine-readable context such as
    ``field`` for validation failures.
    """
    from rest_framework.response import Response  # local import to avoid global DRF binding during migrations

    payload: dict[str, Any] = {'error': message}
    payload.update(extra)
    return Response(payload, status=status)
