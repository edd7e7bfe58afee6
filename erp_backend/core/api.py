# core/api.py

from __future__ import annotations

from rest_framework.response import Response

from core.exceptions import ServiceError


def error_response(exc: ServiceError) -> Response:
    return Response(exc.to_dict(), status=exc.status_code)
