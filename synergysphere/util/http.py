import math
from typing import Type, TypeVar

from flask import jsonify, request

from synergysphere.schemas import Payload

P = TypeVar('P', bound=Payload)


def success(data=None, message: str = None, status: int = 200):
    body = {'success': True}
    if message is not None:
        body['message'] = message
    if data is not None:
        body['data'] = data
    return jsonify(body), status


def parse_body(schema: Type[P]) -> P:
    """
    Validates the JSON body against the schema. pydantic errors are turned into 400s by the error handler.
    """
    return schema.model_validate(request.get_json(silent=True) or {})


def parse_query(schema: Type[P]) -> P:
    return schema.model_validate(request.args.to_dict())


def pagination(page: int, limit: int, total: int, label: str) -> dict:
    return {
        'currentPage': page,
        'totalPages': math.ceil(total / limit),
        f'total{label}': total,
        'hasNext': page * limit < total,
        'hasPrev': page > 1,
    }
