"""
Request value coercion shared by the API blueprints.

JSON clients send ids as numbers or strings; query strings are always
strings. These helpers normalize both and raise ValidationError otherwise.
"""
from flask import request

from .exceptions import ValidationError

TRUE_VALUES = ('1', 'true', 'yes', 'on')
FALSE_VALUES = ('0', 'false', 'no', 'off', '')


def coerce_int(value, field: str, required: bool = False, minimum: int = None):
    """Parse an integer field. Returns None for a missing optional value."""
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f'{field} is required', field=field, missing=True)
        return None

    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer', field=field)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer', field=field)
    if isinstance(value, float) and number != value:
        raise ValidationError(f'{field} must be an integer', field=field)

    if minimum is not None and number < minimum:
        raise ValidationError(f'{field} must be at least {minimum}', field=field)
    return number


def coerce_bool(value, field: str, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValidationError(f'{field} must be true or false', field=field)


def clean_str(value, field: str) -> str:
    """Strip a text field. None becomes ''; numbers, lists and objects are rejected."""
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be a string', field=field)
    return value.strip()


def json_body() -> dict:
    """The request's JSON object, or {} when the body is empty."""
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data():
            raise ValidationError('Request body must be valid JSON', field='body')
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object', field='body')
    return data
