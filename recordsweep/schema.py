from typing import Any, Dict, Iterable, List


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def validate_job_params(
    params: Dict[str, Any],
    required: Iterable[str] = (),
    optional: Iterable[str] = (),
) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.

    Every job parameter is an identifier or literal, so all of them must be
    non-empty strings.
    """
    errors: List[str] = []
    required = list(required)
    allowed = set(required) | set(optional)

    for name in required:
        if params.get(name) is None:
            errors.append(f"{name} is required")
        elif not _is_non_empty_str(params[name]):
            errors.append(f"Field '{name}' must be a non-empty string")

    for name, value in params.items():
        if name not in allowed:
            errors.append(f"Unknown parameter: {name}")
        elif name not in required and not _is_non_empty_str(value):
            errors.append(f"Field '{name}' must be a non-empty string if provided")

    return errors
