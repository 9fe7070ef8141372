"""
Submission normalizer.

Turns raw request fields into a canonical Submission:

  - request aliases ("Name", "propertyType", "windowType[]") map to the
    canonical keys declared in the form table
  - name / email / phone are trimmed
  - multi-select values are joined with ", "
  - missing optional fields get the field's placeholder, once, here, so the
    renderer never has to branch on absence
"""

import logging
from typing import Mapping, Optional, Sequence, Union

from formrelay.models.forms import FieldSpec, FormSpec
from formrelay.models.submission import Submission
from formrelay.services.validators import RawValue, validate_submission_fields

logger = logging.getLogger(__name__)

_TRIMMED_FIELDS = frozenset({"name", "email", "phone"})


def format_multi_value(value: Union[str, Sequence[str], None]) -> Optional[str]:
    """
    Join a multi-select value into one display string.

    Examples:
        ["A", "B"] -> "A, B"
        "A"        -> "A"
        []         -> None
        None       -> None
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    items = [item for item in value if item is not None and str(item).strip()]
    if not items:
        return None
    return ", ".join(str(item) for item in items)


def _lookup(raw: Mapping[str, RawValue], spec: FieldSpec) -> RawValue:
    """Return the first non-blank value among the field's request names."""
    for request_name in spec.request_names:
        value = raw.get(request_name)
        if value is None:
            continue
        if isinstance(value, str):
            if value.strip():
                return value
            continue
        if any(item is not None and str(item).strip() for item in value):
            return value
    return None


def collect_fields(raw: Mapping[str, RawValue], form: FormSpec) -> dict[str, RawValue]:
    """Resolve request aliases to canonical keys. Unknown request fields are dropped."""
    collected: dict[str, RawValue] = {}
    for spec in form.fields:
        value = _lookup(raw, spec)
        if value is not None:
            collected[spec.key] = value
    return collected


def _display_value(spec: FieldSpec, value: RawValue) -> Optional[str]:
    if value is None:
        return None
    if spec.multi or not isinstance(value, str):
        text = format_multi_value(value)
    else:
        text = value
    if text is not None and spec.key in _TRIMMED_FIELDS:
        text = text.strip()
    return text or None


def normalize_submission(fields: Mapping[str, RawValue], form: FormSpec) -> Submission:
    """
    Build a Submission from canonical-keyed fields (see ``collect_fields``).

    Does not validate; call ``prepare_submission`` for the full path.
    """
    display: dict[str, str] = {}
    missing: set[str] = set()
    for spec in form.fields:
        text = _display_value(spec, fields.get(spec.key))
        if text is None:
            display[spec.key] = spec.placeholder
            missing.add(spec.key)
        else:
            display[spec.key] = text
    return Submission(form=form, fields=display, missing=frozenset(missing))


def prepare_submission(raw: Mapping[str, RawValue], form: FormSpec) -> Submission:
    """
    Alias resolution, validation and normalization in one call.

    Raises:
        ValidationError: required field missing, bad email or bad phone
    """
    fields = collect_fields(raw, form)
    validate_submission_fields(fields, form)
    submission = normalize_submission(fields, form)
    logger.debug(
        "Prepared %s submission (%d field(s) provided)",
        form.name, len(form.fields) - len(submission.missing),
    )
    return submission
