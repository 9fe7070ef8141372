"""
Form table data structures.

Each endpoint is described by a FormSpec: which request fields it reads
(and under which aliases), which are required, the placeholder shown when
an optional field is missing, how fields group into sections, and how the
subject line is built. The pipeline is written once against these tables.
"""

from dataclasses import dataclass
from typing import Optional

NOT_PROVIDED = "Not provided"
NOT_SPECIFIED = "Not specified"
NONE_SELECTED = "None selected"


@dataclass(frozen=True)
class FieldSpec:
    key: str                          # canonical name used by the renderer
    label: str                        # "Best Time to Reach"
    section: str                      # "Contact Preferences"
    aliases: tuple[str, ...] = ()     # request names accepted besides ``key``
    placeholder: str = NOT_PROVIDED
    multi: bool = False               # multi-select input, joined for display
    free_text: bool = False           # rendered as a block, newlines kept

    @property
    def request_names(self) -> tuple[str, ...]:
        return (self.key,) + self.aliases


@dataclass(frozen=True)
class FormSpec:
    name: str
    title: str                                  # heading of the rendered email
    subject: str                                # str.format template
    fields: tuple[FieldSpec, ...]
    required: tuple[str, ...] = ("name", "email")
    subject_label_field: Optional[str] = None   # e.g. service type for quotes
    max_files: int = 0
    file_fields: tuple[str, ...] = ()
    # Plain-text body override for one-line notifications (subscribe).
    text_template: Optional[str] = None
    html_template: Optional[str] = None

    def field_spec(self, key: str) -> Optional[FieldSpec]:
        for spec in self.fields:
            if spec.key == key:
                return spec
        return None

    @property
    def sections(self) -> tuple[str, ...]:
        """Section names in display order."""
        seen: list[str] = []
        for spec in self.fields:
            if spec.section not in seen:
                seen.append(spec.section)
        return tuple(seen)

    def has_field(self, key: str) -> bool:
        return self.field_spec(key) is not None
