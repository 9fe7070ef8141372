"""
Message renderer.

Produces the plain-text and HTML bodies for a Submission. Both carry the
same information grouped by the sections declared in the form table:

    New Quote Request

    Personal Details:
    Name: Jane Doe
    ...

    Comments:
    line one
    line two

Submitter values are HTML-escaped in the HTML body; the plain-text body
keeps them verbatim (including newlines in free-text fields).
"""

from html import escape

from formrelay.models.forms import FieldSpec
from formrelay.models.submission import Submission


def _html_value(spec: FieldSpec, value: str) -> str:
    escaped = escape(value)
    if spec.free_text:
        return escaped.replace("\r\n", "\n").replace("\n", "<br>")
    return escaped


def render_text(submission: Submission) -> str:
    form = submission.form
    if form.text_template:
        return form.text_template.format(**submission.fields)

    lines = [form.title, ""]
    for section in form.sections:
        specs = [spec for spec in form.fields if spec.section == section]
        lines.append(f"{section}:")
        for spec in specs:
            value = submission.fields[spec.key]
            if spec.free_text:
                lines.append(value)
            else:
                lines.append(f"{spec.label}: {value}")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def render_html(submission: Submission) -> str:
    form = submission.form
    if form.html_template:
        escaped = {key: escape(value) for key, value in submission.fields.items()}
        return form.html_template.format(**escaped)

    parts = [f"<h2>{escape(form.title)}</h2>"]
    for section in form.sections:
        parts.append(f"<h3>{escape(section)}</h3>")
        for spec in form.fields:
            if spec.section != section:
                continue
            value = _html_value(spec, submission.fields[spec.key])
            if spec.free_text:
                parts.append(f"<p>{value}</p>")
            else:
                parts.append(f"<p><strong>{escape(spec.label)}:</strong> {value}</p>")
    return "\n".join(parts) + "\n"


def render(submission: Submission) -> tuple[str, str]:
    """Return ``(plain_text, html)`` for the submission."""
    return render_text(submission), render_html(submission)


def render_subject(submission: Submission) -> str:
    """
    Subject line for the outbound email.

    Quote forms append the service type when the submitter chose one:
    "New Quote Request from Jane Doe - Window Replacement".
    """
    form = submission.form
    subject = form.subject.format(**submission.fields)
    if form.subject_label_field:
        label = submission.provided(form.subject_label_field)
        if label:
            subject = f"{subject} - {label}"
    # Header injection guard: subjects are a single line.
    return " ".join(subject.split())
