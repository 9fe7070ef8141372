"""
Per-endpoint form table.

CONTACT_FORM    POST /submit-contact-form   (phone arrives in "Subject")
SUBSCRIBE_FORM  POST /subscribe
QUOTE_FORM      POST /submit-quote-form

Adding a field to a form means adding a FieldSpec here; the normalizer,
validator and renderer pick it up without further changes.
"""

from formrelay.models.forms import (
    NONE_SELECTED,
    NOT_PROVIDED,
    NOT_SPECIFIED,
    FieldSpec,
    FormSpec,
)

PERSONAL = "Personal Details"
PROJECT = "Project Details"
CONTACT_PREFERENCES = "Contact Preferences"
COMMENTS = "Comments"
MESSAGE = "Message"


CONTACT_FORM = FormSpec(
    name="contact",
    title="New Contact Form Submission",
    subject="New Contact Form Submission from {name}",
    fields=(
        FieldSpec("name", "Name", PERSONAL, aliases=("Name",)),
        FieldSpec("email", "Email", PERSONAL, aliases=("Email",)),
        FieldSpec("phone", "Phone", PERSONAL, aliases=("Subject", "Phone")),
        FieldSpec(
            "message", "Message", MESSAGE,
            aliases=("Message",),
            placeholder="No message provided.",
            free_text=True,
        ),
    ),
    max_files=1,
    file_fields=("file",),
)


SUBSCRIBE_FORM = FormSpec(
    name="subscribe",
    title="New Email Subscription",
    subject="New Email Subscription",
    fields=(
        FieldSpec("email", "Email", PERSONAL, aliases=("Email",)),
    ),
    required=("email",),
    text_template="A new user subscribed with email: {email}",
    html_template="<p><strong>New Subscriber Email:</strong> {email}</p>",
)


QUOTE_FORM = FormSpec(
    name="quote",
    title="New Quote Request",
    subject="New Quote Request from {name}",
    fields=(
        FieldSpec("name", "Name", PERSONAL),
        FieldSpec("email", "Email", PERSONAL),
        FieldSpec("phone", "Phone", PERSONAL),
        FieldSpec("city", "City", PERSONAL),
        FieldSpec("address", "Address", PERSONAL),
        FieldSpec(
            "service_type", "Service Type", PROJECT,
            aliases=("serviceType",), placeholder=NOT_SPECIFIED,
        ),
        FieldSpec(
            "property_type", "Property Type", PROJECT,
            aliases=("propertyType",), placeholder=NOT_SPECIFIED,
        ),
        FieldSpec(
            "project_type", "Project Type", PROJECT,
            aliases=("projectType",), placeholder=NOT_SPECIFIED,
        ),
        FieldSpec(
            "window_types", "Window Types", PROJECT,
            aliases=("windowType", "windowType[]"),
            placeholder=NONE_SELECTED, multi=True,
        ),
        FieldSpec(
            "glazing", "Glazing Options", PROJECT,
            aliases=("glazing[]",), placeholder=NONE_SELECTED, multi=True,
        ),
        FieldSpec(
            "color_preference", "Color Preference", PROJECT,
            aliases=("colorPreference", "color"), placeholder=NOT_SPECIFIED,
        ),
        FieldSpec(
            "num_windows", "Number of Windows", PROJECT,
            aliases=("numWindows",), placeholder=NOT_SPECIFIED,
        ),
        FieldSpec("budget", "Budget", PROJECT),
        FieldSpec(
            "contact_method", "Method", CONTACT_PREFERENCES,
            aliases=("contactMethod",), placeholder=NOT_SPECIFIED,
        ),
        FieldSpec(
            "best_time", "Best Time to Reach", CONTACT_PREFERENCES,
            aliases=("bestTime", "preferredTime"), placeholder=NOT_SPECIFIED,
        ),
        FieldSpec(
            "comments", "Comments", COMMENTS,
            aliases=("message",), placeholder="None", free_text=True,
        ),
    ),
    required=("name", "email", "phone"),
    subject_label_field="service_type",
    max_files=5,
    file_fields=("attachments", "attachment", "files"),
)
