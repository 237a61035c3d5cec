"""Email templates: template key -> subject, HTML body, plain-text body (Jinja)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from jinja2 import Environment, StrictUndefined, Template


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


_LAYOUT_OPEN = (
    '<div style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;'
    ' max-width: 600px; margin: 0 auto; padding: 20px;">'
)
_LAYOUT_CLOSE = (
    '<hr style="margin: 30px 0; border: none; border-top: 1px solid #e5e7eb;">'
    '<p style="color: #9ca3af; font-size: 12px; text-align: center;">'
    "{{ footer }}</p></div>"
)

# key -> (subject, html, text)
_TEMPLATES: dict[str, tuple[str, str, str]] = {
    "member_portal_link": (
        "Your {{ tenant_name }} Member Portal Access",
        "<h2>Hello {{ member_name or 'there' }}!</h2>"
        "<p>You requested access to your member portal for"
        " <strong>{{ tenant_name }}</strong>.</p>"
        '<p style="text-align: center;">'
        '<a href="{{ link }}">Access Member Portal</a></p>'
        "<ul><li>This link will expire in {{ ttl_label }}</li>"
        "<li>It can only be used once</li>"
        "<li>Do not share this link with others</li></ul>"
        "<p>If you didn't request this access link, you can safely ignore this email.</p>",
        "Hello {{ member_name or 'there' }}!\n\n"
        "Access your {{ tenant_name }} member portal: {{ link }}\n\n"
        "This link expires in {{ ttl_label }} and can only be used once.\n",
    ),
    "admin_password_setup": (
        "Complete Your Admin Account Setup - Voluntold",
        "<h2>Hello {{ first_name or 'there' }}!</h2>"
        "<p>Your administrator account has been created for Voluntold. To complete"
        " your setup and access the admin dashboard, please set your password.</p>"
        '<p style="text-align: center;"><a href="{{ link }}">Set Your Password</a></p>'
        "<p>This link will expire in {{ ttl_label }}.</p>",
        "Hello {{ first_name or 'there' }}!\n\n"
        "Set your Voluntold admin password: {{ link }}\n\n"
        "This link will expire in {{ ttl_label }}.\n",
    ),
    "admin_password_reset": (
        "Reset Your Password - Voluntold",
        "<h2>Hello {{ first_name or 'there' }}!</h2>"
        "<p>You requested to reset your password for your Voluntold admin account.</p>"
        '<p style="text-align: center;"><a href="{{ link }}">Reset Password</a></p>'
        "<p>If you didn't request this password reset, please ignore this email."
        " This link will expire in {{ ttl_label }}.</p>",
        "Hello {{ first_name or 'there' }}!\n\n"
        "Reset your Voluntold admin password: {{ link }}\n\n"
        "If you didn't request this, ignore this email."
        " The link expires in {{ ttl_label }}.\n",
    ),
    "member_elevation": (
        "You've been made an administrator of {{ tenant_name }}",
        "<h2>Congratulations, {{ member_name }}!</h2>"
        "<p>{{ elevated_by }} granted you administrator privileges for"
        " <strong>{{ tenant_name }}</strong> on Voluntold.</p>"
        "{% if custom_message %}<blockquote>&ldquo;{{ custom_message }}&rdquo;</blockquote>{% endif %}"
        "<p>Set your password to sign in to the admin dashboard:</p>"
        '<p style="text-align: center;"><a href="{{ link }}">Set Your Password</a></p>'
        "<p>This link will expire in {{ ttl_label }}.</p>",
        "Congratulations, {{ member_name }}!\n\n"
        "{{ elevated_by }} granted you administrator privileges for {{ tenant_name }}.\n"
        "{% if custom_message %}\n\"{{ custom_message }}\"\n{% endif %}\n"
        "Set your password: {{ link }}\n",
    ),
    "opportunity_broadcast": (
        "New Sign-Up Sheets - {{ tenant_name }}",
        "<h2>Hi {{ first_name or 'there' }}!</h2>"
        "<p>{{ tenant_name }} has new volunteer opportunities:</p>"
        "{% for section in sections %}"
        "<h3>{{ section.project_name }}</h3>"
        "{% for item in section['items'] %}"
        '<div style="border: 1px solid #e5e7eb; border-radius: 8px; padding: 16px; margin: 12px 0;">'
        "<h4 style=\"margin: 0;\">{{ item.title }}</h4>"
        "<p>{{ item.when }}</p>"
        "{% if item.description %}<p>{{ item.description }}</p>{% endif %}"
        "{% if item.location %}<div><strong>Where:</strong> {{ item.location }}</div>{% endif %}"
        "{% if item.skills %}<div><strong>Skills:</strong> {{ item.skills }}</div>{% endif %}"
        '<p><a href="{{ item.link }}">Sign Up for This Opportunity</a></p>'
        "</div>"
        "{% endfor %}{% endfor %}"
        "<p>Sent to: {{ targeting_summary }}</p>",
        "Hi {{ first_name or 'there' }}! New Sign-Up Sheets from {{ tenant_name }}:\n\n"
        "{% for section in sections %}{% for item in section['items'] %}"
        "{{ item.title }} - {{ item.when }} - Sign up: {{ item.link }}\n\n"
        "{% endfor %}{% endfor %}"
        "Sent to: {{ targeting_summary }}\n",
    ),
    "poll_invitation": (
        "Poll: {{ poll_title }} - {{ tenant_name }}",
        "<h2>{{ poll_title }}</h2>"
        "<p>{{ question }}</p>"
        "<p>Hi {{ first_name or 'there' }}, please cast your vote by clicking one of"
        " the options below:</p>"
        '<div style="text-align: center; margin: 30px 0;">'
        "{% for choice in choices %}"
        '<a href="{{ choice.link }}" style="background-color: #3b82f6; color: white;'
        ' padding: 12px 24px; text-decoration: none; border-radius: 8px; margin: 5px;'
        ' display: inline-block;">{{ choice.label }}</a>'
        "{% endfor %}</div>"
        "{% if expires_at %}<p>Poll expires: {{ expires_at }}</p>{% endif %}"
        "<p>Sent to: {{ targeting_info }}</p>",
        "{{ poll_title }}\n\n{{ question }}\n\n"
        "{% for choice in choices %}{{ choice.label }}: {{ choice.link }}\n{% endfor %}"
        "{% if expires_at %}\nPoll expires: {{ expires_at }}\n{% endif %}",
    ),
    "organization_application": (
        "New Organization Signup: {{ club_name }}",
        "<h2>New organization application</h2>"
        "<p><strong>{{ club_name }}</strong> ({{ community }})</p>"
        "<p>Contact: {{ name }} &lt;{{ email }}&gt;, {{ phone }}</p>"
        "<p>Members: {{ member_count }}</p>"
        "<p>{{ description }}</p>",
        "New organization application: {{ club_name }} ({{ community }})\n"
        "Contact: {{ name }} <{{ email }}>, {{ phone }}\n"
        "Members: {{ member_count }}\n\n{{ description }}\n",
    ),
}


class EmailTemplateRenderer:
    """Renders subject, HTML and text bodies for a template key."""

    def __init__(self, templates: dict[str, tuple[str, str, str]] | None = None) -> None:
        self._templates = templates or _TEMPLATES
        html_env = Environment(autoescape=True, undefined=StrictUndefined)
        text_env = Environment(autoescape=False, undefined=StrictUndefined)
        self._compiled: dict[str, tuple[Template, Template, Template]] = {}
        for key, (subject, html, text) in self._templates.items():
            self._compiled[key] = (
                text_env.from_string(subject),
                html_env.from_string(_LAYOUT_OPEN + html + _LAYOUT_CLOSE),
                text_env.from_string(text),
            )

    def render(self, template_key: str, **context: Any) -> RenderedEmail:
        """Raises KeyError if the key is unknown."""
        if template_key not in self._compiled:
            raise KeyError(f"Unknown email template: {template_key}")
        context.setdefault("footer", "This email was sent by Voluntold")
        subject_tpl, html_tpl, text_tpl = self._compiled[template_key]
        return RenderedEmail(
            subject=subject_tpl.render(**context).strip(),
            html=html_tpl.render(**context),
            text=text_tpl.render(**context),
        )


renderer = EmailTemplateRenderer()
