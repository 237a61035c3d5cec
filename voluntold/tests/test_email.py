import time

import pytest

from voluntold.services.email_templates import EmailTemplateRenderer, renderer
from voluntold.services.email_throttle import SendThrottle


def test_html_body_escapes_but_text_does_not():
    message = renderer.render(
        "member_portal_link",
        member_name="Pat <Treasurer>",
        tenant_name="Lions & Friends",
        link="https://frontend.local/member-portal/abc",
        ttl_label="1 hour",
    )

    assert message.subject == "Your Lions & Friends Member Portal Access"
    assert "Lions &amp; Friends" in message.html
    assert "Pat &lt;Treasurer&gt;" in message.html
    assert "Hello Pat <Treasurer>!" in message.text
    assert "This email was sent by Voluntold" in message.html


def test_missing_context_fails_loudly():
    with pytest.raises(Exception, match="ttl_label"):
        renderer.render(
            "member_portal_link",
            member_name="Pat",
            tenant_name="Lions",
            link="https://frontend.local/x",
        )


def test_unknown_template_key():
    custom = EmailTemplateRenderer({"hello": ("Hi", "<p>{{ name }}</p>", "{{ name }}")})

    assert custom.render("hello", name="Sam").text == "Sam"
    with pytest.raises(KeyError):
        custom.render("member_portal_link")


def test_throttle_waits_once_the_window_is_full():
    waits = []

    def sleep(seconds):
        waits.append(seconds)
        time.sleep(seconds)

    throttle = SendThrottle("2 per 1 second", key="test-throttle", sleep=sleep)

    throttle.wait()
    throttle.wait()
    assert waits == []

    throttle.wait()
    assert waits
    assert all(w > 0 for w in waits)
