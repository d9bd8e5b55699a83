# =============================================================================
# Feature Roadmap - Email System Tests
# =============================================================================
"""
Tests for templated notification emails.
Delivery is mocked at EmailMultiAlternatives.send; nothing leaves the process.
"""

from unittest.mock import MagicMock, patch

import pytest
from flask_mailman import EmailMultiAlternatives
from jinja2 import TemplateSyntaxError

from roadmap.extensions import db
from roadmap.models.platform import EmailTemplate
from roadmap.utils import email as email_utils
from roadmap.utils.email import (
    DEFAULT_TEMPLATES,
    _html_to_text,
    build_templated_messages,
    render_placeholders,
    send_new_suggestion_email,
    send_password_reset_email,
    send_templated_email,
    send_test_email,
)


# =============================================================================
# Email-Specific Fixtures
# =============================================================================

@pytest.fixture
def mock_send(app):
    """Mock message delivery."""
    with patch.object(EmailMultiAlternatives, 'send', return_value=1) as mock:
        yield mock


@pytest.fixture
def no_sleep():
    with patch.object(email_utils.time, 'sleep') as mock:
        yield mock


@pytest.fixture
def sync_async(app):
    """Run the fire-and-forget helpers synchronously."""
    def _run(recipients, template_name, variables=None, fallback_subject='', fallback_html=''):
        return send_templated_email(recipients, template_name, variables, fallback_subject, fallback_html)

    with patch.object(email_utils, 'send_templated_email_async', side_effect=_run) as mock:
        yield mock


# =============================================================================
# Placeholders
# =============================================================================

class TestRenderPlaceholders:

    def test_substitutes_known_keys(self):
        assert render_placeholders('Hi {{name}}, {{ org }}', {'name': 'Ada', 'org': 'Acme'}) == 'Hi Ada, Acme'

    def test_unknown_keys_left_alone(self):
        assert render_placeholders('Hi {{name}} {{missing}}', {'name': 'Ada'}) == 'Hi Ada {{ missing }}'

    def test_sandbox_hides_private_attributes(self):
        rendered = render_placeholders('{{ name.__class__ }}', {'name': 'Ada'})
        assert "<class 'str'>" not in rendered

    def test_broken_syntax_raises(self):
        with pytest.raises(TemplateSyntaxError):
            render_placeholders('Hi {{ name', {'name': 'Ada'})

    def test_html_values_escaped(self):
        rendered = render_placeholders('<p>{{title}}</p>', {'title': '<script>x</script>'}, html=True)
        assert rendered == '<p>&lt;script&gt;x&lt;/script&gt;</p>'

    def test_plain_text_not_escaped(self):
        assert render_placeholders('{{title}}', {'title': 'A & B'}) == 'A & B'

    def test_html_to_text(self):
        assert _html_to_text('<h1>Hello</h1>\n<p>there  you</p>') == 'Hello there you'


# =============================================================================
# Template Resolution
# =============================================================================

class TestBuildMessages:

    def test_fallback_when_no_template(self, app):
        messages = build_templated_messages(
            ['a@acme.test', 'b@acme.test'], 'password_reset', {'name': 'Ada', 'reset_link': 'https://x'},
            fallback_subject='Reset', fallback_html='<a href="{{reset_link}}">{{name}}</a>',
        )
        assert [m.to for m in messages] == [['a@acme.test'], ['b@acme.test']]
        assert messages[0].subject == 'Reset'
        assert messages[0].from_email == 'noreply@roadmap.test'
        html, mimetype = messages[0].alternatives[0]
        assert html == '<a href="https://x">Ada</a>'
        assert mimetype == 'text/html'

    def test_active_template_wins(self, app):
        db.session.add(EmailTemplate(name='password_reset', subject='Custom {{name}}', html_body='<b>{{name}}</b>'))
        db.session.commit()
        message = build_templated_messages('a@acme.test', 'password_reset', {'name': 'Ada'}, 'Fallback', 'x')[0]
        assert message.subject == 'Custom Ada'
        assert message.body == 'Ada'

    def test_broken_template_falls_back(self, app):
        db.session.add(EmailTemplate(name='password_reset', subject='Custom {{ name', html_body='<b>x</b>'))
        db.session.commit()
        message = build_templated_messages('a@acme.test', 'password_reset', {'name': 'Ada'}, 'Hi {{name}}', '<i>f</i>')[0]
        assert message.subject == 'Hi Ada'
        assert message.alternatives[0][0] == '<i>f</i>'

    def test_inactive_template_ignored(self, app):
        db.session.add(EmailTemplate(
            name='password_reset', subject='Custom', html_body='<b>custom</b>', is_active=False,
        ))
        db.session.commit()
        message = build_templated_messages('a@acme.test', 'password_reset', {}, 'Fallback', '<i>f</i>')[0]
        assert message.subject == 'Fallback'


# =============================================================================
# Delivery
# =============================================================================

class TestSendTemplatedEmail:

    def test_sends_each_message(self, app, mock_send):
        sent = send_templated_email(['a@acme.test', 'b@acme.test'], 'x', fallback_subject='S', fallback_html='<p>B</p>')
        assert sent == 2
        assert mock_send.call_count == 2

    def test_skipped_without_sender(self, app, mock_send):
        app.config['MAIL_DEFAULT_SENDER'] = None
        assert send_templated_email('a@acme.test', 'x', fallback_subject='S') == 0
        mock_send.assert_not_called()

    def test_retries_then_succeeds(self, app, mock_send, no_sleep):
        mock_send.side_effect = [ConnectionError('down'), 1]
        assert send_templated_email('a@acme.test', 'x', fallback_subject='S') == 1
        assert mock_send.call_count == 2
        no_sleep.assert_called_once_with(email_utils.RETRY_BASE_DELAY)

    def test_gives_up_after_max_retries(self, app, mock_send, no_sleep):
        mock_send.side_effect = ConnectionError('down')
        assert send_templated_email('a@acme.test', 'x', fallback_subject='S') == 0
        assert mock_send.call_count == email_utils.MAX_RETRIES


class TestAsync:

    def test_async_returns_thread(self, app, mock_send):
        thread = email_utils.send_templated_email_async('a@acme.test', 'x', fallback_subject='S')
        thread.join(timeout=5)
        assert mock_send.call_count == 1

    def test_async_skipped_without_sender(self, app):
        app.config['MAIL_DEFAULT_SENDER'] = None
        assert email_utils.send_templated_email_async('a@acme.test', 'x') is None


class TestNotifications:

    def test_password_reset(self, app, member_user, sync_async, mock_send):
        send_password_reset_email(member_user, 'https://app/reset?token=abc')
        recipients, name = sync_async.call_args.args
        variables = sync_async.call_args.kwargs['variables']
        assert recipients == 'member@acme.test'
        assert name == 'password_reset'
        assert variables == {'name': 'Max Member', 'reset_link': 'https://app/reset?token=abc'}
        assert sync_async.call_args.kwargs['fallback_subject'] == DEFAULT_TEMPLATES['password_reset'][0]
        assert mock_send.call_count == 1

    def test_new_suggestion(self, app, org, suggestion, sync_async, mock_send):
        send_new_suggestion_email(['admin@acme.test'], suggestion, org, 'Max Member')
        variables = sync_async.call_args.kwargs['variables']
        assert variables['suggestion_title'] == 'Dark mode'
        assert variables['board_link'] == 'http://localhost:3000/board/acme'
        assert variables['submitter_name'] == 'Max Member'

    def test_new_suggestion_without_admins(self, app, org, suggestion, sync_async):
        assert send_new_suggestion_email([], suggestion, org, 'X') is None
        sync_async.assert_not_called()


class TestSendTestEmail:

    def test_sends_raw_template(self, app, mock_send):
        template = MagicMock(subject='Hello {{name}}', html_body='<p>{{name}}</p>')
        template.name = 'welcome'
        assert send_test_email(template, 'root@acme.test') is True
        assert mock_send.call_count == 1

    def test_not_configured(self, app, mock_send):
        app.config['MAIL_DEFAULT_SENDER'] = None
        template = MagicMock(subject='S', html_body='B')
        assert send_test_email(template, 'root@acme.test') is False
