"""
Email utility module for Feature Roadmap.
Sends notification emails through Flask-Mailman (SendGrid SMTP relay).

Templates live in the email_templates table and are edited by platform
admins; a missing or inactive template falls back to the caller's built-in
subject and body. Both are rendered with a sandboxed Jinja2 environment:
placeholders are {{name}}, values are HTML-escaped in bodies, and unknown
placeholders are kept verbatim.
Supports async sending via threading and retry with exponential backoff.
"""
import re
import time
import uuid
import logging
import threading

from flask import current_app
from flask_mailman import EmailMultiAlternatives
from jinja2 import DebugUndefined, TemplateError
from jinja2.sandbox import SandboxedEnvironment

logger = logging.getLogger(__name__)

# Retry configuration
MAX_RETRIES = 3
RETRY_BASE_DELAY = 2  # seconds (2, 4 with exponential backoff)

# Admin-edited templates render only inside the sandbox
_html_env = SandboxedEnvironment(autoescape=True, undefined=DebugUndefined)
_text_env = SandboxedEnvironment(autoescape=False, undefined=DebugUndefined)

# Built-in subject and body per template name, used when the table has no
# active row and seeded by `flask init-db`
DEFAULT_TEMPLATES = {
    'password_reset': (
        'Reset your password',
        '<p>Hi {{name}},</p>'
        '<p>Click the link below to reset your password. It expires in one hour.</p>'
        '<p><a href="{{reset_link}}">Reset password</a></p>',
    ),
    'new_suggestion': (
        'New suggestion submitted: {{suggestion_title}}',
        '<h2>New Suggestion</h2>'
        '<p>A new suggestion has been submitted in <strong>{{org_name}}</strong>:</p>'
        '<h3>{{suggestion_title}}</h3><p>{{suggestion_description}}</p>'
        '<p><strong>Submitted by:</strong> {{submitter_name}}</p>'
        '<p><a href="{{board_link}}">View on Board</a></p>',
    ),
}


def render_placeholders(text, variables, html=False):
    """Render a stored template string with Jinja2.

    With html=True the values are HTML-escaped. Unknown placeholders are
    rendered back as `{{ key }}`.

    Raises:
        jinja2.TemplateError: Broken syntax or a sandbox violation
    """
    if not text:
        return text
    env = _html_env if html else _text_env
    return env.from_string(text).render(**(variables or {}))


def validate_template(text):
    """Parse a template string without rendering it.

    Raises:
        jinja2.TemplateSyntaxError: The text is not a valid template
    """
    _html_env.parse(text)


def mail_enabled():
    """True when a sender address is configured."""
    return bool(current_app.config.get('MAIL_DEFAULT_SENDER'))


def build_templated_messages(recipients, template_name, variables=None,
                             fallback_subject='', fallback_html=''):
    """Resolve the template and build one message per recipient."""
    from roadmap.models.platform import EmailTemplate

    subject = html = None
    template = EmailTemplate.get_active(template_name)
    if template:
        try:
            subject = render_placeholders(template.subject, variables)
            html = render_placeholders(template.html_body, variables, html=True)
        except TemplateError as e:
            logger.error(f"[EMAIL] Template '{template_name}' failed to render, using built-in: {e}")
            subject = html = None
    if subject is None:
        subject = render_placeholders(fallback_subject, variables)
        html = render_placeholders(fallback_html, variables, html=True)
    sender = current_app.config.get('MAIL_DEFAULT_SENDER')

    if isinstance(recipients, str):
        recipients = [recipients]

    messages = []
    for recipient in recipients:
        msg = EmailMultiAlternatives(
            subject=subject,
            body=_html_to_text(html),
            from_email=sender,
            to=[recipient],
        )
        msg.attach_alternative(html, 'text/html')
        messages.append(msg)
    return messages


def send_templated_email(recipients, template_name, variables=None,
                         fallback_subject='', fallback_html=''):
    """
    Send a templated email synchronously, with retry.

    Args:
        recipients: Email address or list of addresses
        template_name: Name looked up in email_templates
        variables: {{placeholder}} values
        fallback_subject: Subject when no active template exists
        fallback_html: HTML body when no active template exists

    Returns:
        int: Number of messages delivered
    """
    if not mail_enabled():
        logger.info(f"[EMAIL] Skipped '{template_name}' - mail not configured")
        return 0

    messages = build_templated_messages(
        recipients, template_name, variables, fallback_subject, fallback_html,
    )
    sent = 0
    for msg in messages:
        email_id = str(uuid.uuid4())[:8]
        logger.info(f"[EMAIL:{email_id}] Sending '{template_name}' to {msg.to[0]}")
        if _send_with_retry(msg, email_id, msg.to[0]):
            sent += 1
    return sent


def _send_with_retry(msg, email_id, recipient):
    """
    Send a prepared message with exponential backoff retry.

    Returns:
        bool: True if sent successfully after retries
    """
    last_error = None
    for attempt in range(1, MAX_RETRIES + 1):
        try:
            msg.send()
            logger.info(f"[EMAIL:{email_id}] Sent to {recipient}"
                        + (f" (attempt {attempt})" if attempt > 1 else ""))
            return True
        except Exception as e:
            last_error = e
            if attempt < MAX_RETRIES:
                delay = RETRY_BASE_DELAY * (2 ** (attempt - 1))
                logger.warning(
                    f"[EMAIL:{email_id}] Attempt {attempt}/{MAX_RETRIES} failed "
                    f"for {recipient}: {e} - retrying in {delay}s"
                )
                time.sleep(delay)
            else:
                logger.error(
                    f"[EMAIL:{email_id}] Giving up after {MAX_RETRIES} attempts "
                    f"for {recipient}: {last_error}"
                )
    return False


def send_templated_email_async(recipients, template_name, variables=None,
                               fallback_subject='', fallback_html=''):
    """
    Fire-and-forget variant of send_templated_email.

    The template is resolved in the calling context, then delivery runs on
    a daemon thread inside an app context. Nothing is awaited; failures are
    only logged.

    Returns:
        threading.Thread or None if mail is not configured
    """
    if not mail_enabled():
        logger.info(f"[EMAIL] Skipped '{template_name}' (async) - mail not configured")
        return None

    try:
        messages = build_templated_messages(
            recipients, template_name, variables, fallback_subject, fallback_html,
        )
    except Exception as e:
        logger.error(f"[EMAIL] Could not build '{template_name}' (async): {e}")
        return None

    app = current_app._get_current_object()

    def _send_in_thread():
        with app.app_context():
            for msg in messages:
                email_id = str(uuid.uuid4())[:8]
                _send_with_retry(msg, email_id, msg.to[0])

    thread = threading.Thread(target=_send_in_thread, daemon=True)
    thread.start()
    logger.info(f"[EMAIL] Dispatched '{template_name}' async to {len(messages)} recipient(s)")
    return thread


def send_password_reset_email(user, reset_link):
    """Send the password reset link (fire-and-forget)."""
    return send_templated_email_async(
        user.email,
        'password_reset',
        variables={'name': user.name, 'reset_link': reset_link},
        fallback_subject=DEFAULT_TEMPLATES['password_reset'][0],
        fallback_html=DEFAULT_TEMPLATES['password_reset'][1],
    )


def send_new_suggestion_email(admin_emails, suggestion, organization, submitter_name):
    """Tell organization admins about a new suggestion (fire-and-forget)."""
    if not admin_emails:
        return None
    frontend = current_app.config['FRONTEND_URL'].rstrip('/')
    return send_templated_email_async(
        admin_emails,
        'new_suggestion',
        variables={
            'org_name': organization.name,
            'suggestion_title': suggestion.title,
            'suggestion_description': suggestion.description or '',
            'submitter_name': submitter_name,
            'board_link': f'{frontend}/board/{organization.slug}',
        },
        fallback_subject=DEFAULT_TEMPLATES['new_suggestion'][0],
        fallback_html=DEFAULT_TEMPLATES['new_suggestion'][1],
    )


def send_test_email(template, recipient):
    """Send a template as-is (placeholders unrendered) to one address, synchronously.

    Returns:
        bool: True if delivered
    """
    if not mail_enabled():
        return False
    msg = EmailMultiAlternatives(
        subject=f'[TEST] {template.subject}',
        body=_html_to_text(template.html_body),
        from_email=current_app.config.get('MAIL_DEFAULT_SENDER'),
        to=[recipient],
    )
    msg.attach_alternative(template.html_body, 'text/html')
    email_id = str(uuid.uuid4())[:8]
    logger.info(f"[EMAIL:{email_id}] Sending test of '{template.name}' to {recipient}")
    return _send_with_retry(msg, email_id, recipient)


def _html_to_text(html_content):
    """Basic HTML to plain text conversion for the text/plain part."""
    text = re.sub(r'<[^>]+>', ' ', html_content or '')
    return re.sub(r'\s+', ' ', text).strip()
