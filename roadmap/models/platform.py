"""Platform-level settings and editable email templates.

Settings are global (not per organization). The `stripe_mode` key selects
the active Stripe credential set and is read through the billing mode cache.
"""
from datetime import datetime

from roadmap.extensions import db


class PlatformSetting(db.Model):
    """Key-value store for platform settings."""

    __tablename__ = 'platform_settings'

    key = db.Column(db.String(100), primary_key=True)
    value = db.Column(db.Text, nullable=True)
    description = db.Column(db.String(500), nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def get(cls, key, default=None):
        setting = db.session.get(cls, key)
        if setting is None or setting.value is None:
            return default
        return setting.value

    @classmethod
    def set(cls, key, value, description=None):
        """Upsert a setting. Caller commits."""
        setting = db.session.get(cls, key)
        if not setting:
            setting = cls(key=key)
            db.session.add(setting)
        setting.value = value
        if description is not None:
            setting.description = description
        return setting

    def __repr__(self):
        return f'<PlatformSetting {self.key}>'


class EmailTemplate(db.Model):
    """Editable notification email. Subject and body use {{variable}} placeholders."""

    __tablename__ = 'email_templates'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False, index=True)
    subject = db.Column(db.String(255), nullable=False)
    html_body = db.Column(db.Text, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def get_active(cls, name):
        return cls.query.filter_by(name=name, is_active=True).first()

    def __repr__(self):
        return f'<EmailTemplate {self.name}>'
