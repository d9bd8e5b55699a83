"""
Billing mode: which Stripe credential set (test or live) is active.

The mode is a platform setting. Reading it on every request would cost a
settings-table round trip, so each process caches it for a short TTL and
drops the cached value whenever the setting is written. Other workers
pick the change up once their TTL runs out.
"""
import threading
import time
from typing import Callable, Optional, Tuple

from flask import current_app

from roadmap.errors import BillingNotConfigured
from roadmap.extensions import db
from roadmap.models.billing import BillingMode
from roadmap.models.platform import PlatformSetting

STRIPE_MODE_KEY = 'stripe_mode'


class BillingModeCache:
    """Time-bounded cache around a mode loader.

    Args:
        loader: Callable returning the current BillingMode
        ttl: Seconds a loaded value stays fresh
        clock: Monotonic clock, injectable for tests
    """

    def __init__(self, loader: Callable[[], BillingMode], ttl: float = 60,
                 clock: Callable[[], float] = time.monotonic):
        self._loader = loader
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._value: Optional[BillingMode] = None
        self._loaded_at = 0.0

    def get(self) -> BillingMode:
        with self._lock:
            now = self._clock()
            if self._value is None or now - self._loaded_at >= self.ttl:
                self._value = self._loader()
                self._loaded_at = now
            return self._value

    def invalidate(self) -> None:
        with self._lock:
            self._value = None


def load_billing_mode() -> BillingMode:
    """Read the mode from platform settings. Anything but 'live' is test."""
    value = PlatformSetting.get(STRIPE_MODE_KEY, BillingMode.TEST.value)
    if (value or '').strip().lower() == BillingMode.LIVE.value:
        return BillingMode.LIVE
    return BillingMode.TEST


billing_mode_cache = BillingModeCache(load_billing_mode)


def get_billing_mode() -> BillingMode:
    return billing_mode_cache.get()


def set_billing_mode(mode) -> BillingMode:
    """Persist the mode and drop this process's cached value."""
    mode = BillingMode(mode)
    PlatformSetting.set(
        STRIPE_MODE_KEY, mode.value, description='Active Stripe credential set (test or live)',
    )
    db.session.commit()
    billing_mode_cache.invalidate()
    current_app.logger.info(f'Billing mode set to {mode.value}')
    return mode


def stripe_credentials(mode=None) -> Tuple[Optional[str], Optional[str]]:
    """(secret_key, webhook_secret) for the mode (default: active mode)."""
    mode = BillingMode(mode) if mode is not None else get_billing_mode()
    prefix = f'STRIPE_{mode.value.upper()}'
    return (
        current_app.config.get(f'{prefix}_SECRET_KEY'),
        current_app.config.get(f'{prefix}_WEBHOOK_SECRET'),
    )


def stripe_api_key(mode=None) -> str:
    """Secret key for the mode.

    Raises:
        BillingNotConfigured: If the mode has no secret key
    """
    secret_key, _ = stripe_credentials(mode)
    if not secret_key:
        raise BillingNotConfigured('Stripe is not configured.')
    return secret_key
