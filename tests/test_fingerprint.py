# =============================================================================
# Feature Roadmap - Browser Fingerprint Tests
# =============================================================================

import hashlib
import re
from dataclasses import fields, replace

import pytest

from roadmap.utils.fingerprint import BrowserSignals, generate_fingerprint


@pytest.fixture
def signals():
    return BrowserSignals(
        user_agent='Mozilla/5.0 (X11; Linux x86_64)',
        language='en-US',
        screen_width=1920,
        screen_height=1080,
        color_depth=24,
        timezone_offset=-60,
        hardware_concurrency=8,
        platform='Linux x86_64',
    )


class TestGenerateFingerprint:

    def test_is_64_char_lowercase_hex(self, signals):
        assert re.fullmatch(r'[0-9a-f]{64}', generate_fingerprint(signals))

    def test_deterministic(self, signals):
        assert generate_fingerprint(signals) == generate_fingerprint(replace(signals))

    def test_matches_sha256_of_pipe_joined_signals(self, signals):
        raw = 'Mozilla/5.0 (X11; Linux x86_64)|en-US|1920|1080|24|-60|8|Linux x86_64'
        assert generate_fingerprint(signals) == hashlib.sha256(raw.encode()).hexdigest()

    def test_every_component_participates(self, signals):
        baseline = generate_fingerprint(signals)
        for f in fields(BrowserSignals):
            value = getattr(signals, f.name)
            changed = value + 1 if isinstance(value, int) else value + 'x'
            assert generate_fingerprint(replace(signals, **{f.name: changed})) != baseline, f.name

    def test_missing_components_still_hash(self):
        assert len(generate_fingerprint(BrowserSignals())) == 64


class TestSignalsFromMapping:

    def test_camel_case_keys(self, signals):
        payload = {
            'userAgent': signals.user_agent,
            'language': 'en-US',
            'screenWidth': 1920,
            'screenHeight': 1080,
            'colorDepth': 24,
            'timezoneOffset': -60,
            'hardwareConcurrency': 8,
            'platform': 'Linux x86_64',
        }
        assert BrowserSignals.from_mapping(payload) == signals

    def test_snake_case_keys(self):
        parsed = BrowserSignals.from_mapping({'user_agent': 'UA', 'screen_width': '1280'})
        assert parsed.user_agent == 'UA'
        assert parsed.screen_width == 1280

    def test_unreadable_values_default(self):
        parsed = BrowserSignals.from_mapping({'screenWidth': 'wide', 'colorDepth': None, 'language': 42})
        assert parsed.screen_width == 0
        assert parsed.color_depth == 0
        assert parsed.language == '42'

    def test_non_mapping_gives_empty_signals(self):
        assert BrowserSignals.from_mapping(None) == BrowserSignals()
        assert BrowserSignals.from_mapping(['not', 'a', 'dict']) == BrowserSignals()
