# =============================================================================
# Feature Roadmap - Vercel Serverless Entry Point
# Flask WSGI application for the Vercel Python runtime
# =============================================================================

import os
import sys

# Project root on the path for the roadmap package
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from roadmap import create_app  # noqa: E402

# Vercel picks up the module-level WSGI `app`
app = create_app(os.environ.get('FLASK_ENV', 'production'))
