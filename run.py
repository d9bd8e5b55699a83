#!/usr/bin/env python
"""
Feature Roadmap development server.

Stripe events can be forwarded locally with:
    stripe listen --forward-to localhost:5000/api/webhooks/stripe
"""
import os
from dotenv import load_dotenv

load_dotenv()

from roadmap import create_app  # noqa: E402
from roadmap.services.billing_mode import get_billing_mode  # noqa: E402

app = create_app(os.environ.get('FLASK_ENV', 'development'))

if __name__ == '__main__':
    host = os.environ.get('FLASK_HOST', '0.0.0.0')
    port = int(os.environ.get('FLASK_PORT', 5000))
    debug = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'

    with app.app_context():
        mode = get_billing_mode().value

    print(f"""
    ============================================================
              FEATURE ROADMAP - Development Server
    ============================================================
      API:          http://{host}:{port}/api
      Webhooks:     http://{host}:{port}/api/webhooks/stripe
      Stripe mode:  {mode}
      Debug mode:   {debug}
    ============================================================
    """)

    app.run(host=host, port=port, debug=debug)
