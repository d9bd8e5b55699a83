"""HTTP blueprints. Each subpackage exposes one blueprint, registered by the app factory."""
