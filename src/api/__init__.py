"""Public API: request models and the runtime facade."""
