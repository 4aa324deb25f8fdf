"""Job handlers, one module per provider."""
