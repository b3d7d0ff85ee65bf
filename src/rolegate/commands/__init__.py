"""Commands of the rolegate CLI, one module per command group."""
