"""Action handlers and the registry that dispatches to them."""
