"""Pure business rules with no persistence dependencies."""
