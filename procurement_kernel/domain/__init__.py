"""Pure domain layer: clock, identity, workflow tables and id formatting."""
