"""Email and SMS transports."""
