"""kopf wiring for the OP Stack controllers."""
