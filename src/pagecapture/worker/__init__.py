"""Job entry points for capture and batch runs."""
