"""Command-line interface (``pagecapture``)."""
