"""Command line actions for cap-deploy."""
