"""Tests for cap-deploy."""
