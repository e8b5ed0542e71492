"""Shared utilities for qtsys."""
