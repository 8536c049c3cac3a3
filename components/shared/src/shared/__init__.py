"""Shared data models and utilities for the protocol services."""
