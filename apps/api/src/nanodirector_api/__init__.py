"""Nano Director API."""
