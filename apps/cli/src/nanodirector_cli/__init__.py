"""Nano Director command line interface."""
