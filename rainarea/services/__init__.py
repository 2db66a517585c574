"""Radar acquisition and decoding services."""
