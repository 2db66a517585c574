"""Upstream radar image collectors."""
