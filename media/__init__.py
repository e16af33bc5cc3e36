"""Wrappers around external media tools."""
