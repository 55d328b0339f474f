"""Presentation of analysis results: Rich console tables and JSON reports."""
