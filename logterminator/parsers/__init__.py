"""Parsers for test-log filenames, HTML log pages and stack traces."""
