"""Routing: pattern parsing, route records, groups and the match loop.

Routes are kept in registration order per method and bucketed by the
first characters of their path; the buckets are rebuilt lazily after
every registration.
"""
