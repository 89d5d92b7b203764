"""Common utilities shared by smart factor backends.

Backend-agnostic instrumentation: KPI events and duration statistics.
"""
