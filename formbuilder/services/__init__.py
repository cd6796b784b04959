"""Business logic services.

This package contains the visibility evaluator, response validator,
publication state machine, editor commands, analytics aggregation and the
services that orchestrate them.
"""
