"""Parsing-failure diagnostics."""

from smartpaste.diagnostics.failure_log import (
    FailureLog,
    ParsingFailure,
    TemplateFailure,
    failure_key,
)

__all__ = ["FailureLog", "ParsingFailure", "TemplateFailure", "failure_key"]
