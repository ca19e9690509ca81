from __future__ import annotations


class EconDataError(Exception):
    pass


class InvalidInputError(EconDataError, ValueError):
    pass


class SubmissionError(EconDataError):
    pass


class FetchError(EconDataError):
    pass
