"""
Exception hierarchy for the wagering engine.

WagerEngineError (base)
├── InvalidRequest          - bad input, rejected before any read or write
├── NotFound                - unknown account / line / city
├── Conflict                - line closed or resolved, insufficient balance,
│                             concurrent update lost
└── UpstreamUnavailable     - forecast / observation / geocode failure
    └── ObservationUnavailable - observation lacks a field the line needs

The transport layer maps each class to one status code; services never
raise HTTPException themselves.
"""


class WagerEngineError(Exception):
    """Base class for all expected engine failures."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidRequest(WagerEngineError):
    status_code = 400


class NotFound(WagerEngineError):
    status_code = 404


class Conflict(WagerEngineError):
    status_code = 409


class UpstreamUnavailable(WagerEngineError):
    status_code = 503


class ObservationUnavailable(UpstreamUnavailable):
    """The observation came back but is missing data the line is judged on."""
