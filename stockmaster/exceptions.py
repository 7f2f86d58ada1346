"""
Engine exceptions.

Data absence (no movements, kits without components) is never an error and
never raises. Only failures of the backing store surface here, always
carrying the underlying message so the trigger can report it verbatim.
"""


class StockmasterError(Exception):
    """Base class for errors that abort a forecast run or a profit-map query."""

    def __init__(self, message: str, organization_id: str = None):
        super().__init__(message)
        self.message = message
        self.organization_id = organization_id


class MovementQueryError(StockmasterError):
    """Reading catalog, kit or movement data failed."""


class LedgerQueryError(StockmasterError):
    """Reading financial ledger entries failed."""


class ForecastPersistenceError(StockmasterError):
    """The replace-all write of forecast records failed and was rolled back."""
