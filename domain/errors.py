class GatewayError(Exception):
    """The recipe repository could not be reached or answered garbage."""


class SearchFailed(Exception):
    """The user's literal query could not be evaluated."""


class SearchSuperseded(Exception):
    """A newer search of the same kind started before this one finished."""
