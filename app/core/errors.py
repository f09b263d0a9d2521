"""
Application errors.

ParserError and DictionaryLookupError mean an upstream NLP/dictionary service is
unusable; the orchestrator surfaces them as a gateway_error event. Endpoint errors
carry the endpoint name and the offending SPARQL so callers can decide whether to
move on to the next query or abandon the endpoint.
"""


class ParserError(Exception):
    """Raised when the parser service fails, rejects the input, or returns something other than CoNLL."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ParseInvariantError(RuntimeError):
    """Raised when a parse cannot be turned into consistent chunks (e.g. a noun chunk without a head)."""


class DictionaryLookupError(Exception):
    """Raised when the dictionary (term lookup) service cannot map keywords."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class EndpointError(Exception):
    """Persistent SPARQL endpoint failure: the endpoint should not be queried further."""

    def __init__(self, endpoint_name: str, sparql: str, message: str) -> None:
        self.endpoint_name = endpoint_name
        self.sparql = sparql
        self.message = message
        super().__init__(f"{endpoint_name}: {message}")


class EndpointTemporaryError(EndpointError):
    """The endpoint failed for this query only; later queries may succeed."""


class EndpointTimeoutError(EndpointError):
    """The endpoint did not answer this query in time."""
