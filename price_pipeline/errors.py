"""Exception types raised inside the price pipeline."""


class PipelineError(Exception):
    """Base class for price pipeline failures."""


class SourceError(PipelineError):
    """A quote source (page scrape or bulk API) produced no usable data."""


class StoreError(PipelineError):
    """Reading from or writing to the persistent price store failed."""


class CacheInitError(PipelineError):
    """The read-through cache could not be warmed from the store."""
