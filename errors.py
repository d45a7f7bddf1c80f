"""
Harvest error taxonomy

Only ConfigLoadFailed is meant to stop the process. Every other error is
owned by a single keyword pipeline, which logs it and records it in its
PipelineResult.
"""


class HarvestError(Exception):
    """Base class for all serpharvest errors"""


class ConfigLoadFailed(HarvestError):
    """An input file or the configuration could not be loaded"""


class ProxySetupFailed(HarvestError):
    """The SOCKS5 session could not be built for a pipeline"""


class FetchFailed(HarvestError):
    """A search page request failed at the transport level"""


class EmptyUserAgentPool(FetchFailed):
    """No user agent is available to send a request with"""


class ParseFailed(HarvestError):
    """A search page body could not be parsed as a document"""


class IOFailure(HarvestError):
    """Appending a result batch to the output file failed"""
