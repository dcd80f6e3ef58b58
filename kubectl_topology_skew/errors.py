class TopologySkewError(Exception):
    """
    Base class for errors surfaced to the command line.
    """

    exit_code = 1


class InvalidInputError(TopologySkewError):
    """
    Raised for bad user input, always before any API call is made.
    """

    exit_code = 2


class SnapshotError(InvalidInputError):
    """
    Raised when an offline snapshot file cannot be read or parsed.
    """


class FetchError(TopologySkewError):
    """
    Raised when the cluster cannot be reached or a LIST call fails.
    Aborts the whole run; partial snapshots are never aggregated.
    """

    exit_code = 1
