class TransferError(Exception):
    """
    Error class handling/indicating problems with the transfer operators
    """

    pass


class ConfigurationError(TransferError):
    """
    Error class handling/indicating incompatible spaces, operator types or kernel requests
    """

    pass


class UnsupportedOperationError(TransferError):
    """
    Error class handling/indicating an operation the constructed operator cannot perform
    """

    pass
