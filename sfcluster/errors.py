"""Errors raised while describing the Service Fabric topology.

All of them are ValueErrors so the HTTP layer can report them the same way it
reports provisioning failures.
"""


class TopologyError(ValueError):
    """Base class for topology description failures"""


class ForwardReferenceError(TopologyError):
    def __init__(self, key: str, missing):
        self.key = key
        self.missing = list(missing)
        super().__init__(
            f"Resource '{key}' consumes values from undeclared resources: "
            f"{', '.join(self.missing)}"
        )


class UnsupportedVersionError(TopologyError):
    pass


class StorageKeyIndexError(TopologyError, IndexError):
    def __init__(self, account_name: str, index: int, available: int):
        self.account_name = account_name
        self.index = index
        self.available = available
        super().__init__(
            f"Storage account '{account_name}' has {available} keys; "
            f"key index {index} is out of range"
        )
