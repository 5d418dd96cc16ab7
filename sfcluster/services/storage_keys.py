from __future__ import annotations
import logging
from typing import Any, Sequence

import pulumi
from pulumi_azure_native import storage

from sfcluster.errors import StorageKeyIndexError

logger = logging.getLogger(__name__)


def _key_value(k):
    # Works for both dict payloads and typed objects
    if isinstance(k, dict):
        return k.get("value")
    return getattr(k, "value", None)


def select_storage_key(keys: Sequence[Any], index: int, account_name: str = "") -> str:
    keys = list(keys or [])
    if index < 0 or index >= len(keys):
        raise StorageKeyIndexError(account_name, index, len(keys))
    return _key_value(keys[index])


def storage_account_key(
    resource_group_name: pulumi.Input[str],
    account_name: pulumi.Input[str],
    index: int = 0,
) -> pulumi.Output[str]:
    """
    Look up one access key of a storage account.

    The invoke is chained off ``account_name``, so pass the account resource's
    ``name`` output: the lookup then waits until the account exists. The
    returned value is marked secret.
    """
    keys = storage.list_storage_account_keys_output(
        resource_group_name=resource_group_name, account_name=account_name
    )

    def _pick(args):
        name, key_list = args
        logger.debug("Resolved %d keys for storage account %s", len(key_list or []), name)
        return select_storage_key(key_list, index, name)

    return pulumi.Output.secret(pulumi.Output.all(account_name, keys.keys).apply(_pick))
