"""User <-> group membership synchronization.

Cognito only offers per-pair add/remove calls, so membership changes are a
sequence of independent requests. Two modes are supported:

* explicit delta (``apply_*``): add every entry of the add set, then remove
  every entry of the remove set, without reading current state;
* diff-based (``reconcile_*``): read the full current membership, remove
  what is not desired, then add what is missing.

``None`` as the desired set means the caller expressed no opinion and
nothing is done; an empty collection means "no memberships".
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Iterator, Optional

from botocore.exceptions import ClientError

from .errors import NOT_FOUND_CODES, MembershipTargetNotFoundError, check_response, error_code

LOGGER = logging.getLogger("cognito_connector.membership")


class MembershipSynchronizer:
    """Adds and removes users to/from groups in one user pool.

    Args:
        client: boto3 ``cognito-idp`` client
        user_pool_id: Cognito User Pool ID
    """

    def __init__(self, client: Any, user_pool_id: str) -> None:
        self.client = client
        self.user_pool_id = user_pool_id

    # ------------------------------------------------------------------
    # Primitive calls
    # ------------------------------------------------------------------

    def _call(self, api_name: str, fn: Callable[..., dict[str, Any]], **kwargs: Any) -> dict[str, Any]:
        try:
            return check_response(fn(UserPoolId=self.user_pool_id, **kwargs), api_name)
        except ClientError as e:
            code = error_code(e)
            if code in NOT_FOUND_CODES:
                LOGGER.warning("%s failed, target not found: %s", api_name, kwargs)
                raise MembershipTargetNotFoundError(f"{api_name} failed: {e}", code) from e
            raise

    def add_user_to_group(self, username: str, group_name: str) -> None:
        LOGGER.debug("Adding user %s to group %s", username, group_name)
        self._call("AdminAddUserToGroup", self.client.admin_add_user_to_group, Username=username, GroupName=group_name)

    def remove_user_from_group(self, username: str, group_name: str) -> None:
        LOGGER.debug("Removing user %s from group %s", username, group_name)
        self._call(
            "AdminRemoveUserFromGroup",
            self.client.admin_remove_user_from_group,
            Username=username,
            GroupName=group_name,
        )

    # ------------------------------------------------------------------
    # Paginated reads
    # ------------------------------------------------------------------

    def _paginate(self, operation: str, api_name: str, result_key: str, **kwargs: Any) -> Iterator[dict[str, Any]]:
        paginator = self.client.get_paginator(operation)
        try:
            for page in paginator.paginate(UserPoolId=self.user_pool_id, **kwargs):
                check_response(page, api_name)
                yield from page.get(result_key, [])
        except ClientError as e:
            code = error_code(e)
            if code in NOT_FOUND_CODES:
                raise MembershipTargetNotFoundError(f"{api_name} failed: {e}", code) from e
            raise

    def list_groups_for_user(self, username: str) -> list[str]:
        """Return the names of every group the user belongs to."""
        groups = self._paginate("admin_list_groups_for_user", "AdminListGroupsForUser", "Groups", Username=username)
        return [g["GroupName"] for g in groups]

    def list_users_in_group(self, group_name: str) -> list[str]:
        """Return the usernames of every member of the group."""
        users = self._paginate("list_users_in_group", "ListUsersInGroup", "Users", GroupName=group_name)
        return [u["Username"] for u in users]

    # ------------------------------------------------------------------
    # Explicit delta
    # ------------------------------------------------------------------

    def apply_groups_of_user(
        self,
        username: str,
        add: Optional[Iterable[Any]] = None,
        remove: Optional[Iterable[Any]] = None,
    ) -> None:
        for group in _as_names(add):
            self.add_user_to_group(username, group)
        for group in _as_names(remove):
            self.remove_user_from_group(username, group)

    def apply_users_of_group(
        self,
        group_name: str,
        add: Optional[Iterable[Any]] = None,
        remove: Optional[Iterable[Any]] = None,
    ) -> None:
        for user in _as_names(add):
            self.add_user_to_group(user, group_name)
        for user in _as_names(remove):
            self.remove_user_from_group(user, group_name)

    # ------------------------------------------------------------------
    # Diff-based replace
    # ------------------------------------------------------------------

    def reconcile_groups_of_user(self, username: str, desired: Optional[Iterable[Any]]) -> None:
        """Make the user's groups exactly ``desired``."""
        if desired is None:
            return

        wanted = _as_names(desired)
        pending = set(wanted)
        for group in self.list_groups_for_user(username):
            if group in pending:
                pending.discard(group)
            else:
                self.remove_user_from_group(username, group)

        for group in wanted:
            if group in pending:
                pending.discard(group)
                self.add_user_to_group(username, group)

    def reconcile_users_of_group(self, group_name: str, desired: Optional[Iterable[Any]]) -> None:
        """Make the group's members exactly ``desired``."""
        if desired is None:
            return

        wanted = _as_names(desired)
        pending = set(wanted)
        for user in self.list_users_in_group(group_name):
            if user in pending:
                pending.discard(user)
            else:
                self.remove_user_from_group(user, group_name)

        for user in wanted:
            if user in pending:
                pending.discard(user)
                self.add_user_to_group(user, group_name)

    def remove_all_users(self, group_name: str) -> None:
        for user in self.list_users_in_group(group_name):
            self.remove_user_from_group(user, group_name)


def _as_names(values: Optional[Iterable[Any]]) -> list[str]:
    """Stringify and de-duplicate, keeping first-seen order."""
    if values is None:
        return []
    seen: dict[str, None] = {}
    for value in values:
        seen.setdefault(str(value), None)
    return list(seen)
