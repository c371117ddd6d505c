"""Turn an account/role selection into the ARN pair STS expects."""

from .assertion import find_by_account_and_role
from .errors import RoleNotAuthorized


def resolve_role(bindings, account_id, role_name):
    """Return ``(principal_arn, role_arn)`` for the selected account and role.

    *account_id* and *role_name* come either from the interactive console
    selection or from a stored profile.  Raises RoleNotAuthorized when the
    bindings hold no match, which includes an empty binding set.
    """
    binding = find_by_account_and_role(bindings, account_id, role_name)
    if binding is None:
        if bindings:
            detail = f"available: {', '.join(available_roles(bindings))}"
        else:
            detail = "the assertion authorizes no roles"
        raise RoleNotAuthorized(
            account_id,
            role_name,
            f"No role '{role_name}' in account {account_id} ({detail})",
        )
    return binding.principal_arn, binding.role_arn


def available_roles(bindings):
    """Return ``account_id/role_name`` labels for *bindings*."""
    return [f"{b.account_id}/{b.role_name}" for b in bindings]
