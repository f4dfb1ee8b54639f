"""Tests for role-based access checks."""

import pytest

from valetflow.domain.components.access_policy import CAPABILITIES, Operation, authorize
from valetflow.domain.models.auth_context import AuthContext, Role
from valetflow.domain.models.errors import PermissionDeniedError, UnauthenticatedError


def caller(role: Role) -> AuthContext:
    return AuthContext(caller_id=f"{role.value}-1", role=role, tenant_id="acme")


class TestAuthorize:
    """Tests for authorize()."""

    def test_every_operation_has_capabilities(self) -> None:
        assert set(CAPABILITIES) == set(Operation)

    def test_missing_caller_is_unauthenticated(self) -> None:
        with pytest.raises(UnauthenticatedError, match="Authentication required."):
            authorize(None, Operation.ListBookings)

    @pytest.mark.parametrize("operation", [op for op in Operation if op is not Operation.SweepExpiredLocks])
    @pytest.mark.parametrize("role", [Role.Admin, Role.Operator])
    def test_operators_and_admins_may_mutate(self, operation: Operation, role: Role) -> None:
        auth = caller(role)
        assert authorize(auth, operation) is auth

    @pytest.mark.parametrize(
        "operation", [op for op in Operation if op is not Operation.ListBookings]
    )
    def test_viewer_is_read_only(self, operation: Operation) -> None:
        """Test that a viewer may only list."""
        with pytest.raises(PermissionDeniedError) as exc_info:
            authorize(caller(Role.Viewer), operation)

        assert exc_info.value.details["role"] == "viewer"
        assert exc_info.value.details["operation"] == operation.value

    def test_viewer_may_list(self) -> None:
        authorize(caller(Role.Viewer), Operation.ListBookings)

    def test_sweep_is_admin_only(self) -> None:
        authorize(caller(Role.Admin), Operation.SweepExpiredLocks)
        with pytest.raises(PermissionDeniedError):
            authorize(caller(Role.Operator), Operation.SweepExpiredLocks)

    def test_only_admin_is_elevated(self) -> None:
        assert Role.Admin.is_elevated
        assert not Role.Operator.is_elevated
        assert not Role.Viewer.is_elevated
