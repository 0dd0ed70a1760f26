"""Unit tests for spacetime_cli module."""

from unittest.mock import Mock, patch

import pytest

from spacetime_token.errors import ExecutableNotFoundError, NotFoundError, SubprocessError
from spacetime_token.spacetime_cli import logout, run_spacetime, server_issued_login


@pytest.fixture
def mock_run():
    with patch("spacetime_token.spacetime_cli.subprocess.run") as mock:
        mock.return_value = Mock(returncode=0)
        yield mock


class TestRunSpacetime:
    """Tests for the subprocess wrapper."""

    def test_success_inherits_stdio(self, mock_run):
        """Test the command runs without capturing output."""
        run_spacetime(["logout"])
        mock_run.assert_called_once_with(["spacetime", "logout"], check=False)

    def test_nonzero_exit(self, mock_run):
        """Test nonzero exit codes are fatal."""
        mock_run.return_value = Mock(returncode=3)
        with pytest.raises(SubprocessError, match="failed with status: 3") as exc_info:
            run_spacetime(["logout"])
        assert exc_info.value.returncode == 3

    def test_missing_executable(self, mock_run):
        """Test a missing executable is a NotFound error."""
        mock_run.side_effect = FileNotFoundError("spacetime")
        with pytest.raises(ExecutableNotFoundError, match="in your PATH") as exc_info:
            run_spacetime(["logout"])
        assert isinstance(exc_info.value, NotFoundError)

    def test_launch_failure(self, mock_run):
        """Test other launch errors are subprocess failures."""
        mock_run.side_effect = PermissionError("denied")
        with pytest.raises(SubprocessError, match="denied"):
            run_spacetime(["logout"])

    def test_helpers(self, mock_run):
        """Test login/logout argument lists."""
        logout(command="st")
        server_issued_login("local", command="st")
        assert [c.args[0] for c in mock_run.call_args_list] == [
            ["st", "logout"],
            ["st", "login", "--server-issued-login", "local"],
        ]
