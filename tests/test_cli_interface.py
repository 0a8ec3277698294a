"""Tests for the command line interface."""

import json
from unittest.mock import Mock, patch

import pytest

from lustre_quota_backend import main
from lustre_quota_backend.backend.exceptions import NotFoundError
from lustre_quota_backend.backend.structures import ApplicationState, QuotaLimitSet, UserQuota
from lustre_quota_backend.common import utils
from lustre_quota_backend.common.pagination import PageResponse, PagingParams
from lustre_quota_backend.service import QuotaService
from tests.fixtures import CONFIGURATION


class TestParser:
    """Test cases for the argument parser."""

    def test_quotas(self):
        """Users are collected from repeated options."""
        argv = ["-c", "config.yaml", "quotas", "--cluster", "hpc1", "--user", "alice"]
        args = utils.build_parser().parse_args([*argv, "--user", "bob"])

        assert args.config_file_path == "config.yaml"
        assert args.command == "quotas"
        assert args.users == ["alice", "bob"]
        assert args.paging is True
        assert args.page == 1

    def test_review_requires_verdict(self):
        """Review needs either --approve or --reject."""
        with pytest.raises(SystemExit):
            utils.build_parser().parse_args(["review", "1", "--cluster", "hpc1"])

    def test_review_reject(self):
        """--reject clears the approve flag."""
        args = utils.build_parser().parse_args(["review", "7", "--cluster", "hpc1", "--reject"])

        assert args.id == 7
        assert args.approve is False

    def test_apply_requires_quota(self):
        """Apply needs user and filesystem."""
        with pytest.raises(SystemExit):
            utils.build_parser().parse_args(["apply", "--user", "alice"])


class TestRunCommand:
    """Test cases for run_command."""

    @pytest.fixture
    def service(self):
        """Service mock with the real paging defaults."""
        service = Mock(spec=QuotaService)
        service.paging.side_effect = lambda query: PagingParams.from_query(query)
        return service

    def test_apply(self, service):
        """Apply submits the quota from the options."""
        service.create_application.return_value = 3
        args = utils.build_parser().parse_args(
            ["apply", "--user", " alice ", "--filesystem", "/mnt/a", "--block-hard", "1T"]
        )

        assert main.run_command(service, args) == 3
        service.create_application.assert_called_once_with(
            UserQuota(user="alice", filesystem="/mnt/a", limits=QuotaLimitSet(block_hard="1T")),
            "",
        )

    def test_review(self, service):
        """Review returns the label of the new state."""
        service.review_application.return_value = ApplicationState.PASSED
        args = utils.build_parser().parse_args(
            [
                "review",
                "3",
                "--cluster",
                "hpc1",
                "--approve",
                "--decision",
                "granted",
                "--user",
                "alice",
                "--filesystem",
                "/mnt/a",
                "--block-hard",
                "1T",
                "--reviewer",
                "admin",
            ]
        )

        assert main.run_command(service, args) == "passed"
        service.review_application.assert_called_once_with(
            "hpc1",
            3,
            True,
            "granted",
            UserQuota(user="alice", filesystem="/mnt/a", limits=QuotaLimitSet(block_hard="1T")),
            reviewer="admin",
        )

    def test_quotas(self, service):
        """Quotas are listed with paging from the options."""
        service.list_quotas.return_value = PageResponse(count=0)
        args = utils.build_parser().parse_args(
            ["quotas", "--cluster", "hpc1", "--page", "2", "--page-size", "5"]
        )

        result = main.run_command(service, args)

        assert result["count"] == 0
        cluster, users, paging = service.list_quotas.call_args.args
        assert (cluster, users) == ("hpc1", [])
        assert (paging.page, paging.page_size) == (2, 5)


    def test_set_default_quota(self, service):
        """Without a user the default quota is set."""
        service.update_default_quota.return_value = ["lfs setquota -u 0 -b 1T /mnt/a"]
        args = utils.build_parser().parse_args(
            ["set-quota", "--cluster", "hpc1", "--filesystem", "/mnt/a", "--block-soft", "1T"]
        )

        assert main.run_command(service, args) == ["lfs setquota -u 0 -b 1T /mnt/a"]
        service.update_user_quota.assert_not_called()

    def test_set_user_quota(self, service):
        """With a user the quota of that user is set."""
        args = utils.build_parser().parse_args(
            [
                "set-quota",
                "--cluster",
                "hpc1",
                "--user",
                "alice",
                "--filesystem",
                "/mnt/a",
                "--file-hard",
                "1000",
            ]
        )

        main.run_command(service, args)

        service.update_user_quota.assert_called_once_with(
            "hpc1",
            "alice",
            UserQuota(user="alice", filesystem="/mnt/a", limits=QuotaLimitSet(file_hard="1000")),
        )

    def test_update(self, service):
        """Update replaces the requested quota."""
        args = utils.build_parser().parse_args(
            ["update", "4", "--user", "alice", "--filesystem", "/mnt/a", "--block-hard", "3T"]
        )

        assert main.run_command(service, args) == "ok"
        service.update_application.assert_called_once_with(
            4, UserQuota(user="alice", filesystem="/mnt/a", limits=QuotaLimitSet(block_hard="3T"))
        )

    def test_default_page_size(self, service):
        """The configured page size is used when none is given."""
        service.list_applications.return_value = PageResponse()
        args = utils.build_parser().parse_args(["applications", "--cluster", "hpc1"])

        main.run_command(service, args)

        service.paging.assert_called_once_with({"paging": True, "page": 1})


class TestMain:
    """Test cases for the entrypoint."""

    @patch("lustre_quota_backend.main.configure_logger")
    @patch("lustre_quota_backend.main.utils.build_service")
    @patch("lustre_quota_backend.main.utils.init_configuration")
    def test_decision(self, mock_init, mock_build, mock_configure, capsys):
        """The result is printed as JSON."""
        mock_init.return_value = (
            CONFIGURATION,
            utils.build_parser().parse_args(["decision", "3"]),
        )
        mock_build.return_value.get_decision.return_value = "granted"

        assert main.main(["decision", "3"]) == 0
        assert json.loads(capsys.readouterr().out) == {"results": "granted"}

    @patch("lustre_quota_backend.main.configure_logger")
    @patch("lustre_quota_backend.main.utils.build_service")
    @patch("lustre_quota_backend.main.utils.init_configuration")
    def test_error(self, mock_init, mock_build, mock_configure, capsys):
        """Backend errors are reported with a non-zero exit code."""
        mock_init.return_value = (
            CONFIGURATION,
            utils.build_parser().parse_args(["delete", "3"]),
        )
        mock_build.return_value.delete_application.side_effect = NotFoundError(
            "application not found: id=3"
        )

        assert main.main(["delete", "3"]) == 1
        error_line = capsys.readouterr().err.splitlines()[-1]
        assert json.loads(error_line) == {"detail": "application not found: id=3"}

    def test_missing_config_file(self, tmp_path, capsys):
        """A missing config file is reported as JSON with exit code 1."""
        config_path = str(tmp_path / "missing.yaml")

        assert main.main(["-c", config_path, "decision", "3"]) == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        detail = json.loads(captured.err.splitlines()[-1])["detail"]
        assert detail.startswith(f"Unable to read configuration file {config_path}")

    def test_invalid_config(self, tmp_path, capsys):
        """An invalid config is reported as JSON with exit code 1."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("log_level: verbose\n", encoding="UTF-8")

        assert main.main(["-c", str(config_path), "decision", "3"]) == 1
        detail = json.loads(capsys.readouterr().err.splitlines()[-1])["detail"]
        assert "log_level" in detail
