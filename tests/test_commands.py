"""Tests for lfs setquota command construction."""

import pytest

from lustre_quota_backend.backend import commands
from lustre_quota_backend.backend.exceptions import ValidationError
from lustre_quota_backend.backend.structures import QuotaLimitSet


class TestLimitCommand:
    """Test cases for the block/inode limit command."""

    def test_only_set_flags_are_emitted(self):
        """Empty and none limits produce no flag."""
        limits = QuotaLimitSet(block_soft="10G", block_hard="none", file_soft="", file_hard="5000")
        command = commands.build_limit_command(limits, "/mnt/a", "bob")
        assert command == "lfs setquota -u bob -b 10G -I 5000 /mnt/a"
        assert "-B" not in command.split()
        assert "-i" not in command.split()

    def test_flag_order(self):
        """Flags follow the -b -B -i -I order."""
        limits = QuotaLimitSet(file_hard="4", file_soft="3", block_hard="2", block_soft="1")
        command = commands.build_limit_command(limits, "/mnt/a", "bob")
        assert command == "lfs setquota -u bob -b 1 -B 2 -i 3 -I 4 /mnt/a"

    def test_default_quota_target(self):
        """Without a user the default quota is updated."""
        command = commands.build_limit_command(QuotaLimitSet(block_hard="1T"), "/mnt/a")
        assert command == "lfs setquota -u 0 -B 1T /mnt/a"

    def test_nothing_to_update(self):
        """No limit set means nothing to update."""
        limits = QuotaLimitSet(block_soft="none", block_hard="", file_soft=" NONE ")
        assert commands.build_limit_command(limits, "/mnt/a", "bob") is None

    def test_values_are_trimmed(self):
        """Whitespace around values and the mount is removed."""
        command = commands.build_limit_command(QuotaLimitSet(block_soft=" 5G "), " /mnt/a ", "bob")
        assert command == "lfs setquota -u bob -b 5G /mnt/a"


class TestGraceCommand:
    """Test cases for the grace period command."""

    def test_both_graces(self):
        """Both grace periods are set in one command."""
        limits = QuotaLimitSet(block_grace="1w", file_grace="3d")
        command = commands.build_grace_command(limits, "/mnt/a", "bob")
        assert command == "lfs setquota -t -u bob --block-grace=1w --inode-grace=3d /mnt/a"

    def test_default_grace(self):
        """Grace of the default quota targets id 0."""
        command = commands.build_grace_command(QuotaLimitSet(file_grace="7d"), "/mnt/a")
        assert command == "lfs setquota -t -u 0 --inode-grace=7d /mnt/a"

    def test_no_grace(self):
        """No command without a grace value."""
        limits = QuotaLimitSet(block_soft="1G", block_grace="none")
        assert commands.build_grace_command(limits, "/mnt/a", "bob") is None


class TestSetquotaCommands:
    """Test cases for the full command list."""

    def test_limit_then_grace(self):
        """Limit command goes first."""
        limits = QuotaLimitSet(block_hard="1T", block_grace="2w")
        assert commands.build_setquota_commands(limits, "/mnt/a", "alice") == [
            "lfs setquota -u alice -B 1T /mnt/a",
            "lfs setquota -t -u alice --block-grace=2w /mnt/a",
        ]

    def test_empty_limits(self):
        """Unset limits produce no command."""
        assert commands.build_setquota_commands(QuotaLimitSet(), "/mnt/a", "alice") == []

    def test_grace_only(self):
        """Grace can be set without limits."""
        limits = QuotaLimitSet(file_grace="1d")
        assert commands.build_setquota_commands(limits, "/mnt/a", "alice") == [
            "lfs setquota -t -u alice --inode-grace=1d /mnt/a"
        ]


class TestCommandValidation:
    """Test cases for rejecting values that are not plain tokens."""

    @pytest.mark.parametrize(
        ("limits", "mount", "user"),
        [
            (QuotaLimitSet(block_hard="1T"), "/mnt/a", "alice;reboot"),
            (QuotaLimitSet(block_hard="1T"), "/mnt/a && rm -rf /", "alice"),
            (QuotaLimitSet(block_hard="1T$(id)"), "/mnt/a", "alice"),
            (QuotaLimitSet(file_soft="10 -u root"), "/mnt/a", "alice"),
            (QuotaLimitSet(block_hard="1T"), "mnt/a", "alice"),
            (QuotaLimitSet(block_hard="1T"), "/mnt/a", "-u"),
        ],
    )
    def test_limit_command_rejects(self, limits, mount, user):
        """Shell metacharacters and malformed tokens never reach a command."""
        with pytest.raises(ValidationError):
            commands.build_limit_command(limits, mount, user)

    @pytest.mark.parametrize("grace", ["1w`id`", "1w; reboot", "week"])
    def test_grace_command_rejects(self, grace):
        """Grace values must be seconds or counted units."""
        with pytest.raises(ValidationError, match="block grace"):
            commands.build_grace_command(QuotaLimitSet(block_grace=grace), "/mnt/a", "alice")

    def test_grace_formats(self):
        """Seconds and combined units are accepted."""
        limits = QuotaLimitSet(block_grace="604800", file_grace="1w3d12h")
        assert commands.build_grace_command(limits, "/mnt/a", "alice") == (
            "lfs setquota -t -u alice --block-grace=604800 --inode-grace=1w3d12h /mnt/a"
        )

    def test_invalid_grace_rejects_whole_set(self):
        """No command is returned when any value is malformed."""
        limits = QuotaLimitSet(block_hard="1T", file_grace="1d|reboot")
        with pytest.raises(ValidationError):
            commands.build_setquota_commands(limits, "/mnt/a", "alice")

    def test_user_name_with_dot(self):
        """Account names may contain dots, dashes and underscores."""
        limits = QuotaLimitSet(block_hard="1T")
        command = commands.build_limit_command(limits, "/mnt/a", "j.doe-1_x")
        assert command == "lfs setquota -u j.doe-1_x -B 1T /mnt/a"
