"""Tests for the management CLI (the commands that need no database)."""

import pytest

from app.auth import catalog as p
from app.auth.roles import ROLE_DEFINITIONS
from app.cli import main


@pytest.mark.unit
class TestCli:

    def test_resolve_with_override(self, capsys):
        assert main(["resolve", "Data Entry", "--override", p.SYSTEM_AUDIT]) == 0

        out = capsys.readouterr().out
        assert f"  {p.SYSTEM_AUDIT}" in out
        assert "14 permission(s)" in out

    def test_resolve_unknown_role(self, capsys):
        assert main(["resolve", "NoSuchRole"]) == 0

        captured = capsys.readouterr()
        assert "Unknown role 'NoSuchRole'" in captured.err
        assert "0 permission(s)" in captured.out

    def test_resolve_unknown_role_keeps_overrides(self, capsys):
        main(["resolve", "NoSuchRole", "--override", p.FORM_VIEW])
        assert "1 permission(s)" in capsys.readouterr().out

    def test_resolve_warns_on_uncatalogued_token(self, capsys):
        main(["resolve", "Viewer", "--override", "client.fly"])

        captured = capsys.readouterr()
        assert "Not in catalog: client.fly" in captured.err
        assert "10 permission(s)" in captured.out

    def test_roles(self, capsys):
        assert main(["roles"]) == 0

        out = capsys.readouterr().out
        assert f"{len(ROLE_DEFINITIONS)} role(s)" in out
        assert "Data Entry" in out

    def test_templates(self, capsys):
        assert main(["templates"]) == 0

        out = capsys.readouterr().out
        assert "read-only" in out
        assert "full-access" in out

    def test_create_user_rejects_unknown_role(self, capsys, monkeypatch):
        def no_prompt(prompt=""):
            raise AssertionError("password prompt reached")

        monkeypatch.setattr("getpass.getpass", no_prompt)

        code = main([
            "create-user", "--email", "x@careaccess.org", "--name", "X", "--role", "Wizard",
        ])

        assert code == 1
        assert "Unknown role 'Wizard'" in capsys.readouterr().err

    def test_missing_command_exits(self):
        with pytest.raises(SystemExit):
            main([])
