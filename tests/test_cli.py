"""Tests for the filterfolders CLI.

Uses Click's CliRunner with an in-memory mail host, so no IMAP server is needed.
"""

import pytest
from click.testing import CliRunner

from filterfolders import cli as cli_module
from filterfolders.audit.creation_log import CreationAuditLog
from filterfolders.cli import cli
from filterfolders.rules.parser import parse_rules
from filterfolders.schemas.folders import CreationResults, FailedPath, PathState

# --- Fixtures ---


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def audit_path(tmp_path, monkeypatch):
    path = tmp_path / "audit.jsonl"
    monkeypatch.setattr(cli_module, "AUDIT_LOG_PATH", str(path))
    return path


@pytest.fixture
def use_host(monkeypatch, audit_path):
    """Route every IMAP-backed command to the given fake host."""

    def _use(host):
        monkeypatch.setattr(cli_module, "_open_host", lambda: host)
        return host

    return _use


@pytest.fixture
def rules_file(tmp_path, sample_rules):
    path = tmp_path / "msgFilterRules.dat"
    path.write_text(sample_rules)
    return path


class TestAccountsCommand:
    def test_lists_account(self, runner, use_host, make_host):
        use_host(make_host(["Archive"]))
        result = runner.invoke(cli, ["accounts"])
        assert result.exit_code == 0
        assert "Fake (id=acc1): me@example.com" in result.output
        assert "Folders: INBOX, Archive" in result.output


class TestAnalyzeCommand:
    def test_reports_missing(self, runner, use_host, make_host, rules_file):
        use_host(make_host(["Archive/org/zeta/zed"]))
        result = runner.invoke(cli, ["analyze", str(rules_file), "--account", "acc1"])
        assert result.exit_code == 0
        assert "Rules: 3" in result.output
        assert "Missing: 2" in result.output
        assert "  Archive/com/example/bob" in result.output

    def test_all_present(self, runner, use_host, make_host, rules_file):
        use_host(
            make_host(["Archive/org/zeta/zed", "Archive/com/example/bob", "INBOX/Clients A"])
        )
        result = runner.invoke(cli, ["analyze", str(rules_file), "--account", "acc1"])
        assert "All folders exist." in result.output


class TestCreateCommand:
    def test_creates_paths(self, runner, use_host, make_host, audit_path):
        host = use_host(make_host(["INBOX/Done"]))
        result = runner.invoke(
            cli, ["create", "--account", "acc1", "--path", "/New/Sub", "--path", "INBOX/Done"]
        )
        assert result.exit_code == 0, result.output
        assert "[1/2] New/Sub" in result.output
        assert "Done. Created: 1, Already existed: 1, Failed: 0" in result.output
        assert host.exists("INBOX/New/Sub")
        assert len(CreationAuditLog(audit_path).read_entries()) == 1

    def test_from_rules(self, runner, use_host, make_host, rules_file):
        host = use_host(make_host(["INBOX/Clients A"]))
        result = runner.invoke(cli, ["create", "--account", "acc1", "--rules", str(rules_file)])
        assert result.exit_code == 0, result.output
        assert "Creating 2 folder path(s)" in result.output
        assert host.exists("INBOX/Archive/com/example/bob")

    def test_nothing_to_create(self, runner, use_host, make_host, rules_file):
        use_host(
            make_host(["Archive/org/zeta/zed", "Archive/com/example/bob", "INBOX/Clients A"])
        )
        result = runner.invoke(cli, ["create", "--account", "acc1", "--rules", str(rules_file)])
        assert result.exit_code == 0
        assert "Nothing to create." in result.output

    def test_failure_exit_code(self, runner, use_host, make_host):
        use_host(make_host(fail_on={"INBOX/Bad": "denied"}))
        result = runner.invoke(cli, ["create", "--account", "acc1", "--path", "Bad"])
        assert result.exit_code == 1
        assert "Failed: 1" in result.output

    def test_unknown_account(self, runner, use_host, make_host):
        use_host(make_host())
        result = runner.invoke(cli, ["create", "--account", "other", "--path", "X"])
        assert result.exit_code == 1
        assert "No account found: other" in result.output

    def test_requires_input(self, runner, use_host, make_host):
        use_host(make_host())
        result = runner.invoke(cli, ["create"])
        assert result.exit_code == 1
        assert "--rules" in result.output


class TestDiscoverCommand:
    def test_lists_new_senders(self, runner, use_host, make_host, rules_file):
        use_host(make_host(messages={"INBOX": ["Bob <bob@example.com>", "new@person.io"]}))
        result = runner.invoke(
            cli, ["discover", "INBOX", "--rules", str(rules_file), "--account", "acc1"]
        )
        assert result.exit_code == 0, result.output
        assert "Found 1 new sender(s) (2 scanned)." in result.output
        assert "Root: Archive" in result.output
        assert "Archive/io/person/new" in result.output

    def test_generate_without_rules(self, runner, use_host, make_host):
        use_host(make_host(messages={"INBOX": ["a@b.com"]}))
        result = runner.invoke(cli, ["discover", "INBOX", "--account", "acc1", "-g"])
        assert result.exit_code == 0, result.output
        assert 'actionValue="imap://me@example.com/com/b/a"' in result.output

    def test_output_file_appends_and_sorts(self, runner, use_host, make_host, rules_file, tmp_path):
        use_host(make_host(messages={"INBOX": ["aa@aardvark.com"]}))
        out = tmp_path / "out.dat"
        result = runner.invoke(
            cli,
            ["discover", "INBOX", "--rules", str(rules_file), "--account", "acc1", "-o", str(out)],
        )
        assert result.exit_code == 0, result.output
        paths = [r.path for r in parse_rules(out.read_text())]
        assert paths[0] == "Archive/com/aardvark/aa"
        assert len(paths) == 4

    def test_create_folders(self, runner, use_host, make_host):
        host = use_host(make_host(messages={"INBOX": ["a@b.com"]}))
        result = runner.invoke(
            cli, ["discover", "INBOX", "--account", "acc1", "--root", "People", "--create-folders"]
        )
        assert result.exit_code == 0, result.output
        assert host.exists("INBOX/People/com/b/a")
        assert "Folders done. Succeeded: 1, Failed: 0" in result.output


class TestOfflineCommands:
    def test_infer_root(self, runner, rules_file):
        result = runner.invoke(cli, ["infer-root", str(rules_file)])
        assert result.exit_code == 0
        assert result.output.strip() == "Archive"

    def test_infer_root_none(self, runner, tmp_path):
        path = tmp_path / "rules.dat"
        path.write_text('version="9"\n')
        result = runner.invoke(cli, ["infer-root", str(path)])
        assert result.exit_code == 1
        assert "No root found" in result.output

    def test_sort_in_place(self, runner, rules_file):
        result = runner.invoke(cli, ["sort", str(rules_file), "-i"])
        assert result.exit_code == 0
        paths = [r.path for r in parse_rules(rules_file.read_text())]
        assert paths == ["Archive/com/example/bob", "Archive/org/zeta/zed", "INBOX/Clients A"]

    def test_sort_to_stdout(self, runner, rules_file):
        result = runner.invoke(cli, ["sort", str(rules_file)])
        assert result.exit_code == 0
        assert result.output.startswith('version="9"')

    def test_set_types(self, runner, rules_file, tmp_path):
        out = tmp_path / "typed.dat"
        result = runner.invoke(
            cli, ["set-types", str(rules_file), "--manual", "--no-new-mail", "-o", str(out)]
        )
        assert result.exit_code == 0
        assert {r.type_mask for r in parse_rules(out.read_text())} == {16}


class TestHistoryCommand:
    def test_empty(self, runner, audit_path):
        result = runner.invoke(cli, ["history"])
        assert result.exit_code == 0
        assert "No creation batches recorded." in result.output

    def test_shows_batches(self, runner, audit_path):
        results = CreationResults(
            created=["A"],
            failed=[FailedPath(path="B", error="denied")],
            states={"A": PathState.CREATED, "B": PathState.FAILED},
        )
        CreationAuditLog(audit_path).log_batch("acc1", requested=2, results=results)

        result = runner.invoke(cli, ["history"])

        assert result.exit_code == 0
        assert "acc1: requested=2 created=1 existing=0 failed=1" in result.output
        assert "failed B: denied" in result.output
