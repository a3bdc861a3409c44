"""
CLI Test Suite

Parser wiring and a few end-to-end invocations against a throwaway database.
"""
import json

import pytest

from botarena.cli import main, create_parser
from botarena.cli.competition_commands import CompetitionCommand
from botarena.cli.round_commands import RoundCommand


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"


# =============================================================================
# CLI Parser Tests
# =============================================================================

class TestCLIParser:
    """Test CLI argument parsing."""

    def test_round_start_parsing(self):
        parser = create_parser()
        args = parser.parse_args(["round", "start", "--competition", "spring"])

        assert args.command == "round"
        assert args.round_action == "start"
        assert args.competition == "spring"

    def test_round_wait_timeout(self):
        parser = create_parser()
        args = parser.parse_args(["round", "wait", "-c", "spring", "--timeout", "2.5"])

        assert args.timeout == 2.5

    def test_round_report_parsing(self):
        parser = create_parser()
        args = parser.parse_args(["round", "report", "--handle", "h1", "--outcome-file", "out.json"])

        assert args.handle == "h1"
        assert args.outcome_file == "out.json"

    def test_competition_configure_parsing(self):
        parser = create_parser()
        args = parser.parse_args(["competition", "configure", "-c", "spring", "--final-round", "5"])

        assert args.competition_action == "configure"
        assert args.final_round == 5

    def test_competition_withdraw_parsing(self):
        parser = create_parser()
        args = parser.parse_args(["competition", "withdraw", "--team", "t1", "--reason", "left"])

        assert args.team == "t1"
        assert args.reason == "left"

    def test_global_flags(self):
        parser = create_parser()
        args = parser.parse_args(
            ["--dry-run", "--database-url", "sqlite+aiosqlite://", "--log-level", "DEBUG", "db", "init"]
        )

        assert args.dry_run is True
        assert args.database_url == "sqlite+aiosqlite://"
        assert args.log_level == "DEBUG"

    def test_competition_required(self):
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["round", "pair"])


# =============================================================================
# Command Execution Tests
# =============================================================================

class TestCLIExecution:

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_db_init(self, database_url, capsys):
        assert main(["--database-url", database_url, "db", "init"]) == 0
        assert "Tables created" in capsys.readouterr().out

    def test_db_init_dry_run(self, capsys):
        assert main(["--dry-run", "db", "init"]) == 0
        assert "DRY RUN" in capsys.readouterr().out

    def test_round_dry_run(self, capsys):
        assert main(["--dry-run", "round", "start", "-c", "spring"]) == 0
        assert "DRY RUN" in capsys.readouterr().out

    def test_standings_for_unknown_competition(self, database_url, capsys):
        main(["--database-url", database_url, "db", "init"])

        assert main(["--database-url", database_url, "competition", "standings", "-c", "missing"]) == 1
        assert "COMPETITION_NOT_FOUND" in capsys.readouterr().out

    def test_report_with_unknown_handle(self, database_url, tmp_path, capsys):
        main(["--database-url", database_url, "db", "init"])
        outcome_file = tmp_path / "outcome.json"
        outcome_file.write_text(json.dumps({"winner_id": "a", "teams": []}))

        code = main([
            "--database-url", database_url,
            "round", "report", "--handle", "nope", "--outcome-file", str(outcome_file),
        ])

        assert code == 1
        assert "UNKNOWN_FIXTURE" in capsys.readouterr().out

    def test_withdraw_unknown_team(self, database_url, capsys):
        main(["--database-url", database_url, "db", "init"])

        assert main(["--database-url", database_url, "competition", "withdraw", "-t", "ghost"]) == 1
        assert "TEAM_NOT_FOUND" in capsys.readouterr().out

    def test_recover_on_empty_database(self, database_url, capsys):
        main(["--database-url", database_url, "db", "init"])

        assert main(["--database-url", database_url, "round", "recover"]) == 0
        assert "Nothing to recover" in capsys.readouterr().out


class TestCommandHandlers:

    def test_unknown_round_action(self, capsys):
        args = create_parser().parse_args(["round"])
        assert RoundCommand().execute(args) == 1

    def test_unknown_competition_action(self, capsys):
        args = create_parser().parse_args(["competition"])
        assert CompetitionCommand().execute(args) == 1


class TestShowCompetition:

    def test_show_unknown_competition(self, database_url, capsys):
        main(["--database-url", database_url, "db", "init"])

        assert main(["--database-url", database_url, "competition", "show", "-c", "missing"]) == 1
        assert "COMPETITION_NOT_FOUND" in capsys.readouterr().out
