"""
CLI Test Suite.

Argument parsing and the credential/lifecycle command handlers against the
test database.
"""
import pytest
from sqlalchemy import select

from results_pipeline.cli import create_parser, main
from results_pipeline.cli import credential_commands, lifecycle_commands
from results_pipeline.cli.credential_commands import CredentialCommand
from results_pipeline.cli.lifecycle_commands import LifecycleCommand
from results_pipeline.orm import Credential
from results_pipeline.services.lifecycle_service import LifecycleService
from results_pipeline.services.scoring_service import ScoringService, ScoreEntry


class TestParser:

    def test_lifecycle_compute(self):
        args = create_parser().parse_args(["lifecycle", "compute", "--event", "3"])

        assert args.command == "lifecycle"
        assert args.lifecycle_action == "compute"
        assert args.event == 3
        assert args.admin_id == "cli"

    def test_status_has_no_admin_id(self):
        args = create_parser().parse_args(["lifecycle", "status", "-e", "7"])

        assert args.event == 7
        assert not hasattr(args, "admin_id")

    def test_credential_verify(self):
        args = create_parser().parse_args(["credential", "verify", "-i", "CE-2026-0A1B2C3D"])

        assert args.credential_action == "verify"
        assert args.id == "CE-2026-0A1B2C3D"

    def test_event_is_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["lifecycle", "publish"])

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "results-pipeline" in capsys.readouterr().out


@pytest.fixture
def cli_database(session_factory, monkeypatch):
    """Point the command handlers at the test database."""
    async def no_close():
        return None

    for module in (credential_commands, lifecycle_commands):
        monkeypatch.setattr(module, "AsyncSessionLocal", session_factory)
        monkeypatch.setattr(module, "close_db", no_close)
    return session_factory


class TestCredentialCommand:

    @pytest.mark.asyncio
    async def test_verify_exit_codes(self, cli_database, seed, admin, capsys):
        async with cli_database() as db:
            seeded = await seed(db, submission_count=1)
            await ScoringService.submit_scores(
                db,
                seeded.submissions[0].id,
                "judge-1",
                [ScoreEntry(criterion_id=c.id, score=40) for c in seeded.criteria]
            )
            await LifecycleService.lock_and_compute(db, seeded.event.id, admin)
            await LifecycleService.publish(db, seeded.event.id, admin)

            result = await db.execute(select(Credential))
            credential = result.scalar_one()
            credential_id = credential.credential_id

        command = CredentialCommand()
        assert await command._verify(credential_id) == 0
        assert "is authentic" in capsys.readouterr().out

        assert await command._verify("CE-2026-FFFFFFFF") == 2

        async with cli_database() as db:
            result = await db.execute(select(Credential).where(Credential.credential_id == credential_id))
            tampered = result.scalar_one()
            tampered.rank = 2
            await db.commit()

        assert await command._verify(credential_id) == 3
        assert "FAILED verification" in capsys.readouterr().out


class TestLifecycleCommand:

    @pytest.mark.asyncio
    async def test_status_output(self, cli_database, seed, capsys):
        async with cli_database() as db:
            seeded = await seed(db, title="County Robotics")

        args = create_parser().parse_args(["lifecycle", "status", "--event", str(seeded.event.id)])
        await LifecycleCommand()._run(LifecycleCommand()._status, args)

        out = capsys.readouterr().out
        assert "County Robotics" in out
        assert "scoring_open" in out

    @pytest.mark.asyncio
    async def test_compute_uses_cli_operator(self, cli_database, seed, capsys):
        async with cli_database() as db:
            seeded = await seed(db, submission_count=1)
            await ScoringService.submit_scores(
                db,
                seeded.submissions[0].id,
                "judge-1",
                [ScoreEntry(criterion_id=c.id, score=10) for c in seeded.criteria]
            )

        command = LifecycleCommand()
        args = create_parser().parse_args(["lifecycle", "compute", "-e", str(seeded.event.id)])
        await command._run(command._compute, args)

        assert "Computed 1 results" in capsys.readouterr().out
