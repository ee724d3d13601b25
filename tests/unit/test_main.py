"""Unit tests for the command line entry point."""

from datetime import date
from unittest.mock import AsyncMock, Mock

import pytest

from property_minutes.core.models import (
    FolderListing,
    FolderNode,
    Location,
    MinutesResult,
    PublishedDocument,
)
from property_minutes.core.orchestrator import WorkflowResult, WorkflowStatus
from property_minutes.main import parse_arguments, run_command
from property_minutes.utils.exceptions import NoMailFound


@pytest.fixture
def app(meeting_request):
    app = Mock()
    app.default_request.return_value = meeting_request
    app.check_auth = AsyncMock(return_value=True)
    app.browse_folders = AsyncMock(
        return_value=FolderListing(
            children=[FolderNode("f2", "2024", "f1")],
            breadcrumb=[FolderNode("f1", "定例会", None)],
        )
    )
    app.execute_generation = AsyncMock()
    return app


class TestArguments:
    """Test suite for argument parsing."""

    def test_generate_arguments(self):
        args = parse_arguments(
            ["generate", "--date", "2024-05-10", "--location", "nagano", "--participants", "president,wife"]
        )

        assert args.command == "generate"
        assert args.date == date(2024, 5, 10)
        assert args.location == "nagano"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_arguments([])


class TestRunCommand:
    """Test suite for run_command."""

    @pytest.mark.asyncio
    async def test_generate(self, app, meeting_request, capsys):
        document = PublishedDocument("doc-1", "https://docs.google.com/document/d/doc-1/edit", "title")
        minutes = MinutesResult(document=document, mail_count=3)
        minutes.add_warning("MoveRenameFailed", "forbidden")
        app.execute_generation.return_value = WorkflowResult(
            status=WorkflowStatus.COMPLETED, result=minutes
        )
        args = parse_arguments(
            ["generate", "--date", "2024-05-10", "--location", "online", "--participants", "wife, president", "--start", "10:00"]
        )

        assert await run_command(args, app) == 0

        app.default_request.assert_called_once_with(date(2024, 5, 10), ["wife", "president"])
        assert meeting_request.location is Location.ONLINE
        assert meeting_request.start_time == "10:00"
        output = capsys.readouterr().out
        assert "https://docs.google.com/document/d/doc-1/edit" in output
        assert "Warning: MoveRenameFailed: forbidden" in output

    @pytest.mark.asyncio
    async def test_generate_failure(self, app, capsys):
        app.execute_generation.return_value = WorkflowResult.from_error(NoMailFound("no mail"))
        args = parse_arguments(["generate", "--date", "2024-05-10"])

        assert await run_command(args, app) == 1
        assert "NoMailFound: no mail" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_folders(self, app, capsys):
        args = parse_arguments(["folders", "--parent", "f1"])

        assert await run_command(args, app) == 0

        app.browse_folders.assert_awaited_once_with("f1")
        output = capsys.readouterr().out
        assert "定例会" in output
        assert "2024\tf2" in output

    @pytest.mark.asyncio
    async def test_auth_status(self, app):
        assert await run_command(parse_arguments(["auth-status"]), app) == 0

        app.check_auth.return_value = False
        assert await run_command(parse_arguments(["auth-status"]), app) == 1
