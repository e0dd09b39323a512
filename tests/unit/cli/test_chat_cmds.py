"""Tests for quarry chat commands."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from quarry.cli.main import app
from quarry.db.models import Area, Chat, Message, Role, SourceCitation, serialize_sources

runner = CliRunner()


@pytest.fixture
def area_id(project_repo):
    return project_repo.add_area(Area(name="Handbooks"))


def test_chat_create_default_name(project, project_repo, area_id):
    result = runner.invoke(app, ["chat", "create", str(area_id)])

    assert result.exit_code == 0, result.output
    assert "Created chat New Chat (id 1)" in result.output
    assert project_repo.get_chat(1).name == "New Chat"
    assert project_repo.get_area(area_id).chat_count == 1


def test_chat_create_named(project, project_repo, area_id):
    result = runner.invoke(app, ["chat", "create", str(area_id), "--name", "  Onboarding  "])

    assert result.exit_code == 0, result.output
    assert project_repo.get_chat(1).name == "Onboarding"


def test_chat_create_in_missing_area(project):
    result = runner.invoke(app, ["chat", "create", "3"])
    assert result.exit_code == 1
    assert "Area 3 not found" in result.output


def test_chat_list(project, project_repo, area_id):
    project_repo.add_chat(Chat(area_id=area_id, name="Payroll"))

    result = runner.invoke(app, ["chat", "list", str(area_id)])

    assert result.exit_code == 0, result.output
    assert "Payroll" in result.output


def test_chat_list_empty(project, area_id):
    result = runner.invoke(app, ["chat", "list", str(area_id)])
    assert result.exit_code == 0
    assert "No chats" in result.output


def test_chat_rename(project, project_repo, area_id):
    chat_id = project_repo.add_chat(Chat(area_id=area_id))

    result = runner.invoke(app, ["chat", "rename", str(chat_id), "Benefits"])

    assert result.exit_code == 0, result.output
    assert project_repo.get_chat(chat_id).name == "Benefits"


def test_chat_rename_missing(project):
    result = runner.invoke(app, ["chat", "rename", "8", "x"])
    assert result.exit_code == 1
    assert "Chat 8 not found" in result.output


def test_chat_delete(project, project_repo, area_id):
    chat_id = project_repo.add_chat(Chat(area_id=area_id, name="Old"))
    project_repo.add_message(Message(chat_id=chat_id, role=Role.USER, content="hi"))

    result = runner.invoke(app, ["chat", "delete", str(chat_id), "--yes"])

    assert result.exit_code == 0, result.output
    assert project_repo.get_chat(chat_id) is None
    assert project_repo.list_messages(chat_id) == []
    assert project_repo.get_area(area_id).chat_count == 0


def test_chat_history_empty(project, project_repo, area_id):
    chat_id = project_repo.add_chat(Chat(area_id=area_id, name="Quiet"))

    result = runner.invoke(app, ["chat", "history", str(chat_id)])

    assert result.exit_code == 0, result.output
    assert "No messages yet" in result.output


def test_chat_history_shows_messages_and_sources(project, project_repo, area_id):
    chat_id = project_repo.add_chat(Chat(area_id=area_id))
    project_repo.add_message(Message(chat_id=chat_id, role=Role.USER, content="How long?"))
    project_repo.add_message(
        Message(
            chat_id=chat_id,
            role=Role.ASSISTANT,
            content="Fourteen days.",
            content_html="<p>Fourteen days.</p>",
            sources=serialize_sources([SourceCitation("policy.pdf", 3, 0.876)]),
        )
    )

    result = runner.invoke(app, ["chat", "history", str(chat_id)])

    assert result.exit_code == 0, result.output
    output = result.output
    assert output.index("How long?") < output.index("Fourteen days.")
    assert "policy.pdf #3 (0.88)" in output
