"""Tests for the Repository pattern."""

from __future__ import annotations

import json

import pytest

from quarry.db.models import (
    Area,
    Chat,
    Chunk,
    Document,
    Message,
    ProcessingStatus,
    Role,
    SourceCitation,
    serialize_sources,
)
from quarry.db.vectors import serialize_vector


def _area(repo, name="Handbooks"):
    return repo.add_area(Area(name=name, description="desc"))


def _document(repo, area_id, name="guide.txt", status=ProcessingStatus.UPLOADED):
    return repo.add_document(
        Document(
            area_id=area_id,
            file_name=name,
            file_path=f"/uploads/{name}",
            file_size=10,
            processing_status=status,
        )
    )


def _chunks(document_id, n=2):
    return [
        Chunk(
            document_id=document_id,
            chunk_index=i,
            content=f"chunk {i}",
            embedding=serialize_vector([1.0, float(i)]),
            metadata=json.dumps({"overlap": 0}),
        )
        for i in range(n)
    ]


# ------------------------------------------------------------------
# Areas
# ------------------------------------------------------------------

def test_add_and_get_area(repo):
    area_id = _area(repo)
    area = repo.get_area(area_id)
    assert area is not None
    assert area.name == "Handbooks"
    assert area.document_count == 0
    assert area.chat_count == 0
    assert area.created_at is not None


def test_get_area_not_found(repo):
    assert repo.get_area(999) is None


def test_list_areas_oldest_first(repo):
    _area(repo, "a")
    _area(repo, "b")
    assert [a.name for a in repo.list_areas()] == ["a", "b"]


def test_update_area(repo):
    area_id = _area(repo)
    assert repo.update_area(area_id, "Manuals", None) is True
    area = repo.get_area(area_id)
    assert area.name == "Manuals"
    assert area.description is None


def test_update_missing_area_returns_false(repo):
    assert repo.update_area(42, "x", None) is False


def test_delete_area_cascades(repo):
    area_id = _area(repo)
    doc_id = _document(repo, area_id)
    repo.complete_document(doc_id, _chunks(doc_id))
    chat_id = repo.add_chat(Chat(area_id=area_id))
    repo.add_message(Message(chat_id=chat_id, role=Role.USER, content="hi"))

    assert repo.delete_area(area_id) is True
    assert repo.get_document(doc_id) is None
    assert len(repo.list_chunks(doc_id)) == 0
    assert repo.get_chat(chat_id) is None
    assert repo.list_messages(chat_id) == []


# ------------------------------------------------------------------
# Documents + counters
# ------------------------------------------------------------------

def test_add_document_recounts_area(repo):
    area_id = _area(repo)
    _document(repo, area_id, "a.txt")
    _document(repo, area_id, "b.txt")
    assert repo.get_area(area_id).document_count == 2


def test_delete_document_recounts_area(repo):
    area_id = _area(repo)
    doc_id = _document(repo, area_id)
    _document(repo, area_id, "other.md")
    deleted = repo.delete_document(doc_id)
    assert deleted is not None
    assert deleted.file_name == "guide.txt"
    assert repo.get_area(area_id).document_count == 1


def test_delete_missing_document_returns_none(repo):
    assert repo.delete_document(123) is None


def test_document_file_type(repo):
    area_id = _area(repo)
    doc = repo.get_document(_document(repo, area_id, "Report.PDF"))
    assert doc.file_type == "pdf"


def test_mark_processing_is_conditional(repo):
    area_id = _area(repo)
    doc_id = _document(repo, area_id)
    assert repo.mark_processing(doc_id) is True
    assert repo.get_document(doc_id).processing_status is ProcessingStatus.PROCESSING
    assert repo.mark_processing(doc_id) is False


def test_mark_processing_missing_document(repo):
    assert repo.mark_processing(77) is False


def test_mark_processing_clears_previous_error(repo):
    area_id = _area(repo)
    doc_id = _document(repo, area_id)
    repo.fail_document(doc_id, "boom")
    repo.mark_processing(doc_id)
    assert repo.get_document(doc_id).error_message is None


def test_complete_document_stores_chunks_and_status(repo):
    area_id = _area(repo)
    doc_id = _document(repo, area_id)
    repo.mark_processing(doc_id)
    repo.complete_document(doc_id, _chunks(doc_id, 3))

    doc = repo.get_document(doc_id)
    assert doc.processing_status is ProcessingStatus.COMPLETED
    assert doc.chunk_count == 3
    assert [c.chunk_index for c in repo.list_chunks(doc_id)] == [0, 1, 2]


def test_complete_document_replaces_previous_chunks(repo):
    area_id = _area(repo)
    doc_id = _document(repo, area_id)
    repo.complete_document(doc_id, _chunks(doc_id, 3))
    repo.complete_document(doc_id, _chunks(doc_id, 2))
    assert len(repo.list_chunks(doc_id)) == 2
    assert repo.get_document(doc_id).chunk_count == 2


def test_fail_document_records_error(repo):
    area_id = _area(repo)
    doc_id = _document(repo, area_id)
    repo.fail_document(doc_id, "extraction failed")
    doc = repo.get_document(doc_id)
    assert doc.processing_status is ProcessingStatus.FAILED
    assert doc.error_message == "extraction failed"


def test_list_completed_chunks_filters_status_and_area(repo):
    area_id = _area(repo, "a")
    other_area = _area(repo, "b")
    done = _document(repo, area_id, "done.txt")
    failed = _document(repo, area_id, "failed.txt")
    elsewhere = _document(repo, other_area, "elsewhere.txt")
    repo.complete_document(done, _chunks(done))
    repo.complete_document(elsewhere, _chunks(elsewhere))
    repo.complete_document(failed, _chunks(failed))
    repo.fail_document(failed, "late failure")

    records = repo.list_completed_chunks(area_id)
    assert {r.document_name for r in records} == {"done.txt"}
    assert [r.chunk_index for r in records] == [0, 1]


def test_list_completed_chunks_in_insertion_order(repo):
    area_id = _area(repo)
    first = _document(repo, area_id, "first.txt")
    second = _document(repo, area_id, "second.txt")
    repo.complete_document(second, _chunks(second))
    repo.complete_document(first, _chunks(first))
    names = [r.document_name for r in repo.list_completed_chunks(area_id)]
    assert names == ["second.txt", "second.txt", "first.txt", "first.txt"]


# ------------------------------------------------------------------
# Chats + messages
# ------------------------------------------------------------------

def test_add_chat_defaults_and_recount(repo):
    area_id = _area(repo)
    chat_id = repo.add_chat(Chat(area_id=area_id))
    chat = repo.get_chat(chat_id)
    assert chat.name == "New Chat"
    assert chat.message_count == 0
    assert chat.last_message_at is None
    assert repo.get_area(area_id).chat_count == 1


def test_delete_chat_recounts(repo):
    area_id = _area(repo)
    chat_id = repo.add_chat(Chat(area_id=area_id))
    assert repo.delete_chat(chat_id).id == chat_id
    assert repo.get_area(area_id).chat_count == 0
    assert repo.delete_chat(chat_id) is None


def test_rename_chat(repo):
    area_id = _area(repo)
    chat_id = repo.add_chat(Chat(area_id=area_id))
    assert repo.rename_chat(chat_id, "Onboarding") is True
    assert repo.get_chat(chat_id).name == "Onboarding"
    assert repo.rename_chat(999, "x") is False


def test_user_message_does_not_touch_chat_counters(repo):
    area_id = _area(repo)
    chat_id = repo.add_chat(Chat(area_id=area_id))
    msg = repo.add_message(Message(chat_id=chat_id, role=Role.USER, content="question"))
    assert msg.id is not None
    assert msg.created_at is not None
    chat = repo.get_chat(chat_id)
    assert chat.message_count == 0
    assert chat.last_message_at is None


def test_assistant_message_bumps_chat(repo):
    area_id = _area(repo)
    chat_id = repo.add_chat(Chat(area_id=area_id))
    sources = serialize_sources([SourceCitation("guide.txt", 2, 0.91)])
    msg = repo.add_message(
        Message(
            chat_id=chat_id,
            role=Role.ASSISTANT,
            content="answer",
            content_html="<p>answer</p>",
            sources=sources,
        )
    )
    chat = repo.get_chat(chat_id)
    assert chat.message_count == 1
    assert chat.last_message_at == msg.created_at
    assert msg.sources_list == [
        {"documentName": "guide.txt", "chunkIndex": 2, "similarity": 0.91}
    ]


def test_list_messages_in_creation_order(repo):
    area_id = _area(repo)
    chat_id = repo.add_chat(Chat(area_id=area_id))
    for i, role in enumerate([Role.USER, Role.ASSISTANT, Role.USER]):
        repo.add_message(Message(chat_id=chat_id, role=role, content=f"m{i}"))
    messages = repo.list_messages(chat_id)
    assert [m.content for m in messages] == ["m0", "m1", "m2"]
    assert [m.role for m in messages] == [Role.USER, Role.ASSISTANT, Role.USER]


def test_list_chats_most_recent_first(repo, tmp_db):
    area_id = _area(repo)
    quiet = repo.add_chat(Chat(area_id=area_id, name="quiet"))
    older = repo.add_chat(Chat(area_id=area_id, name="older"))
    newer = repo.add_chat(Chat(area_id=area_id, name="newer"))
    tmp_db.execute(
        "UPDATE chats SET last_message_at = '2024-01-01 10:00:00' WHERE id = ?", (older,)
    )
    tmp_db.execute(
        "UPDATE chats SET last_message_at = '2024-02-01 10:00:00' WHERE id = ?", (newer,)
    )
    tmp_db.commit()
    assert [c.id for c in repo.list_chats(area_id)] == [newer, older, quiet]


def test_add_message_rejects_unknown_role(repo):
    area_id = _area(repo)
    chat_id = repo.add_chat(Chat(area_id=area_id))
    with pytest.raises(ValueError):
        repo.add_message(Message(chat_id=chat_id, role="system", content="x"))
