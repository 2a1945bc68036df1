"""Tests for conversation lifecycle, archival and unread counts."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from brewhub_dm.db.time import as_utc
from brewhub_dm.models import Conversation, Participant
from brewhub_dm.services.access import AccessControl
from brewhub_dm.services.conversations import ConversationService, build_pair_key
from brewhub_dm.services.errors import NotFoundError, RateLimitedError
from brewhub_dm.services.messages import MessageService


def test_pair_key_is_order_independent():
    assert build_pair_key("b-user", "a-user") == "a-user:b-user"
    assert build_pair_key("a-user", "b-user") == "a-user:b-user"
    assert build_pair_key("same", "same") == "same"


def test_get_or_create_creates_once_per_pair(db_session, alice, bob):
    service = ConversationService(db_session)
    first, created = service.get_or_create(alice.id, bob.id)
    second, created_again = service.get_or_create(bob.id, alice.id)

    assert created
    assert not created_again
    assert first.id == second.id
    assert db_session.execute(select(func.count(Conversation.id))).scalar() == 1
    members = db_session.execute(
        select(Participant.user_id).where(Participant.conversation_id == first.id)
    ).scalars().all()
    assert sorted(members) == sorted([alice.id, bob.id])


def test_concurrent_creation_reuses_existing_row(db_session, alice, bob, mocker):
    service = ConversationService(db_session)
    existing, _ = service.get_or_create(alice.id, bob.id)

    # Simulate losing the race: the pre-check misses, the insert collides.
    real_find = service.find_by_pair
    calls = {"count": 0}

    def _find(user_a, user_b):
        calls["count"] += 1
        if calls["count"] == 1:
            return None
        return real_find(user_a, user_b)

    mocker.patch.object(service, "find_by_pair", side_effect=_find)
    conversation, created = service.get_or_create(bob.id, alice.id)

    assert not created
    assert conversation.id == existing.id
    assert db_session.execute(select(func.count(Conversation.id))).scalar() == 1


def test_reuse_unarchives_initiator_and_restores_counterpart(db_session, alice, bob):
    service = ConversationService(db_session)
    conversation, _ = service.get_or_create(alice.id, bob.id)
    service.archive(alice.id, conversation.id, True)
    db_session.delete(db_session.get(Participant, (conversation.id, bob.id)))
    db_session.commit()

    service.get_or_create(alice.id, bob.id)

    assert db_session.get(Participant, (conversation.id, alice.id)).archived_at is None
    assert db_session.get(Participant, (conversation.id, bob.id)) is not None


def test_daily_creation_quota(db_session, alice, make_profile, mocker):
    mocker.patch("brewhub_dm.services.conversations.settings.dm_conversation_daily_limit", 1)
    service = ConversationService(db_session)
    service.get_or_create(alice.id, make_profile().id)

    with pytest.raises(RateLimitedError) as exc_info:
        service.get_or_create(alice.id, make_profile().id)
    assert exc_info.value.detail == "Daily conversation start limit reached."


def test_archive_is_per_participant(db_session, alice, bob):
    service = ConversationService(db_session)
    conversation, _ = service.get_or_create(alice.id, bob.id)

    service.archive(alice.id, conversation.id, True)
    assert db_session.get(Participant, (conversation.id, alice.id)).archived_at is not None
    assert db_session.get(Participant, (conversation.id, bob.id)).archived_at is None

    service.archive(alice.id, conversation.id, False)
    assert db_session.get(Participant, (conversation.id, alice.id)).archived_at is None


def test_archive_requires_membership(db_session, alice, bob, make_profile):
    service = ConversationService(db_session)
    conversation, _ = service.get_or_create(alice.id, bob.id)
    with pytest.raises(NotFoundError):
        service.archive(make_profile().id, conversation.id)


def test_unread_scenario(db_session, alice, bob):
    conversations = ConversationService(db_session)
    messages = MessageService(db_session)

    assert AccessControl(db_session).can_initiate(alice.id, bob.id)
    conversation, created = conversations.get_or_create(alice.id, bob.id)
    assert created

    messages.send_message(alice.id, conversation.id, "hello")
    assert conversations.unread_count(bob.id) == 1
    assert conversations.unread_count(alice.id) == 0

    conversations.mark_read(bob.id, conversation.id)
    assert conversations.unread_count(bob.id) == 0

    messages.send_message(alice.id, conversation.id, "are you there?")
    assert conversations.unread_count(bob.id) == 1


def test_unread_without_read_receipt_counts_all_counterpart_messages(db_session, alice, bob):
    conversation, _ = ConversationService(db_session).get_or_create(alice.id, bob.id)
    messages = MessageService(db_session)
    for body in ("one", "two", "three"):
        messages.send_message(alice.id, conversation.id, body)
    messages.send_message(bob.id, conversation.id, "reply")

    # bob's own send stamped his read receipt
    assert ConversationService(db_session).unread_count(alice.id) == 1
    assert ConversationService(db_session).unread_count(bob.id) == 0


def test_archived_conversations_are_excluded_from_unread(db_session, alice, bob):
    service = ConversationService(db_session)
    conversation, _ = service.get_or_create(alice.id, bob.id)
    MessageService(db_session).send_message(alice.id, conversation.id, "hi")
    service.archive(bob.id, conversation.id, True)
    assert service.unread_count(bob.id) == 0


def test_refresh_latest_tracks_newest_message(db_session, alice, bob):
    service = ConversationService(db_session)
    conversation, _ = service.get_or_create(alice.id, bob.id)
    messages = MessageService(db_session)
    first = messages.send_message(alice.id, conversation.id, "first")
    second = messages.send_message(bob.id, conversation.id, "second")

    db_session.refresh(conversation)
    assert conversation.last_message_id == second.id

    second.created_at = as_utc(first.created_at) - timedelta(seconds=1)
    db_session.commit()
    service.refresh_latest(conversation.id)
    db_session.refresh(conversation)
    assert conversation.last_message_id == first.id

    # idempotent
    service.refresh_latest(conversation.id)
    db_session.refresh(conversation)
    assert conversation.last_message_id == first.id


def test_list_conversations_views_and_search(db_session, alice, bob, make_profile):
    service = ConversationService(db_session)
    carol = make_profile(display_name="Carol Stout")
    with_bob, _ = service.get_or_create(alice.id, bob.id)
    with_carol, _ = service.get_or_create(alice.id, carol.id)
    MessageService(db_session).send_message(bob.id, with_bob.id, "fresh hops arrived")
    service.archive(alice.id, with_carol.id, True)

    active = service.list_conversations(alice.id)
    assert [item.id for item in active.conversations] == [with_bob.id]
    summary = active.conversations[0]
    assert summary.counterpart.id == bob.id
    assert summary.last_message.body_text == "fresh hops arrived"
    assert summary.unread_count == 1
    assert summary.unread_hint
    assert active.unread_count == 1

    archived = service.list_conversations(alice.id, view="archived")
    assert [item.id for item in archived.conversations] == [with_carol.id]

    service.archive(alice.id, with_carol.id, False)
    assert [c.id for c in service.list_conversations(alice.id, search="stout").conversations] == [with_carol.id]
    assert [c.id for c in service.list_conversations(alice.id, search="HOPS").conversations] == [with_bob.id]


def test_list_conversations_paginates_by_cursor(db_session, alice, make_profile):
    service = ConversationService(db_session)
    ids = []
    for _ in range(3):
        conversation, _ = service.get_or_create(alice.id, make_profile().id)
        ids.append(conversation.id)

    page = service.list_conversations(alice.id, limit=2)
    assert len(page.conversations) == 2
    assert page.has_more
    assert page.next_cursor is not None

    rest = service.list_conversations(alice.id, limit=2, cursor=page.next_cursor)
    assert not rest.has_more
    seen = [c.id for c in page.conversations] + [c.id for c in rest.conversations]
    assert sorted(seen) == sorted(ids)
