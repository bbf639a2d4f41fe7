"""Tests for entity dispatch."""

from dataclasses import dataclass
from typing import Any, Dict, List

import pytest

from versia_federation import (
    EntityKind,
    HandlerTable,
    MissingTypeError,
    RequestParser,
    parse_body,
)


class ValidationError(Exception):
    pass


@dataclass(frozen=True)
class Entity:
    kind: EntityKind
    data: Dict[str, Any]


class FakeValidator:
    """Accepts any body whose `content` is absent or a string."""

    def __init__(self):
        self.calls: List[EntityKind] = []

    def validate(self, kind, data):
        self.calls.append(kind)
        if not isinstance(data.get("content", ""), str):
            raise ValidationError(f"Invalid {kind.value}: content must be a string")
        return Entity(kind=kind, data=dict(data))


class AsyncValidator(FakeValidator):
    async def validate(self, kind, data):
        return super().validate(kind, data)


NOTE = {
    "id": "9a8928b6-2526-4979-aab1-ef2f88cd5700",
    "type": "Note",
    "created_at": "2024-04-09T01:38:51.743Z",
    "uri": "https://example.com/notes/9a8928b6-2526-4979-aab1-ef2f88cd5700",
    "author": "https://example.com/users/f8b0d4b4-d354-4798-bbc5-c2ba8acabfe3",
    "content": "Hello, world!",
}


class Recorder:
    def __init__(self, result=None):
        self.calls = []
        self.result = result

    def __call__(self, entity):
        self.calls.append(entity)
        return self.result


async def test_note_handler_called_once_with_validated_entity():
    validator = FakeValidator()
    note = Recorder(result="handled")
    follow = Recorder()
    unknown = Recorder()

    result = await parse_body(NOTE, validator, HandlerTable(note=note, follow=follow, unknown=unknown))

    assert result == "handled"
    assert validator.calls == [EntityKind.NOTE]
    assert note.calls == [Entity(kind=EntityKind.NOTE, data=NOTE)]
    assert follow.calls == []
    assert unknown.calls == []


async def test_invalid_entity_rejects_before_handler_runs():
    note = Recorder()
    bad_note = dict(NOTE, content=123)

    with pytest.raises(ValidationError, match="content must be a string"):
        await parse_body(bad_note, FakeValidator(), HandlerTable(note=note))

    assert note.calls == []


def test_missing_type_raises_immediately():
    validator = FakeValidator()

    with pytest.raises(MissingTypeError, match="Missing type field"):
        parse_body({"content": "no type"}, validator, HandlerTable())

    with pytest.raises(MissingTypeError):
        RequestParser({"type": ""}, validator)

    with pytest.raises(MissingTypeError):
        RequestParser(["Note"], validator)

    assert validator.calls == []


async def test_unknown_type_goes_to_fallback_unvalidated():
    validator = FakeValidator()
    unknown = Recorder(result="fallback")
    body = {"type": "com.example:polls/Ballot", "choice": 3}

    result = await parse_body(body, validator, HandlerTable(unknown=unknown))

    assert result == "fallback"
    assert unknown.calls == [body]
    assert validator.calls == []


async def test_unknown_type_without_fallback_is_ignored():
    validator = FakeValidator()
    note = Recorder()

    result = await parse_body({"type": "Announce"}, validator, HandlerTable(note=note))

    assert result is None
    assert note.calls == []
    assert validator.calls == []


async def test_non_string_type_is_unknown():
    unknown = Recorder()
    await parse_body({"type": 42}, FakeValidator(), HandlerTable(unknown=unknown))
    assert unknown.calls == [{"type": 42}]


async def test_known_type_without_handler_still_validates():
    validator = FakeValidator()

    result = await parse_body(NOTE, validator, HandlerTable(follow=Recorder()))
    assert result is None
    assert validator.calls == [EntityKind.NOTE]

    with pytest.raises(ValidationError):
        await parse_body(dict(NOTE, content=1), validator)


async def test_extension_types_route_to_their_handlers():
    like = Recorder()
    dislike = Recorder()
    handlers = HandlerTable(like=like, dislike=dislike)
    body = {
        "type": "pub.versia:likes/Like",
        "author": "https://example.com/users/6e0204a2-746c-4972-8602-c4f37fc63bbe",
        "liked": "https://otherexample.org/notes/fmKZ763jzIU8",
    }

    await parse_body(body, FakeValidator(), handlers)

    assert [e.kind for e in like.calls] == [EntityKind.LIKE]
    assert dislike.calls == []


async def test_legacy_short_tags_resolve_to_extensions():
    group = Recorder()
    validator = FakeValidator()

    await parse_body({"type": "Group"}, validator, HandlerTable(group=group))

    assert validator.calls == [EntityKind.GROUP]
    assert len(group.calls) == 1


async def test_group_subscription_kinds_are_validated_and_routed():
    validator = FakeValidator()
    subscribe = Recorder()
    accept = Recorder()
    unknown = Recorder()
    handlers = HandlerTable(
        group_subscribe=subscribe, group_subscribe_accept=accept, unknown=unknown
    )
    body = {
        "type": "pub.versia:groups/Subscribe",
        "subscriber": "https://example.com/users/1",
        "group": "https://example.com/groups/1",
    }

    await parse_body(body, validator, handlers)
    await parse_body({"type": "pub.versia:groups/SubscribeAccept"}, validator, handlers)
    await parse_body({"type": "pub.versia:groups/Unsubscribe"}, validator, handlers)

    assert validator.calls == [
        EntityKind.GROUP_SUBSCRIBE,
        EntityKind.GROUP_SUBSCRIBE_ACCEPT,
        EntityKind.GROUP_UNSUBSCRIBE,
    ]
    assert subscribe.calls == [Entity(kind=EntityKind.GROUP_SUBSCRIBE, data=body)]
    assert len(accept.calls) == 1
    assert unknown.calls == []
    assert EntityKind.GROUP_SUBSCRIBE_REJECT.sub_tag == "groups/SubscribeReject"


async def test_async_validator_and_handler():
    async def on_follow(follow):
        return follow.kind

    result = await parse_body(
        {"type": "Follow", "followee": "https://bob.org/users/1"},
        AsyncValidator(),
        HandlerTable(follow=on_follow),
    )
    assert result is EntityKind.FOLLOW


async def test_every_kind_has_a_handler_slot():
    handlers = HandlerTable(**{name: Recorder() for name in HandlerTable.__dataclass_fields__})

    for kind in EntityKind:
        handlers.for_kind(kind).calls.clear()
        await parse_body({"type": kind.value}, FakeValidator(), handlers)
        assert len(handlers.for_kind(kind).calls) == 1

    assert handlers.unknown.calls == []


async def test_parser_is_reusable():
    note = Recorder()
    parser = RequestParser(NOTE, FakeValidator())

    await parser.parse_body(HandlerTable(note=note))
    await parser.parse_body(HandlerTable(note=note))

    assert len(note.calls) == 2


def test_entity_kind_tags():
    assert EntityKind.from_tag("Note") is EntityKind.NOTE
    assert EntityKind.from_tag("pub.versia:polls/Vote") is EntityKind.VOTE
    assert EntityKind.from_tag("Vote") is EntityKind.VOTE
    assert EntityKind.from_tag("Nope") is None
    assert EntityKind.from_tag(None) is None

    assert not EntityKind.NOTE.is_extension
    assert EntityKind.NOTE.namespace is None
    assert EntityKind.NOTE.sub_tag == "Note"

    assert EntityKind.LIKE.is_extension
    assert EntityKind.LIKE.namespace == "pub.versia"
    assert EntityKind.LIKE.sub_tag == "likes/Like"
    assert EntityKind.LIKE == "pub.versia:likes/Like"
