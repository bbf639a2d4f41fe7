"""Routing of federation entities to handlers by their `type` field.

Usage:
    async def on_note(note):
        ...

    await parse_body(
        await request.json(),
        validator,
        HandlerTable(note=on_note, unknown=log_unknown),
    )
"""

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, Union

from .types import MissingTypeError

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Union[Any, Awaitable[Any]]]


class EntityKind(str, Enum):
    """Entity types understood by the dispatcher.

    Extension kinds are namespaced as "<namespace>:<extension>/<name>".
    """

    NOTE = "Note"
    FOLLOW = "Follow"
    FOLLOW_ACCEPT = "FollowAccept"
    FOLLOW_REJECT = "FollowReject"
    USER = "User"
    DELETE = "Delete"
    INSTANCE_METADATA = "InstanceMetadata"
    UNFOLLOW = "Unfollow"

    LIKE = "pub.versia:likes/Like"
    DISLIKE = "pub.versia:likes/Dislike"
    GROUP = "pub.versia:groups/Group"
    GROUP_SUBSCRIBE = "pub.versia:groups/Subscribe"
    GROUP_UNSUBSCRIBE = "pub.versia:groups/Unsubscribe"
    GROUP_SUBSCRIBE_ACCEPT = "pub.versia:groups/SubscribeAccept"
    GROUP_SUBSCRIBE_REJECT = "pub.versia:groups/SubscribeReject"
    REACTION = "pub.versia:reactions/Reaction"
    SHARE = "pub.versia:share/Share"
    VOTE = "pub.versia:polls/Vote"

    @classmethod
    def from_tag(cls, tag: Any) -> Optional["EntityKind"]:
        """Return the kind for a `type` value, or None if it is unknown."""
        if not isinstance(tag, str):
            return None
        try:
            return cls(tag)
        except ValueError:
            return _LEGACY_TAGS.get(tag)

    @property
    def is_extension(self) -> bool:
        return ":" in self.value

    @property
    def namespace(self) -> Optional[str]:
        """Extension namespace, e.g. "pub.versia". None for core kinds."""
        if not self.is_extension:
            return None
        return self.value.split(":", 1)[0]

    @property
    def sub_tag(self) -> str:
        """Tag inside the namespace, e.g. "likes/Like". Core kinds return their tag."""
        return self.value.split(":", 1)[-1]


# Un-namespaced tags sent by older peers.
_LEGACY_TAGS: Dict[str, EntityKind] = {
    "Like": EntityKind.LIKE,
    "Dislike": EntityKind.DISLIKE,
    "Group": EntityKind.GROUP,
    "Reaction": EntityKind.REACTION,
    "Share": EntityKind.SHARE,
    "Vote": EntityKind.VOTE,
}


class EntityValidator(Protocol):
    """Schema validation for federation entities.

    `validate` returns the validated entity, or an awaitable of it, and
    raises its own error when `data` does not match the schema for `kind`.
    """

    def validate(self, kind: EntityKind, data: Mapping[str, Any]) -> Any:
        ...


@dataclass
class HandlerTable:
    """Handlers for one dispatch call. Each may be sync or async.

    `unknown` receives the raw, unvalidated body of any unrecognized type.
    """

    note: Optional[Handler] = None
    follow: Optional[Handler] = None
    follow_accept: Optional[Handler] = None
    follow_reject: Optional[Handler] = None
    user: Optional[Handler] = None
    delete: Optional[Handler] = None
    instance_metadata: Optional[Handler] = None
    unfollow: Optional[Handler] = None
    like: Optional[Handler] = None
    dislike: Optional[Handler] = None
    group: Optional[Handler] = None
    group_subscribe: Optional[Handler] = None
    group_unsubscribe: Optional[Handler] = None
    group_subscribe_accept: Optional[Handler] = None
    group_subscribe_reject: Optional[Handler] = None
    reaction: Optional[Handler] = None
    share: Optional[Handler] = None
    vote: Optional[Handler] = None
    unknown: Optional[Handler] = None

    def for_kind(self, kind: EntityKind) -> Optional[Handler]:
        return {
            EntityKind.NOTE: self.note,
            EntityKind.FOLLOW: self.follow,
            EntityKind.FOLLOW_ACCEPT: self.follow_accept,
            EntityKind.FOLLOW_REJECT: self.follow_reject,
            EntityKind.USER: self.user,
            EntityKind.DELETE: self.delete,
            EntityKind.INSTANCE_METADATA: self.instance_metadata,
            EntityKind.UNFOLLOW: self.unfollow,
            EntityKind.LIKE: self.like,
            EntityKind.DISLIKE: self.dislike,
            EntityKind.GROUP: self.group,
            EntityKind.GROUP_SUBSCRIBE: self.group_subscribe,
            EntityKind.GROUP_UNSUBSCRIBE: self.group_unsubscribe,
            EntityKind.GROUP_SUBSCRIBE_ACCEPT: self.group_subscribe_accept,
            EntityKind.GROUP_SUBSCRIBE_REJECT: self.group_subscribe_reject,
            EntityKind.REACTION: self.reaction,
            EntityKind.SHARE: self.share,
            EntityKind.VOTE: self.vote,
        }[kind]


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class RequestParser:
    """Validates a request body and passes it to the matching handler."""

    def __init__(self, body: Mapping[str, Any], validator: EntityValidator):
        """Initialize the parser.

        Args:
            body: Decoded JSON body
            validator: Schema validator for the entity kinds

        Raises:
            MissingTypeError: If the body has no `type` field.
        """
        if not isinstance(body, Mapping) or not body.get("type"):
            raise MissingTypeError("Missing type field in body")
        self.body = body
        self.validator = validator

    async def parse_body(self, handlers: Optional[HandlerTable] = None) -> Any:
        """Validate the body and call the handler for its type.

        Validator errors propagate unchanged and no handler runs.

        Returns:
            The handler's result, or None if no handler applies.
        """
        handlers = handlers or HandlerTable()
        tag = self.body["type"]
        kind = EntityKind.from_tag(tag)

        if kind is None:
            if handlers.unknown is None:
                logger.debug("Ignoring entity of unknown type %r", tag)
                return None
            logger.debug("Passing entity of unknown type %r to fallback handler", tag)
            return await _resolve(handlers.unknown(self.body))

        entity = await _resolve(self.validator.validate(kind, self.body))

        handler = handlers.for_kind(kind)
        if handler is None:
            logger.debug("No handler registered for %s", kind.value)
            return None

        logger.debug("Dispatching %s", kind.value)
        return await _resolve(handler(entity))


def parse_body(
    body: Mapping[str, Any],
    validator: EntityValidator,
    handlers: Optional[HandlerTable] = None,
) -> Awaitable[Any]:
    """Dispatch `body` to `handlers`.

    A body without a `type` field raises MissingTypeError right away,
    before anything is awaited.
    """
    return RequestParser(body, validator).parse_body(handlers)
