"""
Session-side reconciliation of bookmark events.

Every open session of a user keeps its own copy of the bookmark list and
applies events from the user's channel to it. reconcile() is a pure reducer
over (state, event); SessionView is a small mutable wrapper for one session.

Deletes are terminal: ids are never reused and bookmarks are never edited,
so a deleted id is remembered as a tombstone and a later "added" event for it
is ignored. This keeps a delete that overtakes its own add from resurrecting
the row.
"""
import logging
from dataclasses import dataclass, field, replace

from pydantic import ValidationError

from schemas.bookmark import BookmarkResponse
from schemas.events import BookmarkEvent, BookmarkEventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewState:
    """A session's bookmark list (newest first) plus ids known to be deleted."""

    items: tuple[BookmarkResponse, ...] = ()
    deleted_ids: frozenset[str] = field(default_factory=frozenset)

    def ids(self) -> list[str]:
        """Ids of the visible items, in order."""
        return [str(item.id) for item in self.items]


def parse_event(raw: str | bytes) -> BookmarkEvent | None:
    """Decode a wire message, returning None if it is not a valid event."""
    try:
        return BookmarkEvent.model_validate_json(raw)
    except ValidationError:
        logger.debug("Ignoring malformed bookmark event: %r", raw)
        return None


def reconcile(state: ViewState, event: BookmarkEvent) -> ViewState:
    """
    Apply one event to a view state and return the new state.

    - bookmark_added: prepend the row, replacing any row with the same id.
    - bookmark_deleted: remove the row by id and tombstone the id.
    - Events without an id, or "added" payloads that are not a valid
      bookmark, leave the state unchanged.
    """
    bookmark_id = event.bookmark_id
    if bookmark_id is None:
        return state

    if event.event == BookmarkEventType.DELETED:
        return ViewState(
            items=tuple(item for item in state.items if str(item.id) != bookmark_id),
            deleted_ids=state.deleted_ids | {bookmark_id},
        )

    if bookmark_id in state.deleted_ids:
        return state
    try:
        bookmark = BookmarkResponse.model_validate(event.payload)
    except ValidationError:
        logger.debug("Ignoring added event with invalid payload for id %s", bookmark_id)
        return state
    rest = tuple(item for item in state.items if str(item.id) != bookmark_id)
    return replace(state, items=(bookmark, *rest))


def matches_filters(
    bookmark: BookmarkResponse,
    search: str | None = None,
    tag: str | None = None,
) -> bool:
    """Local equivalent of the list endpoint's search and tag filters."""
    if search and search.strip():
        needle = search.strip().lower()
        if needle not in bookmark.title.lower() and needle not in bookmark.url.lower():
            return False
    if tag and tag.strip():
        return tag.strip().lower() in bookmark.tags
    return True


class SessionView:
    """The bookmark list held by one open session."""

    def __init__(self, initial: list[BookmarkResponse] | None = None) -> None:
        self._state = ViewState(items=tuple(initial or ()))

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def bookmarks(self) -> list[BookmarkResponse]:
        return list(self._state.items)

    def apply(self, event: BookmarkEvent) -> None:
        """Apply a decoded event."""
        self._state = reconcile(self._state, event)

    def apply_message(self, raw: str | bytes) -> bool:
        """Decode and apply a wire message. Returns False if it was ignored as malformed."""
        event = parse_event(raw)
        if event is None:
            return False
        self.apply(event)
        return True

    def visible(self, search: str | None = None, tag: str | None = None) -> list[BookmarkResponse]:
        """Bookmarks passing the session's current search text and tag filter."""
        return [item for item in self._state.items if matches_filters(item, search, tag)]

    def all_tags(self) -> list[str]:
        """Distinct tags across the session's bookmarks, sorted."""
        return sorted({tag for item in self._state.items for tag in item.tags})

