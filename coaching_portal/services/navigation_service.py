"""Navigation state machine synchronised with a browser-history port.

States run Root → Classes → Subjects → Types → Chapters → Pdfs. Every forward
selection pushes exactly one history entry carrying the full state; replaying
a popped entry never pushes. The entry for the latest coaching selection is the
root marker: a pop that lands on any marker (or on the page before the app)
re-pushes it, so "back" cannot leave the portal.
"""

import copy
import logging
from collections import namedtuple
from contextlib import contextmanager

from coaching_portal.errors import InvalidTransition, Unauthenticated
from coaching_portal.models import DEPTHS, LEVELS, PAYLOAD_FIELDS, NavigationState, Selections
from coaching_portal.services import access_service

SELECT_LEVELS = ('coaching', 'class', 'subject', 'type', 'chapter')

FetchTicket = namedtuple('FetchTicket', ['generation', 'selections'])

default_logger = logging.getLogger('coaching_portal.navigation')


class HistoryPort:
    """What the machine needs from browser history."""

    def push(self, payload):
        raise NotImplementedError

    def on_pop(self, handler):
        raise NotImplementedError


class InMemoryHistory(HistoryPort):
    """Browser-like history stack: entries, a cursor, and back/forward."""

    def __init__(self, initial=None):
        self.entries = [copy.deepcopy(initial)]
        self.index = 0
        self._handler = None

    @property
    def current(self):
        return self.entries[self.index]

    def push(self, payload):
        del self.entries[self.index + 1:]
        self.entries.append(copy.deepcopy(payload))
        self.index += 1

    def on_pop(self, handler):
        self._handler = handler

    def back(self):
        if self.index == 0:
            return False
        self.index -= 1
        self._deliver()
        return True

    def forward(self):
        if self.index >= len(self.entries) - 1:
            return False
        self.index += 1
        self._deliver()
        return True

    def _deliver(self):
        if self._handler is not None:
            self._handler(copy.deepcopy(self.entries[self.index]))


class RecordingHistory(HistoryPort):
    """History for a browser reached over HTTP.

    Pushes are collected as instructions for the client to replay with
    ``history.pushState``; the client's ``popstate`` payloads come back
    through ``deliver_pop``.
    """

    def __init__(self):
        self.instructions = []
        self._handler = None

    def push(self, payload):
        self.instructions.append({'op': 'push', 'state': copy.deepcopy(payload)})

    def on_pop(self, handler):
        self._handler = handler

    def deliver_pop(self, payload):
        if self._handler is None:
            raise RuntimeError('no pop handler registered')
        return self._handler(payload)


class NavigationStateMachine:
    def __init__(self, session, resolver, history, *, logger=None):
        self.session = session
        self.resolver = resolver
        self.history = history
        self.logger = logger or default_logger
        self._state = NavigationState()
        self._root_payload = None
        self._generation = 0
        self._in_transition = False
        history.on_pop(self.handle_pop)

    @property
    def state(self):
        return self._state

    @property
    def selections(self):
        return self._state.selections

    @property
    def breadcrumb(self):
        return self._state.breadcrumb

    @property
    def depth(self):
        return self._state.depth

    @property
    def root_payload(self):
        return copy.deepcopy(self._root_payload)

    # --- forward transitions ---

    def select(self, level, key):
        if level not in SELECT_LEVELS:
            raise InvalidTransition(f'Unknown navigation level: {level}')
        return self._transition(SELECT_LEVELS.index(level), key)

    def select_coaching(self, coaching_id):
        return self._transition(0, coaching_id)

    def select_class(self, class_id):
        return self._transition(1, class_id)

    def select_subject(self, subject_id):
        return self._transition(2, subject_id)

    def select_type(self, type_id):
        return self._transition(3, type_id)

    def select_chapter(self, chapter_key):
        return self._transition(4, chapter_key)

    def _transition(self, index, key):
        key = str(key or '').strip()
        if not key:
            raise InvalidTransition('A selection key is required')
        current = self._state
        if current.selections.depth < index:
            raise InvalidTransition(f'Cannot select a {SELECT_LEVELS[index]} before its parent')
        candidate = current.selections.truncate(index).extend(key)
        if candidate == current.selections:
            return current

        with self._guard():
            self._authorize(candidate)
            entry = self.resolver.describe(LEVELS[index], candidate.truncate(index), key)
            new_state = NavigationState(candidate, current.labels[:index] + (entry.label,))
            payload = self._payload(new_state)
            # Each coaching-level entry becomes the root marker.
            payload['isRoot'] = index == 0
            self.history.push(payload)
            if index == 0:
                self._root_payload = copy.deepcopy(payload)
            self._apply(new_state)
        self.logger.debug(f"Navigation → {new_state.depth} {candidate.keys()}")
        return new_state

    # --- history pops ---

    def handle_pop(self, payload):
        """Reconstruct the view stored in a popped history entry, without pushing."""
        with self._guard():
            if not isinstance(payload, dict) or not payload or payload.get('isRoot'):
                return self._return_to_root()
            try:
                selections = self._selections_from_payload(payload)
            except ValueError as exc:
                self.logger.info(f"Ignoring malformed history entry ({exc}); returning to root")
                return self._return_to_root()
            self._authorize(selections)
            # Popped entries come from the client; labels are looked up again.
            state = NavigationState(selections, self._lookup_labels(selections))
            self._apply(state)
        self.logger.debug(f"Navigation ← {state.depth} {state.selections.keys()}")
        return state

    def _return_to_root(self):
        if self._root_payload is None:
            self._apply(NavigationState())
            return self._state
        state = self._state_from_payload(self._root_payload)
        self.history.push(copy.deepcopy(self._root_payload))
        self._apply(state)
        return state

    # --- listing fetches ---

    def begin_fetch(self):
        return FetchTicket(self._generation, self._state.selections)

    def is_current(self, ticket):
        return ticket.generation == self._generation and ticket.selections == self._state.selections

    def load_children(self):
        """List the children of the current view, or None if a newer transition won."""
        ticket = self.begin_fetch()
        level = LEVELS[ticket.selections.depth]
        items = self.resolver.list_children(level, ticket.selections, self.session)
        if not self.is_current(ticket):
            self.logger.debug(f"Discarding stale {level} listing for {ticket.selections.keys()}")
            return None
        return items

    # --- persistence ---

    def snapshot(self):
        return {
            'state': self._payload(self._state),
            'root': copy.deepcopy(self._root_payload),
            'generation': self._generation,
        }

    @classmethod
    def restore(cls, data, session, resolver, history, *, logger=None):
        machine = cls(session, resolver, history, logger=logger)
        if not isinstance(data, dict):
            return machine
        try:
            root = data.get('root')
            state = machine._state_from_payload(data.get('state') or {})
            if root is not None:
                machine._state_from_payload(root)
        except ValueError:
            return machine
        machine._root_payload = copy.deepcopy(root)
        machine._state = state
        machine._generation = int(data.get('generation') or 0)
        return machine

    # --- helpers ---

    @contextmanager
    def _guard(self):
        if self._in_transition:
            raise InvalidTransition('Another navigation step is still being applied')
        self._in_transition = True
        try:
            yield
        finally:
            self._in_transition = False

    def _authorize(self, selections):
        if self.session is None:
            raise Unauthenticated()
        keys = selections.keys()
        if len(keys) < 2:
            return
        padded = keys + (None,) * (len(SELECT_LEVELS) - len(keys))
        access_service.ensure_access(self.session, padded[1], padded[2], padded[3], logger=self.logger)

    def _apply(self, state):
        self._state = state
        self._generation += 1

    def _payload(self, state):
        payload = {'view': state.depth}
        payload.update(state.selections.to_payload())
        payload['labels'] = list(state.labels)
        payload['isRoot'] = False
        return payload

    def _selections_from_payload(self, payload):
        if not isinstance(payload, dict):
            raise ValueError('history entry is not an object')
        keys = []
        for name in PAYLOAD_FIELDS:
            value = payload.get(name)
            if value is None:
                break
            keys.append(str(value))
        selections = Selections.from_keys(keys)
        view = payload.get('view', DEPTHS[selections.depth])
        if view != DEPTHS[selections.depth]:
            raise ValueError(f'view {view!r} does not match its selections')
        return selections

    def _state_from_payload(self, payload):
        """Rebuild a state this machine wrote itself (root marker or snapshot)."""
        selections = self._selections_from_payload(payload)
        labels = payload.get('labels')
        if isinstance(labels, list) and len(labels) == selections.depth and all(isinstance(label, str) for label in labels):
            return NavigationState(selections, tuple(labels))
        return NavigationState(selections, self._lookup_labels(selections))

    def _lookup_labels(self, selections):
        keys = selections.keys()
        return tuple(
            self.resolver.describe(LEVELS[index], selections.truncate(index), key).label
            for index, key in enumerate(keys)
        )
