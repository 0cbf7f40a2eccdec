"""Session scoped result cache.

One slot per search kind. A slot is three string fields in the session's
store: the serialised result set, the raw query and the parsed terms. A
fourth field holds the token of the search currently in flight so that a
slow, older search cannot overwrite a newer one.
"""

from collections import OrderedDict
from collections.abc import MutableMapping
import json
import logging
import uuid

from domain.models import CacheEntry, ResultSet, SearchKind


logger = logging.getLogger(__name__)


MAX_SESSIONS = 1000


type Store = MutableMapping[str, str]


class SessionStore:
    """In process session storage, one string mapping per session id.

    Holds at most `max_sessions`; the least recently used session is ended
    to make room for a new one.
    """

    def __init__(self, max_sessions: int = MAX_SESSIONS) -> None:
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, dict[str, str]] = OrderedDict()

    def __getitem__(self, session_id: str) -> Store:
        store = self._sessions.get(session_id)
        if store is not None:
            self._sessions.move_to_end(session_id)
            return store
        store = self._sessions[session_id] = {}
        while len(self._sessions) > self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.debug("Evicted session %s", evicted)
        return store

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def end(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)


class ResultCache:
    def __init__(self, store: Store, kind: SearchKind) -> None:
        self.store = store
        self.kind = kind

    @property
    def results_key(self) -> str:
        return f"{self.kind.value}:results"

    @property
    def query_key(self) -> str:
        return f"{self.kind.value}:query"

    @property
    def terms_key(self) -> str:
        return f"{self.kind.value}:terms"

    @property
    def pending_key(self) -> str:
        return f"{self.kind.value}:pending"

    def get(self) -> CacheEntry | None:
        results = self.store.get(self.results_key)
        raw_query = self.store.get(self.query_key)
        terms = self.store.get(self.terms_key)
        if results is None and raw_query is None and terms is None:
            return None
        if results is None or raw_query is None or terms is None:
            logger.info("Discarding incomplete %s cache entry", self.kind.value)
            self.invalidate()
            return None

        try:
            result_set = ResultSet.from_dict(json.loads(results))
            parsed_terms = json.loads(terms)
        except (ValueError, KeyError, TypeError) as e:
            logger.info("Discarding unreadable %s cache entry: %r", self.kind.value, e)
            self.invalidate()
            return None

        if list(result_set.query.terms) != parsed_terms:
            logger.info("Discarding stale %s cache entry", self.kind.value)
            self.invalidate()
            return None

        return CacheEntry(result_set=result_set, raw_query=raw_query)

    def set(self, entry: CacheEntry) -> None:
        # Single update, readers never see half an entry.
        self.store.update(
            {
                self.results_key: json.dumps(entry.result_set.to_dict()),
                self.query_key: entry.raw_query,
                self.terms_key: json.dumps(list(entry.terms)),
            }
        )

    def invalidate(self) -> None:
        for key in (self.results_key, self.query_key, self.terms_key):
            self.store.pop(key, None)

    def begin(self) -> str:
        """Mark a new search as the current one for this slot."""
        token = uuid.uuid4().hex
        self.store[self.pending_key] = token
        return token

    def is_current(self, token: str) -> bool:
        return self.store.get(self.pending_key) == token

    def commit(self, token: str, entry: CacheEntry | None) -> bool:
        """Store the entry if the search is still current.

        `None` clears the slot instead. Returns False for a superseded search,
        in which case nothing is written.
        """
        if not self.is_current(token):
            return False
        if entry is None:
            self.invalidate()
        else:
            self.set(entry)
        del self.store[self.pending_key]
        return True
