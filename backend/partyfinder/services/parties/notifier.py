import logging
from typing import Optional

from partyfinder.models import Party
from partyfinder.services.debounce import DebouncedTask

DEFAULT_NAMESPACE = '/ws'


def party_room(party_id: str) -> str:
    return f"party:{party_id}"


class PartyNotifier:
    """Fan-out of party changes over Socket.IO.

    ``schedule_list_broadcast`` is debounced: any number of calls inside one
    window produce a single ``partiesUpdated`` carrying the current summaries.
    Per-party updates and kick notices go out immediately, only to the room of
    that party.
    """

    def __init__(self, emit, store, namespace: str = DEFAULT_NAMESPACE, debounce_ms: int = 150,
                 spawn=None, sleep=None, logger: Optional[logging.Logger] = None):
        self._emit = emit
        self._store = store
        self.namespace = namespace
        self._logger = logger or logging.getLogger(__name__)
        self._list_task = DebouncedTask(
            self._broadcast_list,
            debounce_ms / 1000.0,
            spawn=spawn,
            sleep=sleep,
            name='parties-broadcast',
            logger=self._logger,
        )

    def schedule_list_broadcast(self) -> bool:
        return self._list_task.arm()

    def flush(self) -> bool:
        return self._list_task.flush()

    def _broadcast_list(self) -> None:
        parties = self._store.list_parties()
        self._emit('partiesUpdated', {'parties': parties}, namespace=self.namespace)

    def party_updated(self, party: Party) -> None:
        self._emit('partyUpdated', {'party': party.to_dict()}, to=party_room(party.id), namespace=self.namespace)

    def member_kicked(self, party_id: str, target_id: str) -> None:
        self._emit('kicked', {'targetMemberId': target_id}, to=party_room(party_id), namespace=self.namespace)
        self._logger.info(f"[notify] kicked {target_id} from party {party_id}")

    def broadcast_party(self, party_id: str) -> None:
        party = self._store.get_party(party_id)
        if party is not None:
            self.party_updated(party)
        self.schedule_list_broadcast()
