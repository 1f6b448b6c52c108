from dataclasses import dataclass

from flask import current_app

from partyfinder.services.parties.notifier import PartyNotifier
from partyfinder.services.parties.reaper import IdleReaper
from partyfinder.services.parties.store import PartyStore
from partyfinder.services.profiles import ProfileStore
from partyfinder.services.sessions import SessionRegistry

EXTENSION_KEY = 'partyfinder'


@dataclass
class PartyServices:
    store: PartyStore
    profiles: ProfileStore
    sessions: SessionRegistry
    notifier: PartyNotifier
    reaper: IdleReaper

    def shutdown(self) -> None:
        """Stop the sweep and write any snapshot still waiting on its debounce."""
        self.reaper.stop()
        self.store.flush()
        self.profiles.flush()


def current_services() -> PartyServices:
    return current_app.extensions[EXTENSION_KEY]
