"""Automaton identity.

Key material and wallet derivation live outside this package; the runtime
only needs the public facts that go into prompts and the audit log.
"""

from dataclasses import dataclass, field

from automaton.config.schema import Config
from automaton.utils.helpers import now_iso


@dataclass(frozen=True)
class AutomatonIdentity:
    name: str
    address: str = ""
    creator_address: str = ""
    created_at: str = field(default_factory=now_iso)

    @classmethod
    def from_config(cls, config: Config) -> "AutomatonIdentity":
        return cls(
            name=config.name,
            address=config.address,
            creator_address=config.creator_address,
        )

    def persist(self, store) -> None:
        """Record identity facts in the state store."""
        store.set_identity("name", self.name)
        store.set_identity("address", self.address)
        store.set_identity("creator", self.creator_address)
        if store.get_identity("created_at") is None:
            store.set_identity("created_at", self.created_at)
