"""In-process local store for cached records."""

from dataclasses import dataclass, field

from nutritrack.services.reconciler import LocalStore


@dataclass
class InMemoryLocalStore(LocalStore):
    """Dictionary-backed store keyed by record kind and id."""

    records: dict[str, dict[str, object]] = field(default_factory=dict)

    def get(self, kind: str, record_id: str) -> object | None:
        """Return a record by kind and id."""
        return self.records.get(kind, {}).get(record_id)

    def put(self, kind: str, record_id: str, record: object) -> None:
        """Insert or overwrite a record."""
        self.records.setdefault(kind, {})[record_id] = record

    def delete(self, kind: str, record_id: str) -> None:
        """Remove a record if present."""
        self.records.get(kind, {}).pop(record_id, None)

    def list(self, kind: str) -> list[object]:
        """Return every record of a kind in insertion order."""
        return list(self.records.get(kind, {}).values())
