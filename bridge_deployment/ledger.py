import json
import threading
import time
from collections import defaultdict
from enum import Enum
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Tuple

from bridge_deployment.constants import STANDARD_LEDGER_JSON_FORMAT
from bridge_deployment.errors import LedgerError
from bridge_deployment.utils import _load_json

ChainName = str
UnitName = str
LedgerKey = Tuple[ChainName, UnitName]


class DeploymentStatus(Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self is not DeploymentStatus.PENDING


class DeploymentRecord(NamedTuple):
    """Outcome of executing a single deployment unit."""

    unit_name: UnitName
    chain: ChainName
    contract_type: str
    status: DeploymentStatus
    address: Optional[str] = None
    error: Optional[str] = None
    timestamp: float = 0.0

    @classmethod
    def pending(
        cls, unit_name: UnitName, chain: ChainName, contract_type: str
    ) -> "DeploymentRecord":
        return cls(
            unit_name=unit_name,
            chain=chain,
            contract_type=contract_type,
            status=DeploymentStatus.PENDING,
            timestamp=time.time(),
        )

    def succeeded(self, address: str) -> "DeploymentRecord":
        return self._replace(
            status=DeploymentStatus.SUCCEEDED, address=address, error=None, timestamp=time.time()
        )

    def failed(self, error: str) -> "DeploymentRecord":
        return self._replace(
            status=DeploymentStatus.FAILED, address=None, error=error, timestamp=time.time()
        )

    @property
    def key(self) -> LedgerKey:
        return self.chain, self.unit_name


def _validate_record(record: DeploymentRecord) -> None:
    if record.status is DeploymentStatus.SUCCEEDED and not record.address:
        raise LedgerError(f"Succeeded record for {record.unit_name} has no address.")
    if record.status is DeploymentStatus.FAILED and not record.error:
        raise LedgerError(f"Failed record for {record.unit_name} has no error.")
    if record.status is not DeploymentStatus.FAILED and record.error:
        raise LedgerError(f"Only failed records may carry an error ({record.unit_name}).")


class Ledger:
    """
    Record of deployment outcomes keyed by (chain, unit name).

    All access goes through ``record``/``lookup``, which are atomic; the ledger
    may be shared by asyncio tasks and by the worker threads running deploy calls.

    When ``filepath`` is set, every recorded outcome is written to it before
    ``record`` returns, so a crash never loses a deployed address.
    """

    def __init__(
        self,
        records: Optional[List[DeploymentRecord]] = None,
        filepath: Optional[Path] = None,
    ):
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._records: Dict[LedgerKey, DeploymentRecord] = dict()
        self.filepath = None
        for record in records or list():
            self.record(record)
        self.filepath = filepath

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def record(self, record: DeploymentRecord) -> None:
        _validate_record(record)
        with self._lock:
            existing = self._records.get(record.key)
            if existing and existing.status is DeploymentStatus.SUCCEEDED:
                raise LedgerError(
                    f"{record.unit_name} on {record.chain} is already deployed "
                    f"at {existing.address}."
                )
            self._records[record.key] = record
        if self.filepath is not None:
            self.write(self.filepath)

    def get(self, chain: ChainName, unit_name: UnitName) -> Optional[DeploymentRecord]:
        with self._lock:
            return self._records.get((chain, unit_name))

    def lookup(self, chain: ChainName, unit_name: UnitName) -> Optional[str]:
        """Returns the deployed address, or None if the unit has not succeeded."""
        record = self.get(chain, unit_name)
        if record is None or record.status is not DeploymentStatus.SUCCEEDED:
            return None
        return record.address

    def succeeded(self, chain: ChainName, unit_name: UnitName) -> bool:
        return self.lookup(chain, unit_name) is not None

    def records(self) -> List[DeploymentRecord]:
        with self._lock:
            records = list(self._records.values())
        records.sort(key=lambda r: (r.chain, r.unit_name))
        return records

    def failures(self) -> List[DeploymentRecord]:
        return [r for r in self.records() if r.status is DeploymentStatus.FAILED]

    def snapshot(self) -> Dict[str, Dict[str, Dict]]:
        """Returns a JSON-serializable mapping of chain -> unit name -> record."""
        data = defaultdict(dict)
        for record in self.records():
            data[record.chain][record.unit_name] = {
                "contract_type": record.contract_type,
                "status": record.status.value,
                "address": record.address,
                "error": record.error,
                "timestamp": record.timestamp,
            }
        return dict(data)

    @classmethod
    def from_snapshot(cls, data: Dict[str, Dict[str, Dict]]) -> "Ledger":
        records = list()
        try:
            for chain, entries in data.items():
                for unit_name, entry in entries.items():
                    record = DeploymentRecord(
                        unit_name=unit_name,
                        chain=chain,
                        contract_type=entry["contract_type"],
                        status=DeploymentStatus(entry["status"]),
                        address=entry.get("address"),
                        error=entry.get("error"),
                        timestamp=float(entry.get("timestamp", 0)),
                    )
                    records.append(record)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise LedgerError(f"Malformed ledger snapshot: {e}") from e
        return cls(records=records)

    @classmethod
    def read(cls, filepath: Path) -> "Ledger":
        return cls.from_snapshot(_load_json(filepath))

    def persist_to(self, filepath: Path) -> None:
        """Writes the ledger now and again after every later ``record``."""
        self.filepath = filepath
        self.write(filepath)

    def write(self, filepath: Path) -> Path:
        """Writes the ledger snapshot to a file, replacing any previous snapshot."""
        with self._write_lock:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            temp_filepath = filepath.with_suffix(".temp.json")
            with open(temp_filepath, "w") as file:
                json.dump(self.snapshot(), file, **STANDARD_LEDGER_JSON_FORMAT)
            temp_filepath.replace(filepath)
        return filepath
