# varsim/store.py
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from varsim.errors import ConflictError, NotFoundError
from varsim.schemas import Variable

log = logging.getLogger("store")

DDL = """
CREATE TABLE IF NOT EXISTS variable (
  id                        TEXT PRIMARY KEY,
  browse_name               TEXT NOT NULL UNIQUE,
  data_type                 TEXT NOT NULL,
  node_id                   TEXT NOT NULL UNIQUE,
  minimum_sampling_interval INTEGER NOT NULL,
  minimum                   REAL NOT NULL,
  maximum                   REAL NOT NULL,
  value_type                TEXT NOT NULL,
  created_seq               INTEGER NOT NULL
);
"""

COLUMNS = (
    "id, browse_name, data_type, node_id, minimum_sampling_interval, "
    "minimum, maximum, value_type"
)


def _row_to_variable(row) -> Variable:
    return Variable(
        id=row[0],
        browseName=row[1],
        dataType=row[2],
        nodeId=row[3],
        minimumSamplingInterval=row[4],
        minimum=row[5],
        maximum=row[6],
        valueType=row[7],
    )


def _params(v: Variable) -> tuple:
    return (v.id, v.browseName, v.dataType, v.nodeId, v.minimumSamplingInterval,
            v.minimum, v.maximum, v.valueType.value)


class VariableStore:
    """Single-table sqlite catalogue of variable definitions."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        con = sqlite3.connect(self.db_path)
        try:
            con.execute("PRAGMA journal_mode=WAL;")
            con.execute("PRAGMA synchronous=NORMAL;")
            con.execute(DDL)
            with con:
                yield con
        finally:
            con.close()

    # ---------- reads ----------
    def list_all(self) -> List[Variable]:
        with self._conn() as con:
            cur = con.execute(f"SELECT {COLUMNS} FROM variable ORDER BY created_seq")
            return [_row_to_variable(r) for r in cur.fetchall()]

    def get(self, variable_id: str) -> Variable:
        with self._conn() as con:
            row = con.execute(
                f"SELECT {COLUMNS} FROM variable WHERE id=?", (variable_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError(variable_id)
        return _row_to_variable(row)

    def find_by_node_id(self, node_id: str) -> Optional[Variable]:
        with self._conn() as con:
            row = con.execute(
                f"SELECT {COLUMNS} FROM variable WHERE node_id=?", (node_id,)
            ).fetchone()
        return _row_to_variable(row) if row else None

    def _check_unique(self, con: sqlite3.Connection, v: Variable) -> None:
        for field, column, value in (("browseName", "browse_name", v.browseName),
                                     ("nodeId", "node_id", v.nodeId)):
            row = con.execute(
                f"SELECT 1 FROM variable WHERE {column}=? AND id<>?", (value, v.id)
            ).fetchone()
            if row:
                raise ConflictError(field, value)

    # ---------- writes ----------
    def insert(self, v: Variable) -> Variable:
        with self._conn() as con:
            self._check_unique(con, v)
            con.execute(
                f"INSERT INTO variable ({COLUMNS}, created_seq) VALUES (?, ?, ?, ?, ?, ?, ?, ?, "
                "(SELECT COALESCE(MAX(created_seq), 0) + 1 FROM variable))",
                _params(v),
            )
        log.info("store.insert id=%s browseName=%s", v.id, v.browseName)
        return v

    def update(self, v: Variable) -> Variable:
        with self._conn() as con:
            self._check_unique(con, v)
            cur = con.execute(
                "UPDATE variable SET browse_name=?, data_type=?, node_id=?, "
                "minimum_sampling_interval=?, minimum=?, maximum=?, value_type=? WHERE id=?",
                _params(v)[1:] + (v.id,),
            )
            if cur.rowcount == 0:
                raise NotFoundError(v.id)
        log.info("store.update id=%s browseName=%s", v.id, v.browseName)
        return v

    def delete(self, variable_id: str) -> None:
        with self._conn() as con:
            cur = con.execute("DELETE FROM variable WHERE id=?", (variable_id,))
            if cur.rowcount == 0:
                raise NotFoundError(variable_id)
        log.info("store.delete id=%s", variable_id)

    def clear(self) -> None:
        with self._conn() as con:
            con.execute("DELETE FROM variable")
        log.info("store.clear")

    def replace_all(self, variables: Iterable[Variable]) -> List[Variable]:
        """Swap the whole catalogue in one transaction; nothing changes on conflict."""
        variables = list(variables)
        with self._conn() as con:
            con.execute("DELETE FROM variable")
            for seq, v in enumerate(variables, start=1):
                try:
                    con.execute(
                        f"INSERT INTO variable ({COLUMNS}, created_seq) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        _params(v) + (seq,),
                    )
                except sqlite3.IntegrityError:
                    self._raise_conflict(variables[:seq - 1], v)
        log.info("store.replace_all count=%d", len(variables))
        return variables

    @staticmethod
    def _raise_conflict(previous: List[Variable], v: Variable) -> None:
        for p in previous:
            if p.id == v.id:
                raise ConflictError("id", v.id)
            if p.browseName == v.browseName:
                raise ConflictError("browseName", v.browseName)
            if p.nodeId == v.nodeId:
                raise ConflictError("nodeId", v.nodeId)
        raise ConflictError("nodeId", v.nodeId)
