from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol
from uuid import UUID

import pydantic
import redis

from nihilism.api.models import Player
from nihilism.errors import PersistenceError
from nihilism.settings import EngineSettings

logger = logging.getLogger(__name__)

PLAYERS_SET_KEY = "nihilism:players"
PLAYER_KEY_PREFIX = "nihilism:player:"  # + {uuid}


class SnapshotStore(Protocol):
    """Durable keyed store of Player snapshots.

    `put` serialises the given player without keeping a reference to it; `get`
    always returns a freshly constructed Player.
    """

    def put(self, player_id: UUID, player: Player) -> None:  # pragma: no cover
        ...

    def get(self, player_id: UUID) -> Player | None:  # pragma: no cover
        ...

    def list_ids(self) -> list[UUID]:  # pragma: no cover
        ...

    def delete(self, player_id: UUID) -> bool:  # pragma: no cover
        ...


def dump_snapshot(player: Player) -> str:
    return player.model_dump_json()


def load_snapshot(raw: str | bytes) -> Player:
    try:
        return Player.model_validate_json(raw)
    except pydantic.ValidationError as e:
        raise PersistenceError(f"Corrupt player snapshot: {e.error_count()} validation error(s)") from e


def _check_id(player_id: UUID, player: Player) -> None:
    if player.id != player_id:
        raise PersistenceError(f"Snapshot id {player.id} does not match key {player_id}")


def _player_key(player_id: UUID) -> str:
    return f"{PLAYER_KEY_PREFIX}{player_id}"


class RedisSnapshotStore:
    """Snapshots as JSON strings under `nihilism:player:{id}`, ids in a set."""

    def __init__(self, r: redis.Redis) -> None:
        self._r = r

    def put(self, player_id: UUID, player: Player) -> None:
        _check_id(player_id, player)
        raw = dump_snapshot(player)
        try:
            pipe = self._r.pipeline()
            pipe.set(_player_key(player_id), raw)
            pipe.sadd(PLAYERS_SET_KEY, str(player_id))
            pipe.execute()
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to save player {player_id}: {e}") from e
        logger.debug("saved player %s to redis", player_id)

    def get(self, player_id: UUID) -> Player | None:
        try:
            raw = self._r.get(_player_key(player_id))
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to load player {player_id}: {e}") from e
        if not raw:
            return None
        return load_snapshot(raw)  # type: ignore[arg-type]

    def list_ids(self) -> list[UUID]:
        try:
            members = self._r.smembers(PLAYERS_SET_KEY)
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to list players: {e}") from e

        out: list[UUID] = []
        for sid in members:  # type: ignore[union-attr]
            try:
                out.append(UUID(sid if isinstance(sid, str) else sid.decode()))
            except ValueError:
                continue
        return sorted(out, key=str)

    def delete(self, player_id: UUID) -> bool:
        try:
            pipe = self._r.pipeline()
            pipe.delete(_player_key(player_id))
            pipe.srem(PLAYERS_SET_KEY, str(player_id))
            removed, _ = pipe.execute()
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to delete player {player_id}: {e}") from e
        return bool(removed)


class FileSnapshotStore:
    """One `<id>.json` file per player under `data_dir`."""

    def __init__(self, data_dir: Path) -> None:
        self._dir = data_dir

    @property
    def data_dir(self) -> Path:
        return self._dir

    def _path(self, player_id: UUID) -> Path:
        return self._dir / f"{player_id}.json"

    def put(self, player_id: UUID, player: Player) -> None:
        _check_id(player_id, player)
        raw = dump_snapshot(player)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            # Write to a sibling temp file and rename so readers never see half a snapshot.
            fd, tmp = tempfile.mkstemp(dir=self._dir, prefix=f".{player_id}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(raw)
                os.replace(tmp, self._path(player_id))
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to save player {player_id}: {e}") from e
        logger.debug("saved player %s to %s", player_id, self._path(player_id))

    def get(self, player_id: UUID) -> Player | None:
        path = self._path(player_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Failed to load player {player_id}: {e}") from e
        return load_snapshot(raw)

    def list_ids(self) -> list[UUID]:
        if not self._dir.is_dir():
            return []
        out: list[UUID] = []
        try:
            for path in self._dir.glob("*.json"):
                try:
                    out.append(UUID(path.stem))
                except ValueError:
                    continue
        except OSError as e:
            raise PersistenceError(f"Failed to list players: {e}") from e
        return sorted(out, key=str)

    def delete(self, player_id: UUID) -> bool:
        path = self._path(player_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PersistenceError(f"Failed to delete player {player_id}: {e}") from e
        return True


def create_snapshot_store(settings: EngineSettings) -> SnapshotStore:
    if settings.store == "file":
        return FileSnapshotStore(settings.data_dir)

    from nihilism.infra.redis_client import create_redis

    return RedisSnapshotStore(create_redis())
