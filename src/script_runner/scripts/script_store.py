# src/script_runner/scripts/script_store.py

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

from ..core.errors import IOFailure, NotFound, PayloadMissing, ValidationError
from ..core.persistence import read_collection, write_collection
from .script_models import Script, ScriptContent, ScriptSummary, ScriptType

logger = logging.getLogger(__name__)

ScriptDeleteListener = Callable[[str], None]


class ScriptStore:
    """
    Script definitions + their payload files.

    - payloads live at <scripts_dir>/<id>.<ext>, one plain-text file per script
    - the whole collection is rewritten to db_path after every mutation
    - delete listeners run before a record is removed (task cascade)

    Thread-safety:
    - one RLock guards every read-modify-write-persist sequence
    """

    def __init__(self, db_path: str | Path, scripts_dir: str | Path) -> None:
        self._db_path = Path(db_path)
        self._scripts_dir = Path(scripts_dir)
        self._scripts_dir.mkdir(parents=True, exist_ok=True)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._scripts: dict[str, Script] = {}
        self._delete_listeners: list[ScriptDeleteListener] = []

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def scripts_dir(self) -> Path:
        return self._scripts_dir

    def add_delete_listener(self, listener: ScriptDeleteListener) -> None:
        self._delete_listeners.append(listener)

    # ---- low-level helpers ----

    def payload_path(self, script_id: str, script_type: ScriptType) -> Path:
        return self._scripts_dir / f"{script_id}.{script_type.extension}"

    def _commit(self, scripts: dict[str, Script]) -> None:
        """Persist `scripts`, then make it the in-memory collection. A failed write changes nothing."""
        write_collection(self._db_path, "scripts", [s.to_record() for s in scripts.values()])
        self._scripts = scripts

    def _require(self, script_id: str) -> Script:
        script = self._scripts.get(script_id)
        if script is None:
            raise NotFound("Script", script_id)
        return script

    @staticmethod
    def _record_to_script(rec: dict) -> Script | None:
        script_type = ScriptType.parse(rec.get("type"))
        script_id = str(rec.get("id") or "").strip()
        file_path = str(rec.get("file_path") or "").strip()
        if script_type is None or not script_id or not file_path:
            return None
        return Script(
            id=script_id,
            name=str(rec.get("name") or ""),
            type=script_type,
            file_path=file_path,
            cron_expression=str(rec.get("cron_expression") or ""),
        )

    @staticmethod
    def _write_payload(path: Path, content: str | None, payload: bytes | None) -> None:
        try:
            if payload is not None:
                path.write_bytes(payload)
            else:
                path.write_text(content or "", "utf-8")
        except OSError as e:
            raise IOFailure(f"Failed to save script file {path}: {e}", str(path)) from e

    # ---- public API ----

    def load(self) -> int:
        """Replace the in-memory collection with the durable one. Returns the count."""
        records = read_collection(self._db_path, "scripts")
        loaded: dict[str, Script] = {}
        for rec in records:
            script = self._record_to_script(rec)
            if script is None:
                logger.warning("Skipping malformed script record: %r", rec)
                continue
            if not Path(script.file_path).exists():
                logger.warning(
                    "Script %s (ID: %s) payload is missing on disk: %s",
                    script.name,
                    script.id,
                    script.file_path,
                )
            loaded[script.id] = script
        with self._lock:
            self._scripts = loaded
        logger.info("ScriptStore ready db=%s total=%s", self._db_path, len(loaded))
        return len(loaded)

    def count_scripts(self) -> int:
        return len(self._scripts)

    def exists(self, script_id: str) -> bool:
        return script_id in self._scripts

    def create(
        self,
        *,
        name: str,
        script_type: ScriptType | str | None,
        content: str | None = None,
        payload: bytes | None = None,
    ) -> Script:
        """
        Create a script from inline content or an uploaded payload.
        If both are given the uploaded payload wins.
        """
        if not name or not name.strip():
            raise ValidationError("Script name is required.")
        parsed = script_type if isinstance(script_type, ScriptType) else ScriptType.parse(script_type)
        if parsed is None:
            if not script_type:
                raise ValidationError("Script type is required.")
            supported = ", ".join(t.value for t in ScriptType)
            raise ValidationError(f"Invalid script type {script_type!r}; must be one of: {supported}.")
        if payload is None and not isinstance(content, str):
            raise ValidationError("Script content or an uploaded file is required.")

        script_id = str(uuid.uuid4())
        path = self.payload_path(script_id, parsed)

        with self._lock:
            self._write_payload(path, content, payload)
            script = Script(id=script_id, name=name.strip(), type=parsed, file_path=str(path))
            try:
                self._commit({**self._scripts, script_id: script})
            except IOFailure:
                path.unlink(missing_ok=True)
                raise

        logger.info("Script created: %s (ID: %s, type=%s)", script.name, script_id, parsed.value)
        return script

    def get(self, script_id: str) -> Script:
        return self._require(script_id)

    def find(self, script_id: str) -> Script | None:
        return self._scripts.get(script_id)

    def list_scripts(self) -> list[Script]:
        return list(self._scripts.values())

    def list_summaries(self) -> list[ScriptSummary]:
        return [s.summary() for s in self._scripts.values()]

    def get_content(self, script_id: str) -> ScriptContent:
        script = self._require(script_id)
        path = Path(script.file_path)
        if not path.exists():
            raise PayloadMissing(
                f"Script file for {script.name} (ID: {script.id}) is missing on disk: {path}",
                str(path),
            )
        try:
            content = path.read_text("utf-8", errors="replace")
        except OSError as e:
            logger.exception("Failed to read script content id=%s", script_id)
            raise IOFailure(f"Failed to read script content: {e}", str(path)) from e
        return ScriptContent(id=script.id, name=script.name, type=script.type, content=content)

    def update(
        self,
        script_id: str,
        *,
        name: str | None = None,
        content: str | None = None,
        script_type: ScriptType | str | None = None,
    ) -> Script:
        """
        Replace name and/or content. The type is fixed at creation; asking for
        a different one is a ValidationError.
        """
        with self._lock:
            script = self._require(script_id)

            if not isinstance(content, str) and not (name and name.strip()):
                raise ValidationError("Script content or name must be provided for an update.")

            if script_type is not None and script_type != "":
                requested = (
                    script_type if isinstance(script_type, ScriptType) else ScriptType.parse(script_type)
                )
                if requested != script.type:
                    raise ValidationError(
                        f"Script type cannot be changed (is {script.type.value!r}); "
                        "create a new script instead."
                    )

            updated = replace(script, name=name.strip()) if name and name.strip() else replace(script)
            path = Path(script.file_path)
            previous: bytes | None = None
            if isinstance(content, str):
                try:
                    previous = path.read_bytes()
                except OSError:
                    previous = None
                self._write_payload(path, content, None)
            try:
                self._commit({**self._scripts, script_id: updated})
            except IOFailure:
                if previous is not None:
                    path.write_bytes(previous)
                raise

        logger.info("Script updated: %s (ID: %s)", updated.name, script_id)
        return updated

    def set_cron_cache(self, script_id: str, expression: str) -> None:
        with self._lock:
            script = self._scripts.get(script_id)
            if script is None or script.cron_expression == expression:
                return
            self._commit({**self._scripts, script_id: replace(script, cron_expression=expression)})

    def delete(self, script_id: str) -> str:
        """
        Delete a script, its payload file and (through listeners) its tasks.

        A payload that is already gone, or cannot be removed, is logged and the
        record is still removed. Returns the deleted script's name.
        """
        with self._lock:
            script = self._require(script_id)

            for listener in list(self._delete_listeners):
                listener(script_id)

            self._commit({k: v for k, v in self._scripts.items() if k != script_id})

            path = Path(script.file_path)
            try:
                path.unlink()
            except FileNotFoundError:
                logger.warning("Script file already absent on delete: %s", path)
            except OSError:
                logger.warning("Failed to delete script file %s; record removed anyway.", path, exc_info=True)

        logger.info("Script deleted: %s (ID: %s)", script.name, script_id)
        return script.name
