"""Log of permission prompts raised by the agent, and rule suggestions from it.

The log is a JSONL file, one prompt per line. Entry ids are 1-based line
numbers, so they are only stable until the next deletion.

Suggestions turn a logged prompt into something the rule-creation path can
accept directly::

    entry = log.entries()[0]
    rule = suggest_rule(entry)                   # RuleSuggestion(tool="Bash", pattern="git push:*")
    scope = suggest_scope(entry, ["sophia"])     # ScopeSuggestion(scope="area:sophia", ...)
    service.create_custom_rule(rule.tool, rule.pattern, "Git Commands", scope.scope)
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field

from .exceptions import InvalidRequestError, StoreUnavailableError
from .rules.model import Rule, format_rule
from .scopes import Scope

logger = logging.getLogger(__name__)

# Package runners whose "run <script>" form gets a script-specific rule.
_BASH_RUN_TOOLS = ("npm", "npx")
_GIT_SUBCOMMAND_RE = re.compile(r"^git\s+(\S+)")
_RUN_SCRIPT_RE = re.compile(r"(?:npm|npx)\s+run\s+(\S+)")
_FIRST_WORD_RE = re.compile(r"^(\S+)")


class PermissionLogEntry(BaseModel):
    """One logged permission prompt."""

    id: int
    timestamp: str = ""
    tool: str = ""
    input: dict[str, Any] = Field(default_factory=dict)
    cwd: str = ""
    project: str = ""
    session_id: str = ""
    raw_path: str = ""
    base_repo_path: str = ""


class DeleteResult(BaseModel):
    deleted: int
    remaining: int


class RuleSuggestion(BaseModel):
    tool: str
    pattern: Optional[str] = None

    @property
    def text(self) -> str:
        return format_rule(Rule(self.tool, self.pattern))


class ScopeSuggestion(BaseModel):
    scope: str
    label: str


class PermissionRequestLog:
    """Reads and prunes the JSONL permission request log.

    Args:
        path: Location of the ``.jsonl`` file. A missing file is an empty log.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _lines(self) -> list[str]:
        try:
            content = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StoreUnavailableError(f"Cannot read {self._path}: {e}", path=str(self._path)) from e
        return [line for line in content.strip().split("\n") if line.strip()]

    def entries(self) -> list[PermissionLogEntry]:
        """All entries, newest first.

        Raises:
            StoreUnavailableError: the file is unreadable or a line is not a JSON object.
        """
        entries: list[PermissionLogEntry] = []
        for index, line in enumerate(self._lines(), start=1):
            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                raise StoreUnavailableError(
                    f"Malformed entry on line {index} of {self._path}: {e}", path=str(self._path), line=index
                ) from e
            if not isinstance(data, dict):
                raise StoreUnavailableError(
                    f"Entry on line {index} of {self._path} is not an object", path=str(self._path), line=index
                )
            entries.append(
                PermissionLogEntry(
                    id=index,
                    timestamp=data.get("timestamp") or "",
                    tool=data.get("tool") or "",
                    input=data.get("input") or {},
                    cwd=data.get("cwd") or "",
                    project=data.get("project") or "",
                    session_id=data.get("session_id") or "",
                    raw_path=data.get("raw_path") or "",
                    base_repo_path=data.get("base_repo_path") or "",
                )
            )
        entries.reverse()
        return entries

    def delete(self, ids: Iterable[int]) -> DeleteResult:
        """Remove the lines with the given 1-based ids and rewrite the file.

        Raises:
            InvalidRequestError: ``ids`` is empty.
            StoreUnavailableError: the file could not be read or rewritten.
        """
        wanted = set(ids)
        if not wanted:
            raise InvalidRequestError("ids must be a non-empty list of line numbers")

        lines = self._lines()
        remaining = [line for index, line in enumerate(lines, start=1) if index not in wanted]
        deleted = len(lines) - len(remaining)
        if deleted:
            self._rewrite(remaining)
        logger.info("Deleted %d permission log entries, %d remaining", deleted, len(remaining))
        return DeleteResult(deleted=deleted, remaining=len(remaining))

    def _rewrite(self, lines: list[str]) -> None:
        tmp_name: Optional[str] = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as fh:
                tmp_name = fh.name
                if lines:
                    fh.write("\n".join(lines) + "\n")
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as e:
            raise StoreUnavailableError(f"Cannot write {self._path}: {e}", path=str(self._path)) from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.debug("Could not remove temp file %s", tmp_name)


# ---- Suggestions ------------------------------------------------------------


def _suggest_bash(command: str) -> Optional[str]:
    first = _FIRST_WORD_RE.match(command)
    if not first:
        return None
    base = first.group(1)
    if base == "git":
        sub = _GIT_SUBCOMMAND_RE.match(command)
        if sub:
            return f"git {sub.group(1)}:*"
    if base in _BASH_RUN_TOOLS and "run " in command:
        script = _RUN_SCRIPT_RE.search(command)
        if script:
            return f"{base} run {script.group(1)}:*"
    return f"{base}:*"


def suggest_specific_path(file_path: str, cwd: str = "", area_names: Iterable[str] = ()) -> Optional[str]:
    """Narrowest sensible directory glob covering ``file_path``.

    Tried in order: ``~/<area>/<project>/**`` when the path lies inside a
    known area, ``~/.claude/**`` for agent config, ``<subdir>/**`` relative to
    ``cwd``, and finally the file's own directory.
    """
    if not file_path:
        return None

    for area in area_names:
        marker = f"/{area}/"
        index = file_path.find(marker)
        if index != -1:
            project = file_path[index + len(marker):].split("/")[0]
            if project:
                return f"~/{area}/{project}/**"

    if "/.claude" in file_path:
        return "~/.claude/**"

    if cwd and file_path.startswith(cwd.rstrip("/") + "/"):
        parts = file_path[len(cwd.rstrip("/")) + 1:].split("/")
        if len(parts) > 1:
            return f"{parts[0]}/**"

    slash = file_path.rfind("/")
    if slash > 0:
        return file_path[:slash] + "/**"
    return None


def suggest_rule(entry: PermissionLogEntry, area_names: Iterable[str] = ()) -> RuleSuggestion:
    """Derive a ``(tool, pattern)`` rule that would have allowed ``entry``.

    Examples::

        Bash "git push origin main"   -> Bash(git push:*)
        Bash "npm run test -- -w"     -> Bash(npm run test:*)
        Read "/home/me/sophia/api/x"  -> Read(~/sophia/api/**)
        Skill {"skill": "gsd:plan"}   -> Skill(gsd:plan)
    """
    tool = entry.tool
    data = entry.input

    if tool == "Bash":
        return RuleSuggestion(tool=tool, pattern=_suggest_bash(str(data.get("command") or "")))
    if tool in ("Read", "Edit", "Write"):
        file_path = str(data.get("file_path") or "")
        pattern = suggest_specific_path(file_path, entry.cwd, area_names) if file_path else None
        return RuleSuggestion(tool=tool, pattern=pattern)
    if tool == "Skill":
        return RuleSuggestion(tool=tool, pattern=str(data.get("skill") or "") or None)
    return RuleSuggestion(tool=tool)


def suggest_scope(entry: PermissionLogEntry, area_names: Iterable[str]) -> ScopeSuggestion:
    """Default scope for a rule created from ``entry``.

    A prompt raised inside a repository under an area suggests that project;
    one raised from an area's own config directory, or anywhere under an
    area, suggests the area; anything else suggests global.
    """
    areas = list(area_names)

    if entry.base_repo_path:
        for area in areas:
            marker = f"/{area}/"
            index = entry.raw_path.find(marker)
            if index > 0:
                path = f"{entry.raw_path[:index]}/{area}/{entry.base_repo_path}"
                return ScopeSuggestion(scope=Scope.project(path).scope_id, label=f"{area}/{entry.base_repo_path}")

    if entry.project.startswith(".claude-"):
        area = entry.project[len(".claude-"):]
        if area in areas:
            return ScopeSuggestion(scope=Scope.area(area).scope_id, label=f"{area.capitalize()} Area")

    for area in areas:
        if f"/{area}/" in entry.raw_path or f"/.claude-{area}" in entry.raw_path:
            return ScopeSuggestion(scope=Scope.area(area).scope_id, label=f"{area.capitalize()} Area")

    return ScopeSuggestion(scope=Scope.global_().scope_id, label="Global")


__all__ = [
    "DeleteResult",
    "PermissionLogEntry",
    "PermissionRequestLog",
    "RuleSuggestion",
    "ScopeSuggestion",
    "suggest_rule",
    "suggest_scope",
    "suggest_specific_path",
]
