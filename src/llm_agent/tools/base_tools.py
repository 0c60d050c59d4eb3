"""Read-only workspace tools (view, list, grep, find) over a FileService.

Every tool takes the action input as a JSON object string and returns plain
text for the observation. Paths are relative to the service's work dir and
may not leave it.
"""

from __future__ import annotations

import fnmatch
import re
from pathlib import Path
from typing import Any, Iterator

from llm_agent.models.schemas import InvocationContext
from llm_agent.services.file_service import FileService
from llm_agent.tools import Tool, ToolInputError, parse_tool_input

MAX_GREP_MATCHES = 200
MAX_FIND_RESULTS = 500


def _schema(required: tuple[str, ...] = (), **properties: tuple[str, str]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            name: {"type": kind, "description": text} for name, (kind, text) in properties.items()
        },
        "required": list(required),
    }


class WorkspaceTools:
    def __init__(self, service: FileService) -> None:
        self.service = service
        self.root = Path(getattr(service, "work_dir", Path.cwd())).resolve()

    def _path(self, path: str) -> Path:
        resolved = (self.root / path).resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise PermissionError(f"{path} is outside the working directory")
        return resolved

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def _files(self, start: Path, name_glob: str | None = None) -> Iterator[Path]:
        if start.is_file():
            yield start
            return
        for candidate in sorted(start.rglob("*")):
            if candidate.is_file() and (name_glob is None or fnmatch.fnmatch(candidate.name, name_glob)):
                yield candidate

    def view_file(self, input: str, context: InvocationContext | None = None) -> str:
        args = parse_tool_input(input, required=("path",))
        lines = self.service.read_file(args["path"]).splitlines()
        first = int(args.get("offset") or 0)
        count = args.get("limit")
        last = first + int(count) if count else len(lines)
        body = "\n".join(
            f"{number:>4} | {line}" for number, line in enumerate(lines[first:last], first + 1)
        )
        return f"File: {args['path']}\n{body}"

    def list_directory(self, input: str, context: InvocationContext | None = None) -> str:
        args = parse_tool_input(input)
        entries = self.service.list_directory(args.get("path", "."))
        return "\n".join(entries) or "(empty directory)"

    def grep(self, input: str, context: InvocationContext | None = None) -> str:
        args = parse_tool_input(input, required=("pattern",))
        pattern = args["pattern"]
        if not isinstance(pattern, str) or not pattern:
            raise ToolInputError("pattern must be a non-empty string")
        try:
            regex = re.compile(pattern)
        except re.error:
            # Not a valid regex; search for the text as typed
            regex = re.compile(re.escape(pattern))

        hits: list[str] = []
        for file in self._files(self._path(args.get("path", ".")), args.get("include")):
            try:
                text = file.read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            for number, line in enumerate(text.splitlines(), 1):
                if not regex.search(line):
                    continue
                hits.append(f"{self._relative(file)}:{number}: {line.rstrip()}")
                if len(hits) == MAX_GREP_MATCHES:
                    hits.append(f"... (truncated at {MAX_GREP_MATCHES} matches)")
                    return "\n".join(hits)
        return "\n".join(hits) if hits else f"No matches for '{pattern}'"

    def find_files(self, input: str, context: InvocationContext | None = None) -> str:
        args = parse_tool_input(input, required=("pattern",))
        found: list[str] = []
        for file in self._files(self._path(args.get("path", ".")), args["pattern"]):
            if len(found) == MAX_FIND_RESULTS:
                found.append(f"... (truncated at {MAX_FIND_RESULTS} results)")
                break
            found.append(self._relative(file))
        return "\n".join(found) if found else f"No files matching '{args['pattern']}'"


def create_base_tools(service: FileService) -> list[Tool]:
    tools = WorkspaceTools(service)
    return [
        Tool(
            name="view_file",
            description="Show a file with line numbers. Use offset/limit to page through large files.",
            parameters=_schema(
                ("path",),
                path=("string", "File path relative to the workspace"),
                offset=("integer", "First line to show (0-based)"),
                limit=("integer", "Number of lines to show"),
            ),
            execute=tools.view_file,
        ),
        Tool(
            name="list_directory",
            description="List a directory; subdirectories end with '/'.",
            parameters=_schema(path=("string", "Directory path (default: '.')")),
            execute=tools.list_directory,
        ),
        Tool(
            name="grep",
            description=(
                "Search file contents with a regex (or literal text) and return "
                "matches as path:line: text. Narrow with include, e.g. '*.py'."
            ),
            parameters=_schema(
                ("pattern",),
                pattern=("string", "Regex or literal text to search for"),
                path=("string", "Directory or file to search (default: '.')"),
                include=("string", "File name glob, e.g. '*.py'"),
            ),
            execute=tools.grep,
        ),
        Tool(
            name="find_files",
            description="Find files whose name matches a glob, searching below path.",
            parameters=_schema(
                ("pattern",),
                pattern=("string", "File name glob, e.g. 'test_*.py'"),
                path=("string", "Directory to search (default: '.')"),
            ),
            execute=tools.find_files,
        ),
    ]
