"""Unified diff parsing into a structured change-set."""

import logging
import re
from dataclasses import dataclass, field
from typing import Mapping

from gatekeeper.errors import MalformedDiffError
from gatekeeper.models import AddedLine, ChangeSet, FileDiff, FileStatus, Hunk

logger = logging.getLogger(__name__)

# Pattern to parse diff hunk headers: @@ -start,count +start,count @@ section
_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

_DEV_NULL = "/dev/null"

# Extended header lines that carry no information we need
_IGNORED_HEADERS = (
  "index ",
  "old mode ",
  "new mode ",
  "similarity index ",
  "dissimilarity index ",
  "copy from ",
  "copy to ",
)


@dataclass
class _HunkBuilder:
  start_line: int
  old_remaining: int
  new_remaining: int
  next_line: int
  added: list[AddedLine] = field(default_factory=list)

  @property
  def is_open(self) -> bool:
    return self.old_remaining > 0 or self.new_remaining > 0

  def build(self) -> Hunk:
    return Hunk(start_line=self.start_line, added_lines=tuple(self.added))


@dataclass
class _FileBuilder:
  path: str | None = None
  old_path: str | None = None
  is_new: bool = False
  is_deleted: bool = False
  is_renamed: bool = False
  is_binary: bool = False
  hunks: list[Hunk] = field(default_factory=list)

  def build(self, line_number: int) -> FileDiff:
    path = self.path or self.old_path
    if not path:
      raise MalformedDiffError("File header without a path", line_number)

    if self.is_binary:
      status = FileStatus.BINARY
    elif self.is_deleted:
      status = FileStatus.DELETED
    elif self.is_new:
      status = FileStatus.ADDED
    elif self.is_renamed:
      status = FileStatus.RENAMED
    else:
      status = FileStatus.MODIFIED

    return FileDiff(
      path=path,
      status=status,
      hunks=() if self.is_binary else tuple(self.hunks),
      old_path=self.old_path if self.is_renamed else None,
    )


def _strip_prefix(path: str) -> str:
  """Drop the a/ or b/ prefix git puts on paths."""
  path = path.split("\t")[0]
  if path.startswith(("a/", "b/")):
    return path[2:]
  return path


def _parse_git_header(line: str) -> tuple[str | None, str | None]:
  """Extract (old, new) paths from a `diff --git a/x b/y` line."""
  rest = line[len("diff --git "):]
  if " b/" not in rest:
    return None, None
  old, new = rest.split(" b/", 1)
  return _strip_prefix(old), new


def parse_hunk_header(line: str, line_number: int | None = None) -> tuple[int, int, int, int]:
  """Parse a hunk header into (old_start, old_count, new_start, new_count).

  Raises:
    MalformedDiffError: If the header does not follow the unified format.
  """
  match = _HUNK_HEADER.match(line)
  if not match:
    raise MalformedDiffError(f"Unparsable hunk header: {line[:80]!r}", line_number)
  old_start, old_count, new_start, new_count = match.groups()
  return (
    int(old_start),
    int(old_count) if old_count is not None else 1,
    int(new_start),
    int(new_count) if new_count is not None else 1,
  )


class DiffScanner:
  """Parses unified diff text into a ChangeSet.

  Supports git extended headers (new, deleted, renamed and binary files)
  as well as plain `---`/`+++` unified diffs. Parsing either produces a
  complete ChangeSet or raises MalformedDiffError.
  """

  def scan(
    self,
    raw_diff: str,
    pr_description: str = "",
    file_list: Mapping[str, FileStatus] | None = None,
  ) -> ChangeSet:
    files = self._parse(raw_diff)

    seen = {f.path for f in files}
    for path, status in sorted((file_list or {}).items()):
      if path not in seen:
        # Listed by the gateway but absent from the diff text
        files.append(FileDiff(path=path, status=status))
        seen.add(path)

    logger.debug("Scanned diff: %d file(s)", len(files))
    return ChangeSet(files=tuple(files), pr_description=pr_description)

  def _parse(self, raw_diff: str) -> list[FileDiff]:
    files: list[FileDiff] = []
    paths: set[str] = set()
    current: _FileBuilder | None = None
    hunk: _HunkBuilder | None = None
    line_number = 0

    def finish_file() -> None:
      nonlocal current, hunk
      if current is None:
        return
      if hunk is not None:
        current.hunks.append(hunk.build())
        hunk = None
      file_diff = current.build(line_number)
      if file_diff.path in paths:
        raise MalformedDiffError(f"File appears twice in diff: {file_diff.path}", line_number)
      paths.add(file_diff.path)
      files.append(file_diff)
      current = None

    for line_number, line in enumerate(raw_diff.split("\n"), start=1):
      line = line.rstrip("\r")

      if line.startswith("diff --git "):
        finish_file()
        current = _FileBuilder()
        current.old_path, current.path = _parse_git_header(line)
        continue

      if hunk is not None and hunk.is_open and not line.startswith("@@"):
        self._consume_hunk_line(hunk, line, line_number)
        continue

      if current is not None and current.is_binary:
        # Binary patch payload runs until the next file header
        continue

      if line.startswith("@@"):
        if current is None:
          raise MalformedDiffError("Hunk header before any file header", line_number)
        old_start, old_count, new_start, new_count = parse_hunk_header(line, line_number)
        if hunk is not None:
          current.hunks.append(hunk.build())
        hunk = _HunkBuilder(
          start_line=new_start,
          old_remaining=old_count,
          new_remaining=new_count,
          next_line=new_start,
        )
        continue

      if line.startswith("--- "):
        if current is None or current.hunks or hunk is not None:
          # Plain unified diff without a git header
          finish_file()
          current = _FileBuilder()
        old = line[4:].split("\t")[0]
        if old != _DEV_NULL:
          current.old_path = _strip_prefix(old)
        else:
          current.is_new = True
        continue

      if current is None:
        continue

      if hunk is not None and line[:1] in ("+", "-", " ") and not line.startswith("+++ "):
        # Body line past the counts its hunk header declared
        raise MalformedDiffError(f"Line outside any hunk: {line[:80]!r}", line_number)

      if line.startswith("+++ "):
        new = line[4:].split("\t")[0]
        if new == _DEV_NULL:
          current.is_deleted = True
        else:
          current.path = _strip_prefix(new)
      elif line.startswith("new file mode"):
        current.is_new = True
      elif line.startswith("deleted file mode"):
        current.is_deleted = True
      elif line.startswith("rename from "):
        current.is_renamed = True
        current.old_path = line[len("rename from "):]
      elif line.startswith("rename to "):
        current.is_renamed = True
        current.path = line[len("rename to "):]
      elif line.startswith("Binary files ") or line.startswith("GIT binary patch"):
        current.is_binary = True
      elif line.startswith(_IGNORED_HEADERS) or line.startswith("\\"):
        continue

    finish_file()
    return files

  def _consume_hunk_line(self, hunk: _HunkBuilder, line: str, line_number: int) -> None:
    if line.startswith("+"):
      hunk.added.append(AddedLine(number=hunk.next_line, text=line[1:]))
      hunk.next_line += 1
      hunk.new_remaining -= 1
    elif line.startswith("-"):
      hunk.old_remaining -= 1
    elif line.startswith(" ") or line == "":
      # Some tools strip the leading space from empty context lines
      hunk.next_line += 1
      hunk.old_remaining -= 1
      hunk.new_remaining -= 1
    elif line.startswith("\\"):
      return  # "\ No newline at end of file"
    else:
      raise MalformedDiffError(f"Unexpected line inside hunk: {line[:80]!r}", line_number)


def scan_diff(
  raw_diff: str,
  pr_description: str = "",
  file_list: Mapping[str, FileStatus] | None = None,
) -> ChangeSet:
  """Parse raw unified diff text into a ChangeSet."""
  return DiffScanner().scan(raw_diff, pr_description, file_list)
