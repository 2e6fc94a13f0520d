"""Pytest fixtures."""

from typing import Callable

import pytest
from gatekeeper.models import ChangeSet, CheckState, CheckStatus, FileStatus
from gatekeeper.rules import RuleCatalog, load_catalog

MakeDiff = Callable[..., str]


def _file_diff(path: str, lines: list[str], status: FileStatus) -> list[str]:
  if status == FileStatus.ADDED:
    header = [
      f"diff --git a/{path} b/{path}",
      "new file mode 100644",
      "index 0000000..1a2b3c4",
      "--- /dev/null",
      f"+++ b/{path}",
      f"@@ -0,0 +1,{len(lines)} @@",
    ]
    return header + [f"+{line}" for line in lines]

  header = [
    f"diff --git a/{path} b/{path}",
    "index 1a2b3c4..5d6e7f8 100644",
    f"--- a/{path}",
    f"+++ b/{path}",
    f"@@ -1,1 +1,{len(lines) + 1} @@",
    " // unchanged",
  ]
  return header + [f"+{line}" for line in lines]


@pytest.fixture
def make_diff() -> MakeDiff:
  """Build git-style diff text from (path, added lines, status) triples.

  Modified files get one leading context line, so their added lines start
  at line 2. Added files start at line 1.
  """

  def build(*files: tuple[str, list[str], FileStatus]) -> str:
    out: list[str] = []
    for path, lines, status in files:
      out.extend(_file_diff(path, lines, status))
    return "\n".join(out) + "\n"

  return build


@pytest.fixture(scope="session")
def catalog() -> RuleCatalog:
  return load_catalog()


@pytest.fixture
def credential_diff(make_diff: MakeDiff) -> str:
  return make_diff(("src/api/client.ts", ['const API_KEY = "sk_live_abc123";'], FileStatus.MODIFIED))


@pytest.fixture
def large_component_diff(make_diff: MakeDiff) -> str:
  body = [f"  const row{i} = {i};" for i in range(248)]
  lines = ["export function UserCard() {", *body, "}"]
  return make_diff(("src/components/UserCard.tsx", lines, FileStatus.ADDED))


@pytest.fixture
def clean_diff(make_diff: MakeDiff) -> str:
  module = ["export interface User {id: string; name: string; email?: string;}"]
  test = [
    'import { describe, it, expect } from "vitest";',
    'import type { User } from "./user";',
    "",
    'describe("User", () => {',
    '  it("has an id and a name", () => {',
    '    const user: User = { id: "1", name: "Ada" };',
    '    expect(user.id).toBe("1");',
    "  });",
    "});",
  ]
  return make_diff(
    ("src/types/user.ts", module, FileStatus.ADDED),
    ("src/types/user.test.ts", test, FileStatus.ADDED),
  )


@pytest.fixture
def passing_checks() -> list[CheckStatus]:
  return [CheckStatus("build", CheckState.PASS), CheckStatus("unit-tests", CheckState.PASS)]


@pytest.fixture
def empty_change_set() -> ChangeSet:
  return ChangeSet()
