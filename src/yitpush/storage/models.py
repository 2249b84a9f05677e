"""Data models for yitpush."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class CaptureResult:
    """Outcome of a captured process: success carries stdout, failure carries stderr."""

    ok: bool
    stdout: str = ""
    stderr: str = ""

    @classmethod
    def success(cls, stdout: str) -> CaptureResult:
        return cls(ok=True, stdout=stdout)

    @classmethod
    def failure(cls, stderr: str) -> CaptureResult:
        return cls(ok=False, stderr=stderr)


@dataclass
class Branch:
    """A local or remote git branch."""

    name: str
    type: str = "local"
    date: str = ""

    @property
    def is_remote(self) -> bool:
        return self.type == "remote"


@dataclass
class AzureRepo:
    name: str
    remote_url: str
    id: str = ""
    project_id: str = ""


@dataclass
class Variable:
    name: str
    value: str = ""
    is_secret: bool = False


@dataclass
class VariableGroup:
    id: str = "-"
    name: str = "-"
    description: str = ""
    variables: list[Variable] = field(default_factory=list)


@dataclass
class WorkItem:
    """A tracked Azure DevOps work item (user story, task, ...)."""

    id: int
    title: str = "-"
    type: str = "-"
    state: str = "-"
    assigned_to: str = "unassigned"
    area_path: str = ""
    iteration_path: str = ""
    child_ids: list[int] = field(default_factory=list)
