"""In-memory result ledger accumulated by one audit unit."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterator, Mapping

from .codes import DB_UPDATED_CODES, ResultCode, render


@dataclass(frozen=True)
class Finding:
    code: ResultCode
    message: str
    status_changed_to_ok: bool = False

    def as_dict(self) -> dict[str, str]:
        return {self.code.value: self.message}


def is_status_changed_to_ok(finding: Finding) -> bool:
    """Completed findings are only status changes whose new status is ok."""
    return finding.code == ResultCode.STATUS_CHANGED and finding.status_changed_to_ok


class AuditResults:
    """Ordered findings for one subject, plus enough context to report them."""

    def __init__(
        self,
        *,
        object_id: str,
        actual_version: int | None = None,
        storage_area: str | None = None,
        check_name: str | None = None,
    ) -> None:
        self.object_id = object_id
        self.actual_version = actual_version
        self.storage_area = storage_area
        self.check_name = check_name
        self._findings: list[Finding] = []

    def add_result(self, code: ResultCode, args: Any = None) -> Finding:
        if args is None:
            bound: dict[str, Any] = {}
        elif isinstance(args, Mapping):
            bound = dict(args)
        else:
            bound = {"addl": args}
        bound.setdefault("actual_version", self.actual_version)
        to_ok = code == ResultCode.STATUS_CHANGED and str(bound.get("new_status")) == "ok"
        finding = Finding(code=code, message=render(code, bound), status_changed_to_ok=to_ok)
        self._findings.append(finding)
        return finding

    def remove_db_updated_results(self) -> None:
        self._findings = [item for item in self._findings if item.code not in DB_UPDATED_CODES]

    def contains_result_code(self, code: ResultCode) -> bool:
        return any(item.code == code for item in self._findings)

    def codes(self) -> list[ResultCode]:
        return [item.code for item in self._findings]

    def findings(self) -> list[Finding]:
        return list(self._findings)

    def empty(self) -> bool:
        return not self._findings

    def to_list(self) -> list[dict[str, str]]:
        return [item.as_dict() for item in self._findings]

    def completed_results(self) -> list[dict[str, str]]:
        return [item.as_dict() for item in self._findings if is_status_changed_to_ok(item)]

    def error_results(self) -> list[dict[str, str]]:
        return [item.as_dict() for item in self._findings if not is_status_changed_to_ok(item)]

    def results_as_string(self) -> str:
        messages = " && ".join(item.message for item in self._findings)
        return (
            f"{self.check_name} (actual location: {self.storage_area}; "
            f"actual version: {self.actual_version}) {messages}"
        )

    def result_summary_msg(self) -> str:
        if self.error_results():
            return "⚠️ fixity check failed, investigate errors"
        return "✅ fixity check passed"

    def to_json_payload(self) -> dict[str, Any]:
        return {"subjectId": self.object_id, "results": self.to_list()}

    def to_json(self) -> str:
        return json.dumps(self.to_json_payload(), ensure_ascii=False)

    def __iter__(self) -> Iterator[Finding]:
        return iter(list(self._findings))

    def __len__(self) -> int:
        return len(self._findings)

    def __repr__(self) -> str:
        return f"AuditResults(object_id={self.object_id!r}, codes={[code.value for code in self.codes()]})"
