# src/backend/llm_backend.py — v1
"""Inspection backend driven by a chat-completion model.

The model is asked to answer in one of two grammars (see
inspection/parser.py). Long answers may be cut off by the token limit,
so the conversation continues for up to ``max_rounds`` rounds until the
answer ends with the end mark, which is stripped before returning.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Literal

from copilens.backend.base_backend import BackendError, InspectionBackend
from copilens.concurrency.cancellation import OperationCancelled, race_cancellation
from copilens.core.models import Inspection
from copilens.inspection.parser import iter_code_lines, number_lines
from copilens.llm.models import Message

if TYPE_CHECKING:
    from copilens.concurrency.cancellation import CancelToken
    from copilens.config.settings import Settings
    from copilens.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

END_MARK = "<|endofresponse|>"
DEFAULT_MAX_ROUNDS = 3

_LINE_SPLIT = re.compile(r"\r?\n")

_TAGGED_SYSTEM = """\
You are an expert at Java and code refactoring. Identify code blocks that can
be rewritten with features of Java {java_version} and earlier to make them more
readable, efficient and concise.
Comment on the rewritable code directly in the original source, placing these
four lines immediately above the problematic line:
// @PROBLEM: problem in less than 10 words, starting with a gerund or noun
// @SOLUTION: fix in less than 10 words, starting with a verb
// @INDICATOR: one word of the problematic code (keyword, name or value), '<null>' if none
// @SEVERITY: one of HIGH, MIDDLE, LOW
Reply with the complete original code plus your comments and nothing else.
Never comment on code that is well written or simple enough.
Do not output markdown. End your response with "//{end_mark}".
"""

_JSON_SYSTEM = """\
You are an expert at Java. Find code that can be improved with newer syntax or
built-in APIs available in Java {java_version}.
Each line of the code is prefixed with its zero-based line number as /* n */.
Only suggest language or JDK features, never third-party libraries or style.
Reply with an RFC 8259 JSON array, one object per suggestion:
[{{"problem": {{"position": {{"startLine": 0, "endLine": 0}}, "description": "short problem"}},
  "solution": "Use <feature> (Java <version>)"}}]
Reply [] when there is nothing to suggest. Do not wrap the array in backticks.
End your response with "//{end_mark}".
"""

_USER_CODE = """\
The project uses Java {java_version}. Suggest improvements for the code below.
{code}
"""

_MORE = "Any more?"
_CONTINUE = (
    'Continue where you left off, or end your response with "{end_mark}" '
    "to finish the conversation."
)


class LLMInspectionBackend(InspectionBackend):
    """Runs inspections through a BaseLLMClient.

    Args:
        client: Chat-completion client.
        inspection_format: ``"tagged"`` or ``"json"``.
        java_version: Target language level mentioned in the prompts.
        max_rounds: Upper bound on continuation rounds per request.
        max_tokens: Completion budget per round.
        temperature: Sampling temperature.
    """

    def __init__(
        self,
        client: BaseLLMClient,
        inspection_format: Literal["tagged", "json"] = "json",
        java_version: int = 17,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        end_mark: str = END_MARK,
    ) -> None:
        self._client = client
        self._format = inspection_format
        self._java_version = java_version
        self._max_rounds = max(1, max_rounds)
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._end_mark = end_mark

    @classmethod
    def from_settings(cls, client: BaseLLMClient, settings: Settings) -> LLMInspectionBackend:
        return cls(
            client,
            inspection_format=settings.inspection_format,
            java_version=settings.java_version,
            max_rounds=settings.inspection_max_rounds,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
        )

    async def run_inspection(
        self,
        document_text: str,
        token: CancelToken | None = None,
        *,
        start_line: int = 0,
        end_line: int | None = None,
        previous: list[Inspection] | None = None,
    ) -> str:
        code = self._format_code(document_text, start_line, end_line)
        if not document_text.strip() or not code.strip():
            logger.info("Nothing but comments and blank lines to inspect")
            return ""
        messages = [
            Message(
                role="user",
                content=_USER_CODE.format(java_version=self._java_version, code=code),
            )
        ]
        if previous is not None:
            prior = self._render_previous(document_text, previous, start_line, end_line)
            messages.append(
                Message(role="assistant", content=f"{prior}\n//{self._end_mark}")
            )
            messages.append(Message(role="user", content=_MORE))
        return await self.converse(messages, token)

    async def converse(self, messages: list[Message], token: CancelToken | None = None) -> str:
        """Send `messages`, continuing until the end mark or the round limit."""
        system = self._system_prompt()
        history = list(messages)
        answer = ""
        rounds = 0
        while True:
            rounds += 1
            if token is not None:
                token.raise_if_cancelled()
            try:
                response = await race_cancellation(
                    self._client.complete(
                        list(history),
                        system=system,
                        max_tokens=self._max_tokens,
                        temperature=self._temperature,
                    ),
                    token,
                )
            except OperationCancelled:
                raise
            except Exception as e:
                logger.error("Completion via %s failed: %s", self._client.provider_name, e)
                raise BackendError(f"{self._client.provider_name} completion failed: {e}") from e

            answer += response.content
            history.append(Message(role="assistant", content=response.content))
            if answer.rstrip().endswith(self._end_mark) or rounds >= self._max_rounds:
                break
            history.append(
                Message(role="user", content=_CONTINUE.format(end_mark=self._end_mark))
            )

        logger.debug("Inspection answer complete after %d rounds", rounds)
        return answer.replace(f"//{self._end_mark}", "").replace(self._end_mark, "").strip()

    # --- Internal helpers ---

    def _system_prompt(self) -> str:
        template = _JSON_SYSTEM if self._format == "json" else _TAGGED_SYSTEM
        return template.format(java_version=self._java_version, end_mark=self._end_mark)

    def _format_code(self, document_text: str, start_line: int, end_line: int | None) -> str:
        lines = _LINE_SPLIT.split(document_text)
        if self._format == "json":
            return number_lines(lines, start_line, end_line)
        last = len(lines) - 1 if end_line is None else end_line
        # the tagged grammar addresses lines by their index among code lines
        return "\n".join(line for _, line in iter_code_lines(lines[start_line : last + 1]))

    def _render_previous(
        self,
        document_text: str,
        previous: list[Inspection],
        start_line: int,
        end_line: int | None,
    ) -> str:
        """Earlier findings written in the grammar the model answers in."""
        if self._format == "json":
            return json.dumps(
                [
                    {
                        "problem": {
                            "position": {"startLine": p.start_line, "endLine": p.end_line},
                            "description": p.description,
                        },
                        "solution": p.solution,
                    }
                    for p in previous
                ],
                indent=2,
            )
        by_line: dict[int, list[Inspection]] = {}
        for p in previous:
            by_line.setdefault(p.start_line, []).append(p)
        lines = _LINE_SPLIT.split(document_text)
        last = len(lines) - 1 if end_line is None else end_line
        out: list[str] = []
        for index, line in iter_code_lines(lines[start_line : last + 1]):
            for p in by_line.get(start_line + index, []):
                indent = line[: len(line) - len(line.lstrip())]
                out.extend(
                    [
                        f"{indent}// @PROBLEM: {p.description}",
                        f"{indent}// @SOLUTION: {p.solution}",
                        f"{indent}// @INDICATOR: {p.indicator or '<null>'}",
                        f"{indent}// @SEVERITY: {p.severity}",
                    ]
                )
            out.append(line)
        return "\n".join(out)
