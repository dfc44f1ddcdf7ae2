# =============================================================================
# core/services/repair_service.py - Build Repair Assistant
# =============================================================================
# Runs inside the CI checkout after `flutter build apk` fails. Sends the tail
# of the build log plus the project's pubspec.yaml and Gradle file to an
# OpenAI-compatible chat model, which answers with one corrected file:
#
#   {"filename": "path/to/file", "content": "new full file content"}
#   {"error": "unknown"}    (no fix found)
#
# Usage:
#   from core.services.repair_service import RepairService
#   fix = RepairService().repair(Path("build_log.txt"))
# =============================================================================

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from openai import OpenAI

from app.config import settings
from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

LOG_TAIL_CHARS = 2000
REPAIR_TEMPERATURE = 0.1
CONTEXT_FILES = ("pubspec.yaml", "android/app/build.gradle")

PROMPT_TEMPLATE = """You are a Senior Flutter DevOps Engineer.
My 'flutter build apk' failed. Here is the last part of the log:
---
{log}
---

Here is my pubspec.yaml:
{pubspec}

Here is my android/app/build.gradle:
{gradle}

ANALYZE the error. If it is a version conflict, minSdk issue, or syntax error, provide the FULL CORRECTED CONTENT of the file that needs changing.

Return JSON ONLY in this format:
{{
    "filename": "path/to/file",
    "content": "new full file content"
}}
If you cannot fix it, return {{"error": "unknown"}}.
"""


class RepairError(ApplicationError):
    """Raised when no fix can be produced or applied."""

    def __init__(self, message: str, code: str = "REPAIR_FAILED", **kwargs):
        super().__init__(message, code=code, **kwargs)


@dataclass
class RepairFix:
    """A single-file fix proposed by the model."""
    filename: str
    content: str


def strip_code_fences(text: str) -> str:
    """Remove ```json / ``` markers the model may wrap around its answer."""
    return text.replace("```json", "").replace("```", "").strip()


def parse_fix(response_text: str) -> RepairFix:
    """
    Parse the model's answer.

    Raises:
        RepairError: invalid JSON, an "error" answer, or missing fields
    """
    try:
        data = json.loads(strip_code_fences(response_text))
    except json.JSONDecodeError as e:
        raise RepairError(
            message=f"Model returned invalid JSON: {e}",
            code="INVALID_RESPONSE",
            details={"response": response_text[:500]},
        )

    if not isinstance(data, dict) or data.get("error"):
        raise RepairError(
            message="AI could not determine a fix",
            code="NO_FIX",
        )

    filename = data.get("filename")
    content = data.get("content")
    if not isinstance(filename, str) or not filename or not isinstance(content, str):
        raise RepairError(
            message="Model answer is missing filename or content",
            code="INVALID_RESPONSE",
        )

    return RepairFix(filename=filename, content=content)


class RepairService:
    """
    Proposes and applies a single-file fix for a failed Flutter build.

    Pass `client` to inject a preconfigured (or mocked) OpenAI client.
    """

    def __init__(
        self,
        client: OpenAI | None = None,
        model: str | None = None,
        project_dir: Path | None = None,
    ):
        self.client = client or OpenAI(
            api_key=settings.REPAIR_API_KEY,
            base_url=settings.REPAIR_API_URL,
        )
        self.model = model or settings.REPAIR_MODEL
        self.project_dir = (project_dir or Path.cwd()).resolve()

    def read_log_tail(self, log_path: Path) -> str:
        """
        Last LOG_TAIL_CHARS characters of the build log.

        Raises:
            RepairError: the log does not exist
        """
        if not log_path.exists():
            raise RepairError(
                message=f"No build log found at {log_path}",
                code="NO_BUILD_LOG",
                suggestion="Pipe the build output to build_log.txt before running repair",
            )
        return log_path.read_text(encoding="utf-8", errors="replace")[-LOG_TAIL_CHARS:]

    def read_context(self) -> dict[str, str]:
        """Current contents of the project files shown to the model."""
        context: dict[str, str] = {}
        for relative in CONTEXT_FILES:
            path = self.project_dir / relative
            try:
                context[relative] = path.read_text(encoding="utf-8")
            except OSError:
                logger.warning(f"Could not read {relative}, proceeding with logs only")
                context[relative] = ""
        return context

    def build_prompt(self, log_tail: str, context: dict[str, str]) -> str:
        return PROMPT_TEMPLATE.format(
            log=log_tail,
            pubspec=context.get("pubspec.yaml", ""),
            gradle=context.get("android/app/build.gradle", ""),
        )

    def propose_fix(self, log_path: Path) -> RepairFix:
        """
        Ask the model for a fix.

        Raises:
            RepairError: missing log, failed API call, or unusable answer
        """
        log_tail = self.read_log_tail(log_path)
        prompt = self.build_prompt(log_tail, self.read_context())

        logger.info(f"Consulting {self.model} for a build fix...")
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                temperature=REPAIR_TEMPERATURE,
                response_format={"type": "json_object"},
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            raise RepairError(
                message=f"Repair API call failed: {e}",
                code="API_ERROR",
                suggestion="Check REPAIR_API_KEY and REPAIR_API_URL",
            )

        response_text = response.choices[0].message.content or ""
        logger.debug(f"Repair response: {response_text[:200]}...")
        return parse_fix(response_text)

    def apply_fix(self, fix: RepairFix) -> Path:
        """
        Write the fix, refusing paths outside the project directory.

        Returns:
            Absolute path of the patched file

        Raises:
            RepairError: target path escapes the project directory
        """
        target = (self.project_dir / fix.filename).resolve()
        if not target.is_relative_to(self.project_dir):
            raise RepairError(
                message=f"Refusing to write outside the project: {fix.filename}",
                code="UNSAFE_PATH",
            )

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(fix.content, encoding="utf-8")
        logger.info(f"Applied fix to: {fix.filename}")
        return target

    def repair(self, log_path: Path) -> Path:
        """Propose a fix and apply it. Returns the patched file path."""
        fix = self.propose_fix(log_path)
        return self.apply_fix(fix)
