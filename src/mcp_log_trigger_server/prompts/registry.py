"""MCP prompt registry.

Prompts are predefined conversation/workflow templates that the client can invoke explicitly.
"""

from __future__ import annotations

import json
from typing import Any

from mcp.server.fastmcp import FastMCP


def _format_json(text: str) -> str:
    """Pretty-print JSON text for prompt display; other text is returned as is."""
    try:
        return json.dumps(json.loads(text), indent=2, ensure_ascii=False)
    except ValueError:
        return text


def register_prompts(mcp: FastMCP) -> None:
    """Register prompt templates on the MCP server."""

    @mcp.prompt()
    def review_trigger(
        trigger: str,
        log_path: str | None = None,
        timestamp_format: str | None = None,
    ) -> list[dict[str, Any]]:
        """Build a prompt that reviews a trigger definition against sample logs."""
        call_lines = [f"- trigger: {trigger}"]
        if log_path is not None:
            tool = "test_trigger_files"
            call_lines.append(f'- log_paths: ["{log_path}"]')
        else:
            tool = "test_trigger"
            call_lines.append("- log_text: (ask the user for a few representative lines)")
        if timestamp_format is not None:
            call_lines.append(f"- timestamp_format: {timestamp_format}")
        call_block = "\n".join(call_lines)

        messages: list[dict[str, Any]] = [
            {
                "role": "system",
                "content": (
                    "You are a careful reviewer of log alerting rules. A trigger is a recipe "
                    "of regex and delay steps; patterns must match whole lines, <<name>> "
                    "captures a token and @<<name>>@ reuses a captured value. Base every "
                    "claim on tool output; do not guess how the engine behaves."
                ),
            },
            {
                "role": "user",
                "content": (
                    f"Review the trigger using {tool}. Follow this workflow:\n"
                    f"- Call {tool} with the parameters below.\n"
                    "- Report regex_errors first; a pattern that does not compile never matches.\n"
                    "- For each step, say whether it fired, timed out, was cancelled or is "
                    "still waiting, quoting the matched lines (line_num and line).\n"
                    "- Point out rejected_matches and which params condition failed.\n"
                    "- If a limitation is set, explain which firings were suppressed.\n\n"
                    f"Call {tool} with:\n"
                    f"{call_block}\n\n"
                    "Return this structure:\n"
                    "1) Verdict (fires / does not fire, 1 sentence)\n"
                    "2) Step walkthrough (1 bullet per step)\n"
                    "3) Problems found (patterns, durations, next references)\n"
                    "4) Suggested fixes (concrete edits to the trigger JSON)\n"
                ),
            },
        ]
        if log_path is not None:
            messages.append(
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "text",
                            "text": "Optional: if you need raw context, you can read the log via:",
                        },
                        {"type": "resource", "uri": f"log://{log_path}"},
                    ],
                }
            )
        return messages

    @mcp.prompt()
    def explain_trigger_result(result: str) -> list[dict[str, Any]]:
        """Build a prompt that explains a test_trigger result in plain language."""
        return [
            {
                "role": "system",
                "content": (
                    "Explain trigger evaluation results to an operator who did not write the "
                    "rule. Be concise and do not invent lines that are not in the result."
                ),
            },
            {
                "role": "user",
                "content": (
                    "Explain this trigger test result:\n\n"
                    f"{_format_json(result)}\n\n"
                    "Cover: whether it triggered and why, the step that blocked it (if any), "
                    "suppressed firings, and MULTI instances per captured key."
                ),
            },
        ]
