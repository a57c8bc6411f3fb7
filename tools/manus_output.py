"""Flatten a Manus task's output messages into a single text result.

Only assistant messages count. Text spans are emitted as-is and file
references as markdown links, joined by blank lines in the order Manus
returned them.
"""

from dataclasses import dataclass
from typing import List, Optional

from tools.manus_client import OutputBlock, TaskRecord

NO_OUTPUT = "(no output)"
NO_ASSISTANT_OUTPUT = "(no assistant output)"
DEFAULT_FILE_LABEL = "file"


@dataclass
class ResultSummary:
    text: str
    credits_used: Optional[float] = None


def format_file_reference(block: OutputBlock) -> str:
    """Render a file block as a markdown link, e.g. [report.pdf](https://...)."""
    label = block.file_name or DEFAULT_FILE_LABEL
    return f"[{label}]({block.file_url})"


def _block_fragments(block: OutputBlock) -> List[str]:
    fragments = []
    if block.is_text:
        fragments.append(block.text)
    if block.is_file:
        fragments.append(format_file_reference(block))
    return fragments


def extract_result(task: TaskRecord) -> str:
    """
    Join the assistant output of a task into one string.

    Returns NO_OUTPUT when the task has no messages at all, and
    NO_ASSISTANT_OUTPUT when it has messages but none of them yield text or
    files. The two are kept distinct so an empty result can be diagnosed.
    """
    if not task.output:
        return NO_OUTPUT

    parts = []
    for message in task.output:
        if message.role != "assistant":
            continue
        for block in message.content:
            parts.extend(_block_fragments(block))

    return "\n\n".join(parts) or NO_ASSISTANT_OUTPUT


def summarize_result(task: TaskRecord) -> ResultSummary:
    return ResultSummary(text=extract_result(task), credits_used=task.credit_usage)
