"""
Pieces shared by both protocol variants.
"""

MAX_TOKENS = 8192

SUMMARY_INSTRUCTIONS = [
    "Compress the following messages into a single summary, including the chat history so far. ",
    "Even if Chat History is empty, you should still summarize the messages. ",
    "Remove any unnecessary details and keep it concise. ",
    "If you consider any information irrelevant, feel free to omit it. ",
    "Include only the most important points. ",
    "If any information is considered specific/important, please include it as such.",
    "RETURN ONLY THE SUMMARY, DO NOT RETURN ANY OTHER TEXT.",
]


def system_text(system: str, history: str) -> str:
    """System prompt sent with every chat request; history rides along as context."""
    return f"{system}\n\n Chat history so far:\n{history}"


def compression_system_text(history: str) -> str:
    return f"Chat history so far:\n{history}"


def summary_instruction(keep_task: bool = False) -> str:
    lines = list(SUMMARY_INSTRUCTIONS)
    if keep_task:
        lines.insert(1, "Keep the initial task description intact. ")
    return "\n".join(lines)
