from typing import Any, Dict, List, Optional

from ..config.constants import SYSTEM_PROMPT, USER_PROMPT


def build_messages(image_base64: str, mime_type: str) -> List[Dict[str, Any]]:
    """Build the system instruction plus one multimodal user message."""
    return [
        {
            "role": "system",
            "content": [
                {"type": "text", "text": SYSTEM_PROMPT},
            ],
        },
        {
            "role": "user",
            "content": [
                {"type": "text", "text": USER_PROMPT},
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{mime_type};base64,{image_base64}"},
                },
            ],
        },
    ]


def build_completion_payload(model: str, image_base64: str, mime_type: str) -> Dict[str, Any]:
    """Build the chat completions body. Streaming is always requested."""
    return {
        "model": model,
        "messages": build_messages(image_base64, mime_type),
        "stream": True,
    }


def build_headers(api_key: Optional[str]) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def extract_text(payload: Any) -> str:
    """Join the text of a non-streamed completion.

    Prefers ``choices[*].message.content`` and falls back to ``choices[*].text``.
    """
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""

    contents: List[str] = []
    for choice in choices:
        if not isinstance(choice, dict):
            continue
        message = choice.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, str) and content:
            contents.append(content)
        elif isinstance(choice.get("text"), str) and choice["text"]:
            contents.append(choice["text"])

    return "".join(contents)
