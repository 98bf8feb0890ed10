"""System prompt assembly.

The prompt is a pure function of the assistant settings, the language of the
latest user message, and the rendered business context, so the same inputs
always produce the same prompt.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from modern.llm.language import ARABIC, ENGLISH

if TYPE_CHECKING:
    from modern.store.models import AssistantSettings

_FALLBACK_NAME = "Modern"

_GENERIC_INSTRUCTIONS = {
    ARABIC: (
        "أنت مساعد ذكي متخصص في مساعدة الشركات. ساعد المستخدم بطريقة احترافية ومنظمة."
    ),
    ENGLISH: (
        "You are an intelligent assistant specialised in helping businesses. "
        "Help the user in a professional, organised way."
    ),
}

_TEMPLATES = {
    ARABIC: """\
أنت {name}، مساعد ذكي يعمل لصالح صاحب الشركة.

{instructions}

قدراتك:
- تتذكر كل ما تمت مشاركته في الرسائل السابقة من هذه المحادثة.
- يمكنك الاستفادة من بيانات أنظمة العمل المتصلة (Gmail وتقويم Google) عندما تُرفق أدناه.
- تساعد في إجراءات العمل والمهام، وتقترح التحسينات عند الحاجة.
- أجب دائماً باللغة التي استخدمها المستخدم في رسالته الأخيرة. رسالته الأخيرة بالعربية، لذا أجب بالعربية.""",
    ENGLISH: """\
You are {name}, an intelligent AI assistant working for the business owner.

{instructions}

Your capabilities:
- You remember everything shared earlier in this conversation.
- You can use data from connected business systems (Gmail, Google Calendar) when it is provided below.
- You help with business processes and tasks, and suggest improvements when appropriate.
- Always reply in the language the user used in their latest message. Their latest message is in English, so reply in English.""",
}

_CONTEXT_HEADINGS = {
    ARABIC: "# سياق العمل الحالي",
    ENGLISH: "# Current Business Context",
}


def build_system_prompt(
    assistant: AssistantSettings,
    language: str,
    business_context: str = "",
    override: str | None = None,
) -> str:
    """Compose the system prompt for one turn.

    Args:
        assistant: Persisted assistant name and custom instructions.
        language: ``"ar"`` or ``"en"``, detected from the latest user message.
        business_context: Rendered enrichment block; omitted when empty.
        override: Caller-supplied prompt that replaces everything else.

    Returns:
        The system prompt text.
    """
    if override:
        return override

    lang = language if language in _TEMPLATES else ENGLISH
    instructions = assistant.system_instructions.strip() or _GENERIC_INSTRUCTIONS[lang]
    prompt = _TEMPLATES[lang].format(
        name=assistant.assistant_name.strip() or _FALLBACK_NAME,
        instructions=instructions,
    )

    if business_context:
        prompt += f"\n\n---\n\n{_CONTEXT_HEADINGS[lang]}\n\n{business_context}"

    return prompt
