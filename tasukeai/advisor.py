"""
HR policy drafting through the Gemini text-generation API.

The output is an informal draft for HR staff to edit, never checked
against labour law.
"""

import logging

import httpx

from tasukeai.models import PolicyDraft

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

SYSTEM_INSTRUCTION = (
    "あなたは優秀な人事労務スペシャリストです。具体的かつ法的に適切なアドバイスを提供します。"
)
EMPTY_RESPONSE_MESSAGE = "アドバイスを生成できませんでした。もう一度お試しください。"
ERROR_MESSAGE = (
    "エラーが発生しました。APIキーを確認するか、しばらく待ってから再試行してください。"
)


def build_policy_prompt(organization_context: str, concern: str) -> str:
    return (
        "あなたは日本の労働法と人事労務管理に精通したプロフェッショナルな社会保険労務士兼人事コンサルタントです。\n"
        "以下の組織コンテキストに基づいて、社内副業（インターナル・ギグワーク）制度の設計に関するアドバイスと規約のドラフトを作成してください。\n\n"
        f"## 組織の状況\n{organization_context}\n\n"
        f"## 相談内容\n{concern}\n\n"
        "## 出力要件\n"
        "1. マークダウン形式で出力してください。\n"
        "2. 法的リスク（労働時間管理、割増賃金、安全配慮義務など）を考慮した具体的な条項案を含めてください。\n"
        "3. 運用フロー（募集から給与支払いまで）の提案を含めてください。\n"
        "4. 文体は「である」調で、専門的かつ実用的に記述してください。\n"
    )


def _extract_text(payload: object) -> str:
    """
    Join the text parts of the first candidate.

    Raises ValueError when the reply does not have the documented shape.
    """
    if not isinstance(payload, dict):
        raise ValueError(f"Unexpected reply type: {type(payload).__name__}")
    candidates = payload.get("candidates") or []
    if not candidates:
        return ""
    if not isinstance(candidates, list) or not isinstance(candidates[0], dict):
        raise ValueError("Unexpected candidates in reply")

    content = candidates[0].get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    if parts is None:
        return ""
    if not isinstance(parts, list) or not all(isinstance(p, dict) for p in parts):
        raise ValueError("Unexpected content parts in reply")
    return "".join(str(part.get("text", "")) for part in parts)


class PolicyAdvisor:
    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport

    async def generate_advice(self, organization_context: str, concern: str) -> str:
        """
        Ask the model for a policy draft.

        Failures never propagate: the caller always gets displayable text.
        """
        if not self.api_key:
            logger.warning("Policy advice requested without GEMINI_API_KEY")
            return ERROR_MESSAGE

        body = {
            "contents": [
                {"parts": [{"text": build_policy_prompt(organization_context, concern)}]}
            ],
            "systemInstruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
            "generationConfig": {"temperature": 0.7},
        }

        try:
            async with httpx.AsyncClient(
                base_url=GEMINI_BASE_URL,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    f"/models/{self.model}:generateContent",
                    params={"key": self.api_key},
                    json=body,
                )
                response.raise_for_status()
                text = _extract_text(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Gemini API error: {e}", exc_info=True)
            return ERROR_MESSAGE

        return text or EMPTY_RESPONSE_MESSAGE

    async def draft_policy(
        self, title: str, organization_context: str, concern: str
    ) -> PolicyDraft:
        content = await self.generate_advice(organization_context, concern)
        return PolicyDraft(title=title, content=content)
