"""OpenAI-backed reply generation."""

from openai import AsyncOpenAI, OpenAIError

from pagewire.core.exceptions import DownstreamFailure
from pagewire.core.logging import get_logger
from pagewire.tenants.resolver import TenantContext

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are the customer messaging assistant for {business}. "
    "Reply briefly and politely in the customer's language. "
    "If you do not know something about the business, offer to have a team "
    "member follow up instead of guessing."
)


class OpenAIReplyGenerator:
    def __init__(
        self,
        async_openai_client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        max_tokens: int = 300,
    ):
        self.async_openai_client = async_openai_client
        self.model = model
        self.max_tokens = max_tokens

    async def generate(self, tenant: TenantContext, message_text: str) -> str | None:
        """
        Produce a reply for ``message_text`` on behalf of ``tenant``.

        Returns None when the model returns no usable text.
        """
        try:
            completion = await self.async_openai_client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[
                    {
                        "role": "system",
                        "content": SYSTEM_PROMPT.format(business=tenant.display_name),
                    },
                    {"role": "user", "content": message_text},
                ],
            )
        except OpenAIError as e:
            logger.error(f"Reply generation failed for tenant {tenant.tenant_id}: {e}")
            raise DownstreamFailure(
                f"Reply generation failed: {e}", service="openai"
            ) from e

        if not completion.choices:
            return None
        reply = (completion.choices[0].message.content or "").strip()
        logger.debug(f"Generated reply of {len(reply)} chars for {tenant.tenant_id}")
        return reply or None


class DisabledReplyGenerator:
    """Used when no generation backend is configured: never replies."""

    async def generate(self, tenant: TenantContext, message_text: str) -> str | None:
        return None
