"""drivergen LLM Gateway – async text completion for the generation agents.

- :class:`LLMGateway` – prompt assembly, retry and logging over LiteLLM
- :class:`TokenTracker` – Token usage and cost per pipeline step
- :class:`PromptTemplate` – Jinja2 instruction templates of the pipeline steps
"""

from drivergen.llm.exceptions import (
    ConfigurationError,
    LLMGatewayError,
    NonTextResponseError,
    RetryExhaustedError,
    TemplateError,
)
from drivergen.llm.gateway import LLMGateway, build_messages, strip_code_fences
from drivergen.llm.models import (
    SYSTEM_PREAMBLE,
    BlockRole,
    ContextBlock,
    GatewayConfig,
    LLMLogEntry,
)
from drivergen.llm.prompt_templates import STEP_PROMPTS, PromptTemplate, StepPrompt
from drivergen.llm.token_tracker import StepUsage, TokenTracker

__all__ = [
    "STEP_PROMPTS",
    "SYSTEM_PREAMBLE",
    "BlockRole",
    "ConfigurationError",
    "ContextBlock",
    "GatewayConfig",
    "LLMGateway",
    "LLMGatewayError",
    "LLMLogEntry",
    "NonTextResponseError",
    "PromptTemplate",
    "RetryExhaustedError",
    "StepPrompt",
    "StepUsage",
    "TemplateError",
    "TokenTracker",
    "build_messages",
    "strip_code_fences",
]
