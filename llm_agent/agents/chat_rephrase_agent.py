from typing import List

from llm_agent.output.schema import SchemaRule
from .base_agent import Agent


class ChatRephraseAgent(Agent):
    """把追问结合对话历史改写成独立问题的模板 Agent。"""

    prompt_view = "chat_rephrase_prompt"

    def register_output_rules(self) -> List[SchemaRule]:
        return [
            SchemaRule(
                name="standalone_question",
                rules="required|string",
                description="The standalone question",
            ),
        ]
