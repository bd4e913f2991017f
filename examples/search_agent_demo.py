"""Minimal demonstration of a search agent with a JSON answer."""

from llm_agent import Agent, SchemaRule, create_provider
from llm_agent.infrastructure.storage.json_memory import JsonFileMemory
from llm_agent.tools.builtins import SerperTool


class SearchAgent(Agent):
    def register_tools(self):
        return [SerperTool()]

    def register_output_rules(self):
        return [SchemaRule(name="answer", rules="required|string", description="your final answer")]


if __name__ == "__main__":
    question = "Who is the current president of the United States?"
    agent = SearchAgent(create_provider(), memory=JsonFileMemory())
    reply = agent.handle({"input": question})
    print("User:", question)
    print("Agent:", reply["answer"])
