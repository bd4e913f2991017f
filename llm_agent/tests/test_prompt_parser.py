import pytest

from llm_agent.domain.exceptions import PromptParseError
from llm_agent.domain.models import Role
from llm_agent.prompts.parser import escape_fences, parse_prompt


def test_single_unroled_block_is_user_message():
    msgs = parse_prompt("```<prompt>\n  Tell me a joke.  \n```\n")
    assert len(msgs) == 1
    assert msgs[0].role is Role.USER
    assert msgs[0].content == "Tell me a joke."


def test_roled_blocks_keep_source_order():
    text = (
        "```<prompt:system>\nYou are helpful.\n```\n"
        "```<prompt:user>\nhello!\n```\n"
        "```<prompt:assistant>\nhi there\n```\n"
    )
    msgs = parse_prompt(text)
    assert [m.role for m in msgs] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]
    assert [m.content for m in msgs] == ["You are helpful.", "hello!", "hi there"]


def test_multiple_unroled_blocks_are_ambiguous():
    text = "```<prompt>\nfirst\n```\n```<prompt>\nsecond\n```\n"
    with pytest.raises(PromptParseError) as exc:
        parse_prompt(text)
    assert exc.value.code == "PROMPT_AMBIGUOUS"
    assert "explicit roles" in exc.value.message


def test_no_blocks_falls_back_to_user_message():
    msgs = parse_prompt("\n  Just answer the question.\n\n")
    assert len(msgs) == 1
    assert msgs[0].role is Role.USER
    assert msgs[0].content == "Just answer the question."


def test_variant_role_tag_uses_first_word():
    msgs = parse_prompt("```<prompt:user [draft]>\nhello\n```")
    assert msgs[0].role is Role.USER


def test_unknown_role_raises():
    with pytest.raises(PromptParseError) as exc:
        parse_prompt("```<prompt:narrator>\nonce upon a time\n```")
    assert exc.value.code == "PROMPT_UNKNOWN_ROLE"


def test_escaped_fence_inside_block_is_unescaped():
    text = "```<prompt:user>\nRun this:\n\\```python\nprint(1)\n\\```\n```\n"
    msgs = parse_prompt(text)
    assert len(msgs) == 1
    assert msgs[0].content == "Run this:\n```python\nprint(1)\n```"


def test_escape_fences_roundtrip_through_block():
    transcript = "tool[scrape]: ```js\nalert(1)\n```"
    text = "```<prompt:system>\nHistory:\n" + escape_fences(transcript) + "\n```\n```<prompt:user>\nnext\n```"
    msgs = parse_prompt(text)
    assert [m.role for m in msgs] == [Role.SYSTEM, Role.USER]
    assert msgs[0].content.endswith("alert(1)\n```")
