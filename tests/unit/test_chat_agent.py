"""Tests for the chat assistant's tool loop and event stream."""

import json

from langchain_core.messages import ToolMessage

from chat_agent import ChatAgent, build_tools
from fakes import FakeChatModel, FakeGitHubClient, FakeSandbox, make_profile, make_report, tool_call_message
from github.repo_analysis import RepoAnalysisAgent
from models import ChatMessage

USER_TURN = [ChatMessage(role="user", content="Find me rust developers in Sydney")]

TOOL_NAMES = [
    "search_github_profiles",
    "search_github_users",
    "analyze_github_profile",
    "get_top_candidates",
    "web_search",
    "scrape_urls",
    "analyze_repository",
    "research_web",
    "generate_draft_email",
]


class RecordingHistory:
    def __init__(self):
        self.saved = []

    def add_candidates(self, auth_user_id, candidates, search_query=None) -> int:
        self.saved.append((auth_user_id, [c.username for c in candidates]))
        return len(candidates)


def _client() -> FakeGitHubClient:
    return FakeGitHubClient(profiles={"alice": make_profile("alice", name="Alice", location="Sydney")})


async def _run(agent: ChatAgent, messages=USER_TURN, auth_user_id=None) -> list[dict]:
    return [event async for event in agent.stream(messages, auth_user_id=auth_user_id)]


class TestBuildTools:
    def test_tool_names(self) -> None:
        assert [t.name for t in build_tools(_client())] == TOOL_NAMES

    async def test_draft_email_tool(self) -> None:
        tools = {t.name: t for t in build_tools(_client())}
        draft = await tools["generate_draft_email"].ainvoke({
            "candidate_username": "alice",
            "candidate_name": "Alice Smith",
            "role": "Rust Engineer",
            "company_name": "Acme",
        })
        assert draft["subject"] == "Exciting Rust Engineer Opportunity at Acme"
        assert draft["body"].startswith("Hi Alice,")

    async def test_profile_tool_reports_errors(self) -> None:
        tools = {t.name: t for t in build_tools(_client())}
        result = await tools["analyze_github_profile"].ainvoke({"username": "ghost"})
        assert result == {"error": 'User "ghost" not found on GitHub'}


class TestChatAgent:
    async def test_plain_reply(self) -> None:
        model = FakeChatModel(["Happy to help. Which skills matter most?"])
        events = await _run(ChatAgent(client=_client(), model=model))
        assert events == [
            {"type": "message", "content": "Happy to help. Which skills matter most?"},
            {"type": "done"},
        ]
        assert [t.name for t in model.bound_tools] == TOOL_NAMES

    async def test_conversation_history_forwarded(self) -> None:
        model = FakeChatModel(["Sure."])
        messages = [
            ChatMessage(role="user", content="Hi"),
            ChatMessage(role="assistant", content="Hello!"),
            ChatMessage(role="user", content="Find Go devs"),
        ]
        await _run(ChatAgent(client=_client(), model=model), messages)
        sent = model.calls[0]
        assert [m.content for m in sent[1:]] == ["Hi", "Hello!", "Find Go devs"]
        assert "GitSignal AI" in sent[0].content

    async def test_tool_call_and_result(self) -> None:
        model = FakeChatModel([
            tool_call_message("analyze_github_profile", {"username": "alice"}, content="Let me look."),
            "Alice is based in Sydney.",
        ])
        events = await _run(ChatAgent(client=_client(), model=model))

        assert [e["type"] for e in events] == ["message", "tool_call", "tool_result", "message", "done"]
        assert events[1] == {"type": "tool_call", "id": "call_1", "name": "analyze_github_profile",
                             "args": {"username": "alice"}}
        assert events[2]["result"]["username"] == "alice"
        assert events[2]["result"]["location"] == "Sydney"
        tool_message = model.calls[1][-1]
        assert isinstance(tool_message, ToolMessage)
        assert json.loads(tool_message.content)["name"] == "Alice"

    async def test_ranking_records_history_for_user(self) -> None:
        history = RecordingHistory()
        model = FakeChatModel([
            tool_call_message("get_top_candidates", {"usernames": ["alice"], "required_skills": ["rust"]}),
            "Here are your candidates.",
        ])
        events = await _run(ChatAgent(client=_client(), history=history, model=model), auth_user_id="user-1")
        result = [e for e in events if e["type"] == "tool_result"][0]["result"]
        assert [c["username"] for c in result["candidates"]] == ["alice"]
        assert result["brief"]["required_skills"] == ["rust"]
        assert history.saved == [("user-1", ["alice"])]

    async def test_unknown_tool(self) -> None:
        model = FakeChatModel([tool_call_message("delete_everything", {}), "Sorry about that."])
        events = await _run(ChatAgent(client=_client(), model=model))
        result = [e for e in events if e["type"] == "tool_result"][0]
        assert result["result"] == {"error": "Unknown tool: delete_everything"}
        assert events[-1] == {"type": "done"}

    async def test_invalid_tool_arguments(self) -> None:
        model = FakeChatModel([tool_call_message("analyze_github_profile", {}), "Let me retry."])
        events = await _run(ChatAgent(client=_client(), model=model))
        result = [e for e in events if e["type"] == "tool_result"][0]["result"]
        assert result["error"].startswith("analyze_github_profile failed:")
        assert events[-1] == {"type": "done"}

    async def test_step_limit(self) -> None:
        def script(messages):
            return tool_call_message("analyze_github_profile", {"username": "alice"})

        model = FakeChatModel(script)
        events = await _run(ChatAgent(client=_client(), model=model, max_steps=2))
        assert len(model.calls) == 2
        assert [e["type"] for e in events].count("tool_result") == 1
        assert events[-1] == {"type": "done"}

    async def test_model_error(self) -> None:
        model = FakeChatModel([RuntimeError("provider unavailable")])
        events = await _run(ChatAgent(client=_client(), model=model))
        assert events == [{"type": "error", "error": "provider unavailable"}]

    async def test_repository_progress_forwarded(self) -> None:
        sandbox = FakeSandbox()
        repo_agent = RepoAnalysisAgent(
            model=FakeChatModel(["Small but tidy.", make_report()]),
            sandbox_factory=lambda: sandbox,
        )
        model = FakeChatModel([
            tool_call_message("analyze_repository", {"repo_url": "https://github.com/octocat/hello"}),
            "The repository looks solid.",
        ])
        events = await _run(ChatAgent(client=_client(), model=model, repo_agent=repo_agent))

        progress = [e for e in events if e["type"] == "progress"]
        assert {e["tool"] for e in progress} == {"analyze_repository"}
        assert [e["event"]["status"] for e in progress] == [
            "validating",
            "spinning_up_sandbox",
            "cloning_repository",
            "generating_report",
            "complete",
        ]
        result = [e for e in events if e["type"] == "tool_result"][0]["result"]
        assert result["hiring_recommendation"] == "yes"
        assert sandbox.stopped
