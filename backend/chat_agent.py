"""
Chat assistant for hiring managers.

A LangGraph loop of the chat model bound to GitSignal's tools:

  agent -> tools -> agent -> ... -> END   (at most CHAT_MAX_STEPS model turns)

ChatAgent.stream() yields plain dict events for the SSE endpoint:
  {"type": "message", "content": ...}
  {"type": "tool_call", "id", "name", "args"}
  {"type": "progress", "tool", "event"}     (repository analysis / web research)
  {"type": "tool_result", "id", "name", "result"}
  {"type": "done"} | {"type": "error", "error": ...}
"""

import json
import logging
from typing import Annotated, AsyncIterator, Optional

from langchain_core.messages import AIMessage, AnyMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.tools import BaseTool, tool
from langgraph.config import get_stream_writer
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages
from typing_extensions import TypedDict

from config import get_settings
from github.client import GitHubAPIError, GitHubClient
from github.metrics import fetch_profile_metrics
from github.repo_analysis import RepoAnalysisAgent
from github.search import search_github_profiles as find_github_profiles
from github.search import search_github_users as find_github_users
from llm import get_chat_model, message_text
from models import ChatMessage, EmailDraftRequest, HiringBrief
from outreach import draft_email
from ranking import CandidateHistory, rank_candidates
from research import research_with_progress, scrape_urls as fetch_urls, web_search as search_web

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are GitSignal AI, a helpful assistant for hiring managers looking to find and evaluate developers.

You have access to these tools:

GitHub tools:
1. search_github_profiles: natural-language search for GitHub profiles, e.g. "rust developers in Sydney".
2. search_github_users: GitHub's user search API with qualifiers, e.g. "language:rust location:sydney followers:>100".
3. analyze_github_profile: detailed metrics for one GitHub user.
4. get_top_candidates: score and rank several GitHub users against a hiring brief (top 5).
5. analyze_repository: deep analysis of a single repository's code quality and the developer's skill level.

Web tools:
6. web_search: search the whole web (LinkedIn, blogs, portfolios, docs).
7. scrape_urls: extract the text of specific pages.
8. research_web: multi-result research with a synthesized summary.

Outreach:
9. generate_draft_email: an editable outreach email for a candidate.

Workflow for finding developers:
1. Acknowledge the request briefly.
2. Use search_github_profiles (or search_github_users for precise filters) to find profiles.
3. Immediately use get_top_candidates with the found usernames and the requirements from the request.
4. Do NOT repeat candidate details in text after the tool call; the tool output is the presentation.

Never include image or avatar URLs in your replies. Be conversational but concise."""


def _dump(value) -> dict:
    return value.model_dump(mode="json", exclude_none=True)


def _to_messages(messages: list[ChatMessage]) -> list[AnyMessage]:
    converted: list[AnyMessage] = []
    for m in messages:
        if m.role == "user":
            converted.append(HumanMessage(content=m.content))
        elif m.role == "assistant":
            converted.append(AIMessage(content=m.content))
        else:
            converted.append(SystemMessage(content=m.content))
    return converted


# ============================================================================
# Tools
# ============================================================================

def build_tools(
    client: GitHubClient,
    history: Optional[CandidateHistory] = None,
    auth_user_id: Optional[str] = None,
    repo_agent: Optional[RepoAnalysisAgent] = None,
    model=None,
) -> list[BaseTool]:
    """Tools for one chat request. Every tool returns a JSON-able dict; failures come back as {"error": ...}."""
    settings = get_settings()

    @tool
    async def search_github_profiles(query: str) -> dict:
        """Search for GitHub profiles with a natural language query like 'rust developers in Sydney'."""
        try:
            profiles = await find_github_profiles(client, query)
        except Exception as e:
            return {"error": f"Search failed: {e}"}
        return {"query": query, "profiles": [_dump(p) for p in profiles], "total": len(profiles)}

    @tool
    async def search_github_users(
        query: str,
        sort: Optional[str] = None,
        order: Optional[str] = None,
        per_page: int = 20,
    ) -> dict:
        """Search GitHub users via GitHub's search API. Supports qualifiers such as
        location:city, language:lang, followers:>N and repos:>N. sort is one of
        followers, repositories or joined; order is asc or desc; per_page is at most 30."""
        try:
            return _dump(await find_github_users(client, query, sort=sort, order=order, per_page=per_page))
        except GitHubAPIError as e:
            return {"error": e.message}

    @tool
    async def analyze_github_profile(username: str) -> dict:
        """Analyze a GitHub profile: experience, languages, activity and top projects."""
        try:
            return _dump(await fetch_profile_metrics(client, username))
        except GitHubAPIError as e:
            return {"error": e.message}

    @tool
    async def get_top_candidates(
        usernames: list[str],
        required_skills: Optional[list[str]] = None,
        preferred_location: Optional[str] = None,
        project_type: Optional[str] = None,
        search_query: Optional[str] = None,
    ) -> dict:
        """Rank and score GitHub users against a hiring brief. Returns the top 5 candidates
        sorted by score with match reasons and concerns. Use after searching."""
        brief = HiringBrief(
            required_skills=required_skills,
            preferred_location=preferred_location,
            project_type=project_type,
        )
        try:
            result = await rank_candidates(
                usernames,
                brief,
                search_query,
                client=client,
                history=history,
                auth_user_id=auth_user_id,
                max_profiles=settings.ranking_max_profiles,
            )
        except Exception as e:
            logger.exception("[Chat] Ranking failed")
            return {"candidates": [], "brief": _dump(brief), "error": f"Failed to rank candidates: {e}"}
        return _dump(result)

    @tool
    async def web_search(query: str, search_type: str = "general", num_results: int = 10) -> dict:
        """Search the web for any content and scrape the results. search_type is one of
        general, github_profiles, linkedin, portfolio, news or technical."""
        try:
            results = await search_web(query, max_results=min(num_results, 20), search_type=search_type, scrape=True)
        except Exception as e:
            return {"error": f"Web search failed: {e}"}
        return {"query": query, "results": [_dump(r) for r in results], "total": len(results)}

    @tool
    async def scrape_urls(urls: list[str]) -> dict:
        """Extract the text content of specific URLs such as a portfolio or blog post."""
        try:
            contents = await fetch_urls(urls, max_chars=5000)
        except Exception as e:
            return {"error": f"Scraping failed: {e}"}
        return {"contents": [_dump(c) for c in contents], "total": len(contents)}

    @tool
    async def analyze_repository(repo_url: str, hiring_context: Optional[str] = None) -> dict:
        """Deep-analyze one GitHub repository (code quality, practices, skill level) by
        exploring it in a sandbox. Takes a few minutes."""
        writer = get_stream_writer()
        agent = repo_agent or RepoAnalysisAgent(model=model, client=client)
        last = None
        async for event in agent.analyze_with_progress(repo_url, hiring_brief=hiring_context):
            writer({"type": "progress", "tool": "analyze_repository", "event": _dump(event)})
            last = event
        if last is not None and last.status == "complete":
            return _dump(last.result)
        return {"error": last.error if last is not None else "Repository analysis produced no result"}

    @tool
    async def research_web(query: str, search_type: str = "general", context: Optional[str] = None) -> dict:
        """Research a topic across many web results and return a synthesized analysis
        with themes, entities and the most relevant results."""
        writer = get_stream_writer()
        last = None
        async for event in research_with_progress(query, search_type=search_type, context=context, model=model):
            writer({"type": "progress", "tool": "research_web", "event": _dump(event)})
            last = event
        if last is not None and last.status == "complete":
            return _dump(last.result)
        return {"error": last.error if last is not None else "Research produced no result"}

    @tool
    def generate_draft_email(
        candidate_username: str,
        role: str,
        company_name: str,
        candidate_name: Optional[str] = None,
        candidate_email: Optional[str] = None,
        key_skills: Optional[list[str]] = None,
        personalized_note: Optional[str] = None,
        sender_name: Optional[str] = None,
        sender_title: Optional[str] = None,
    ) -> dict:
        """Generate an editable outreach email draft for a candidate."""
        request = EmailDraftRequest(
            candidate_username=candidate_username,
            candidate_name=candidate_name,
            candidate_email=candidate_email,
            role=role,
            company_name=company_name,
            key_skills=key_skills or [],
            personalized_note=personalized_note,
            sender_name=sender_name,
            sender_title=sender_title,
        )
        return _dump(draft_email(request))

    return [
        search_github_profiles,
        search_github_users,
        analyze_github_profile,
        get_top_candidates,
        web_search,
        scrape_urls,
        analyze_repository,
        research_web,
        generate_draft_email,
    ]


# ============================================================================
# Agent
# ============================================================================

class ChatState(TypedDict):
    messages: Annotated[list[AnyMessage], add_messages]
    steps: int


class ChatAgent:
    """Runs one chat conversation turn through the tool loop."""

    def __init__(
        self,
        client: GitHubClient,
        history: Optional[CandidateHistory] = None,
        model=None,
        max_steps: Optional[int] = None,
        repo_agent: Optional[RepoAnalysisAgent] = None,
    ):
        self.client = client
        self.history = history
        self._model = model
        self.max_steps = max_steps or get_settings().chat_max_steps
        self.repo_agent = repo_agent

    @property
    def model(self):
        if self._model is None:
            self._model = get_chat_model()
        return self._model

    def _build_graph(self, tools: list[BaseTool]):
        by_name = {t.name: t for t in tools}
        model_with_tools = self.model.bind_tools(tools)
        max_steps = self.max_steps

        async def agent(state: ChatState) -> dict:
            reply = await model_with_tools.ainvoke([SystemMessage(content=SYSTEM_PROMPT), *state["messages"]])
            return {"messages": [reply], "steps": state["steps"] + 1}

        async def run_tools(state: ChatState) -> dict:
            writer = get_stream_writer()
            results = []
            for call in state["messages"][-1].tool_calls:
                name, args = call["name"], call.get("args") or {}
                writer({"type": "tool_call", "id": call["id"], "name": name, "args": args})
                selected = by_name.get(name)
                if selected is None:
                    output = {"error": f"Unknown tool: {name}"}
                else:
                    try:
                        output = await selected.ainvoke(args)
                    except Exception as e:
                        logger.exception("[Chat] Tool %s failed", name)
                        output = {"error": f"{name} failed: {e}"}
                writer({"type": "tool_result", "id": call["id"], "name": name, "result": output})
                results.append(ToolMessage(content=json.dumps(output, default=str), tool_call_id=call["id"]))
            return {"messages": results}

        def route(state: ChatState) -> str:
            last = state["messages"][-1]
            if isinstance(last, AIMessage) and last.tool_calls and state["steps"] < max_steps:
                return "tools"
            return END

        workflow = StateGraph(ChatState)
        workflow.add_node("agent", agent)
        workflow.add_node("tools", run_tools)
        workflow.set_entry_point("agent")
        workflow.add_conditional_edges("agent", route, {"tools": "tools", END: END})
        workflow.add_edge("tools", "agent")
        return workflow.compile()

    async def stream(self, messages: list[ChatMessage], auth_user_id: Optional[str] = None) -> AsyncIterator[dict]:
        """Yield chat events; always ends with a done or error event."""
        tools = build_tools(
            self.client,
            history=self.history,
            auth_user_id=auth_user_id,
            repo_agent=self.repo_agent,
            model=self._model,
        )
        graph = self._build_graph(tools)
        initial: ChatState = {"messages": _to_messages(messages), "steps": 0}
        try:
            async for mode, chunk in graph.astream(
                initial,
                config={"recursion_limit": 2 * self.max_steps + 5},
                stream_mode=["custom", "updates"],
            ):
                if mode == "custom":
                    yield chunk
                    continue
                for reply in (chunk.get("agent") or {}).get("messages", []):
                    text = message_text(reply)
                    if text:
                        yield {"type": "message", "content": text}
        except Exception as e:
            logger.exception("[Chat] Conversation failed")
            yield {"type": "error", "error": str(e)}
            return
        yield {"type": "done"}
