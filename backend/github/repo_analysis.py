"""Repository deep-analysis agent using LangGraph.

The agent explores a cloned repository with a single ``bash`` tool, then a
second model call turns its notes into a RepoAnalysis report. Progress is
streamed as RepoAnalysisProgress events:

  validating -> spinning_up_sandbox -> cloning_repository
    -> (executing_command -> analyzing)* -> generating_report -> complete | error
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Annotated, AsyncIterator, Optional

from langchain_core.messages import AIMessage, AnyMessage, HumanMessage, SystemMessage, ToolMessage
from langgraph.config import get_stream_writer
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages
from pydantic import BaseModel, Field
from typing_extensions import TypedDict

from config import get_settings, parse_timeout
from llm import Parsed, get_chat_model, message_text, parse_structured, schema_prompt
from models import (
    Complexity,
    GitPractices,
    Professionalism,
    RawFinding,
    RepoAnalysis,
    RepoAnalysisProgress,
    RepoCheck,
    SkillIndicator,
)
from progress import final_event
from .client import GitHubAPIError, GitHubClient, get_github_client
from .sandbox import (
    Sandbox,
    SandboxError,
    SandboxFactory,
    SandboxTimeoutError,
    LocalSandbox,
    is_dangerous,
    open_sandbox,
    truncate_output,
)

logger = logging.getLogger(__name__)

REPO_URL_RE = re.compile(r"github\.com[/:]([^/]+)/([^/.]+)")
INVALID_URL_MESSAGE = "Invalid GitHub repository URL. Expected format: https://github.com/owner/repo"
BLOCKED_MESSAGE = "Command blocked for security reasons"
OUTPUT_PREVIEW_CHARS = 2000


class InvalidRepositoryURL(ValueError):
    pass


class RepoAnalysisError(Exception):
    pass


def parse_repo_url(repo_url: str) -> tuple[str, str]:
    """Return (owner, repo) from any github.com HTTPS or SSH URL."""
    match = REPO_URL_RE.search(repo_url or "")
    if not match:
        raise InvalidRepositoryURL(INVALID_URL_MESSAGE)
    return match.group(1), match.group(2)


async def quick_repo_check(client: GitHubClient, repo_url: str) -> RepoCheck:
    """Validate the URL and confirm the repository exists, without a sandbox."""
    try:
        owner, name = parse_repo_url(repo_url)
    except InvalidRepositoryURL:
        return RepoCheck(is_valid=False, error="Invalid GitHub repository URL")
    try:
        await client.get_repo(owner, name)
    except GitHubAPIError as e:
        return RepoCheck(is_valid=False, error=e.message)
    return RepoCheck(is_valid=True, owner=owner, name=name, full_name=f"{owner}/{name}")


# ============================================================================
# Prompts
# ============================================================================

class BashArgs(BaseModel):
    command: str = Field(..., description="The bash command to execute")
    purpose: str = Field(..., description="Brief description of why you're running this command")


BASH_TOOL = {
    "type": "function",
    "function": {
        "name": "bash",
        "description": (
            "Execute a bash command in the repository sandbox to analyze the codebase. "
            "The working directory is the repository root. Common tools are available: "
            "git, find, grep, wc, head, tail, cat, ls. Be thorough but efficient."
        ),
        "parameters": BashArgs.model_json_schema(),
    },
}

EXPLORE_SYSTEM = """You are an expert code reviewer and talent assessor analyzing a GitHub repository to evaluate the developer's skill level and professionalism.

Analyze the repository "{owner}/{name}" and assess:
1. Technical skill level (beginner to expert)
2. Code quality and organization
3. Professional practices (commit messages, documentation, testing)
4. Collaboration signals (PR usage, code reviews, branching)
5. Overall recommendation for hiring
{brief}
GUIDELINES:
- Be thorough but fair. Look for positive signals, not just problems.
- Consider the project type when judging complexity. A simple tool done well is fine.

SUGGESTED APPROACH:
1. Explore the repository structure (ls, find)
2. Read the README and documentation
3. Analyze git history (commits, branches, frequency)
4. Read some source files to judge quality
5. Check for tests and CI configuration
6. Look at dependencies and build configuration

You can run at most {max_steps} commands. When you have enough evidence, reply with your analysis notes and no tool call."""

EXPLORE_PROMPT = """Analyze this repository thoroughly. Use the bash tool to explore the codebase and gather information.
Collect evidence for your assessment. Specific examples are more valuable than general impressions."""

REPORT_SYSTEM = """You are generating a structured JSON analysis of a code repository.
Output ONLY valid JSON matching the schema. Be fair and balanced.
Use the evidence from the command outputs. If something could not be determined, use null or a reasonable default.
'raw_findings' should summarize the key discoveries of the commands that were run."""


# ============================================================================
# Agent
# ============================================================================

class AgentState(TypedDict):
    messages: Annotated[list[AnyMessage], add_messages]
    steps: int


@dataclass
class CommandRecord:
    command: str
    purpose: str
    output: str


class _Deadline:
    def __init__(self, seconds: float):
        self.seconds = seconds
        self.expires = time.monotonic() + seconds

    def remaining(self) -> float:
        return max(0.0, self.expires - time.monotonic())


@dataclass
class _AnalysisRun:
    sandbox: Sandbox
    deadline: _Deadline
    history: list[CommandRecord] = field(default_factory=list)

    async def execute(self, command: str, purpose: str) -> str:
        if is_dangerous(command):
            logger.warning("[RepoAnalysis] Blocked command: %s", command)
            return BLOCKED_MESSAGE
        try:
            result = await self.sandbox.run(command, timeout=self.deadline.remaining())
        except SandboxTimeoutError:
            raise
        except SandboxError as e:
            return f"Command failed: {e}"
        output = truncate_output(result.output)
        self.history.append(CommandRecord(command=command, purpose=purpose, output=output))
        if result.exit_code != 0:
            return f"(exit code {result.exit_code})\n{output}"
        return output


def fallback_analysis(owner: str, name: str, notes: str, history: list[CommandRecord]) -> RepoAnalysis:
    """Degraded report used when the model's JSON cannot be validated."""
    return RepoAnalysis(
        repo_name=name,
        repo_owner=owner,
        code_quality="average",
        skill_level="intermediate",
        skill_indicators=[
            SkillIndicator(
                indicator="Analysis completed with limited parsing",
                significance="neutral",
                explanation="The structured analysis couldn't be fully parsed",
            )
        ],
        professionalism=Professionalism(
            score=5,
            commit_message_quality="average",
            code_organization="average",
            naming_conventions="mostly_consistent",
            error_handling="adequate",
        ),
        git_practices=GitPractices(commit_frequency="unknown"),
        complexity=Complexity(level="moderate"),
        strengths=["Repository was successfully analyzed"],
        summary=notes[:500],
        hiring_recommendation="maybe",
        raw_findings=[
            RawFinding(command=c.command, purpose=c.purpose, key_findings=c.output[:200])
            for c in history
        ],
    )


class RepoAnalysisAgent:
    """Explores a repository in a sandbox and grades the developer behind it."""

    def __init__(
        self,
        model=None,
        sandbox_factory: SandboxFactory = LocalSandbox,
        client: Optional[GitHubClient] = None,
        max_steps: Optional[int] = None,
        timeout: Optional[str] = None,
    ):
        settings = get_settings()
        self._model = model
        self.sandbox_factory = sandbox_factory
        self.client = client
        self.max_steps = max_steps or settings.repo_analysis_max_steps
        self.timeout = timeout or settings.repo_analysis_timeout

    @property
    def model(self):
        if self._model is None:
            self._model = get_chat_model()
        return self._model

    def _build_graph(self, run: _AnalysisRun):
        """Build the explore loop: agent -> run_tools -> agent ... -> END."""
        model_with_tools = self.model.bind_tools([BASH_TOOL])
        max_steps = self.max_steps

        async def agent(state: AgentState) -> dict:
            reply = await model_with_tools.ainvoke(state["messages"])
            return {"messages": [reply]}

        async def run_tools(state: AgentState) -> dict:
            writer = get_stream_writer()
            steps = state["steps"]
            results = []
            for call in state["messages"][-1].tool_calls:
                if call["name"] != "bash":
                    results.append(ToolMessage(content=f"Unknown tool: {call['name']}", tool_call_id=call["id"]))
                    continue
                if steps >= max_steps:
                    results.append(ToolMessage(content="Command limit reached", tool_call_id=call["id"]))
                    continue
                steps += 1
                args = call.get("args") or {}
                command = str(args.get("command", ""))
                purpose = str(args.get("purpose", ""))
                writer({
                    "status": "executing_command",
                    "message": purpose or f"Running: {command}",
                    "command": command,
                    "purpose": purpose,
                    "step": steps,
                })
                output = await run.execute(command, purpose)
                writer({
                    "status": "analyzing",
                    "message": f"Analyzing output of step {steps}",
                    "command": command,
                    "command_output": output[:OUTPUT_PREVIEW_CHARS],
                    "step": steps,
                })
                results.append(ToolMessage(content=output, tool_call_id=call["id"]))
            return {"messages": results, "steps": steps}

        def route(state: AgentState) -> str:
            last = state["messages"][-1]
            if isinstance(last, AIMessage) and last.tool_calls and state["steps"] < max_steps:
                return "run_tools"
            return END

        workflow = StateGraph(AgentState)
        workflow.add_node("agent", agent)
        workflow.add_node("run_tools", run_tools)
        workflow.set_entry_point("agent")
        workflow.add_conditional_edges("agent", route, {"run_tools": "run_tools", END: END})
        workflow.add_edge("run_tools", "agent")
        return workflow.compile()

    async def _generate_report(
        self,
        owner: str,
        name: str,
        notes: str,
        history: list[CommandRecord],
    ) -> RepoAnalysis:
        commands = "\n\n".join(
            f"Command: {c.command}\nPurpose: {c.purpose}\nOutput (excerpt): {c.output[:500]}..."
            for c in history
        )
        prompt = (
            f"Based on this analysis of {owner}/{name}:\n\n"
            f"ANALYSIS NOTES:\n{notes}\n\n"
            f"COMMAND HISTORY:\n{commands}\n\n"
            f"Generate a structured JSON analysis following this schema:\n{schema_prompt(RepoAnalysis)}\n\n"
            "Output ONLY the JSON object, no markdown or explanation."
        )
        reply = await self.model.ainvoke([SystemMessage(content=REPORT_SYSTEM), HumanMessage(content=prompt)])
        outcome = parse_structured(message_text(reply), RepoAnalysis)
        if isinstance(outcome, Parsed):
            return outcome.value
        logger.warning("[RepoAnalysis] Falling back for %s/%s: %s", owner, name, outcome.reason[:200])
        return fallback_analysis(owner, name, notes, history)

    async def analyze_with_progress(
        self,
        repo_url: str,
        hiring_brief: Optional[str] = None,
        timeout: Optional[str] = None,
    ) -> AsyncIterator[RepoAnalysisProgress]:
        """Stream progress for one repository analysis. The last event is complete or error."""
        yield RepoAnalysisProgress(status="validating", message=f"Validating {repo_url}")
        try:
            owner, name = parse_repo_url(repo_url)
            seconds = parse_timeout(timeout or self.timeout)
        except ValueError as e:
            yield RepoAnalysisProgress(status="error", message=str(e), error=str(e))
            return

        def event(status: str, message: str, **fields) -> RepoAnalysisProgress:
            return RepoAnalysisProgress(
                status=status, message=message, repo_owner=owner, repo_name=name, **fields
            )

        if self.client is not None:
            check = await quick_repo_check(self.client, repo_url)
            if not check.is_valid:
                yield event("error", check.error, error=check.error)
                return

        deadline = _Deadline(seconds)
        yield event("spinning_up_sandbox", "Starting analysis sandbox...")
        try:
            async with open_sandbox(self.sandbox_factory) as sandbox:
                yield event("cloning_repository", f"Cloning {owner}/{name}...")
                await sandbox.clone(f"https://github.com/{owner}/{name}.git", timeout=deadline.remaining())

                run = _AnalysisRun(sandbox=sandbox, deadline=deadline)
                graph = self._build_graph(run)
                brief = f"\nHIRING CONTEXT:\n{hiring_brief}\n" if hiring_brief else ""
                initial: AgentState = {
                    "messages": [
                        SystemMessage(content=EXPLORE_SYSTEM.format(
                            owner=owner, name=name, brief=brief, max_steps=self.max_steps
                        )),
                        HumanMessage(content=EXPLORE_PROMPT),
                    ],
                    "steps": 0,
                }
                final_state = initial
                stream = graph.astream(
                    initial,
                    config={"recursion_limit": 2 * self.max_steps + 5},
                    stream_mode=["custom", "values"],
                )
                try:
                    while True:
                        try:
                            mode, chunk = await asyncio.wait_for(stream.__anext__(), deadline.remaining())
                        except StopAsyncIteration:
                            break
                        if mode == "custom":
                            yield event(max_steps=self.max_steps, **chunk)
                        else:
                            final_state = chunk
                finally:
                    await stream.aclose()

                notes = "\n\n".join(
                    message_text(m) for m in final_state["messages"] if isinstance(m, AIMessage)
                ).strip()
                yield event("generating_report", "Generating structured report...")
                report = await asyncio.wait_for(
                    self._generate_report(owner, name, notes, run.history), deadline.remaining()
                )
        except (asyncio.TimeoutError, SandboxTimeoutError):
            message = f"Repository analysis timed out after {timeout or self.timeout}"
            logger.warning("[RepoAnalysis] %s/%s: %s", owner, name, message)
            yield event("error", message, error=message)
            return
        except (SandboxError, GitHubAPIError) as e:
            reason = str(e) or type(e).__name__
            logger.warning("[RepoAnalysis] %s/%s failed: %s", owner, name, reason)
            yield event("error", f"Repository analysis failed: {reason}", error=reason)
            return
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.exception("[RepoAnalysis] Unexpected failure for %s/%s", owner, name)
            yield event("error", f"Repository analysis failed: {reason}", error=reason)
            return

        yield event("complete", "Repository analysis complete!", result=report)

    async def analyze(self, repo_url: str, hiring_brief: Optional[str] = None, timeout: Optional[str] = None) -> RepoAnalysis:
        """Run an analysis to completion. Raises RepoAnalysisError on failure."""
        last = await final_event(self.analyze_with_progress(repo_url, hiring_brief, timeout))
        if last.status == "complete":
            return last.result
        raise RepoAnalysisError(last.error or last.message)


# Singleton instance
_repo_analysis_agent = None


def get_repo_analysis_agent() -> RepoAnalysisAgent:
    """Get or create the repository analysis agent instance."""
    global _repo_analysis_agent
    if _repo_analysis_agent is None:
        _repo_analysis_agent = RepoAnalysisAgent(client=get_github_client())
    return _repo_analysis_agent
