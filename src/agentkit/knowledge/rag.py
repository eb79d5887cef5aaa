"""Retrieval-augmented prompting and the knowledge_search tool."""

import logging
from typing import Any

from pydantic import BaseModel, Field

from agentkit.agent.loop import Agent
from agentkit.knowledge.retriever import DEFAULT_TOP_K, QueryRequest, Retriever
from agentkit.tools.base import Tool, ToolCategory, ToolContext
from agentkit.tools.registry import ToolRegistry
from agentkit.vector.store import SearchResult

logger = logging.getLogger(__name__)

PROMPT_HEADER = "以下是与问题相关的信息：\n\n"
PROMPT_FRAGMENT = "信息片段 {index}：\n{content}\n\n"
PROMPT_QUESTION = "用户问题：{query}\n\n"
PROMPT_INSTRUCTION = "请根据以上信息回答用户问题。如果提供的信息不足以回答问题，请说明信息不足，不要编造信息。"


def generate_prompt_from_results(results: list[SearchResult], user_query: str) -> str:
    """Build the augmented prompt: numbered fragments, the question, then the instruction."""
    parts = [PROMPT_HEADER]
    parts.extend(
        PROMPT_FRAGMENT.format(index=index, content=result.content) for index, result in enumerate(results, start=1)
    )
    parts.append(PROMPT_QUESTION.format(query=user_query))
    parts.append(PROMPT_INSTRUCTION)
    return "".join(parts)


async def apply_rag(
    retriever: Retriever,
    knowledge_base_id: str,
    query: str,
    agent: Agent,
    top_k: int = DEFAULT_TOP_K,
) -> str:
    """Answer ``query`` with the agent, grounded in the knowledge base.

    When retrieval finds nothing the agent gets the plain query.

    Raises:
        KnowledgeBaseNotFoundError: If the knowledge base does not exist
        RetrievalError: If retrieval fails
    """
    response = await retriever.retrieve(QueryRequest(knowledge_base_id=knowledge_base_id, query=query, top_k=top_k))
    if not response.results:
        logger.debug("No knowledge found in %s, answering without context", knowledge_base_id)
        return await agent.chat(query)

    return await agent.chat(generate_prompt_from_results(response.results, query))


class KnowledgeSearchParams(BaseModel):
    knowledge_base_id: str = Field(description="ID of the knowledge base to search")
    query: str = Field(description="Search query")
    top_k: int = Field(default=DEFAULT_TOP_K, description="Maximum number of results to return")


async def search_knowledge(retriever: Retriever, params: KnowledgeSearchParams) -> dict[str, Any]:
    response = await retriever.retrieve(
        QueryRequest(knowledge_base_id=params.knowledge_base_id, query=params.query, top_k=params.top_k)
    )
    return {
        "query": response.query,
        "results": [
            {
                "content": result.content,
                "source": result.metadata.get("source") or "unknown",
                "score": result.score,
            }
            for result in response.results
        ],
    }


def make_knowledge_search_tool(retriever: Retriever) -> Tool:
    """Create the ``knowledge_search`` tool bound to a retriever."""

    async def knowledge_search(ctx: ToolContext, params: KnowledgeSearchParams) -> dict[str, Any]:
        return await search_knowledge(retriever, params)

    return Tool(
        name="knowledge_search",
        description="Search a knowledge base for relevant information",
        handler=knowledge_search,
        parameters=KnowledgeSearchParams,
        category=ToolCategory.KNOWLEDGE,
        builtin=True,
        version="1.0",
    )


def register_knowledge_search_tool(registry: ToolRegistry, retriever: Retriever) -> Tool:
    """Register ``knowledge_search`` with a tool registry.

    Raises:
        ValueError: If a tool of that name is already registered
    """
    tool = make_knowledge_search_tool(retriever)
    registry.register(tool)
    return tool
