"""agentkit - Agent execution engine with retrieval-augmented generation.

agentkit turns a user utterance into a model call, resolves tool calls
iteratively, streams partial output and keeps bounded conversational memory.
Knowledge bases chunk, embed and index documents so retrieved context can be
folded back into the prompt.

Key modules:

- :mod:`agentkit.agent` - Agent loop, streaming, memory, conversations, templates
- :mod:`agentkit.tools` - Tool registry and built-in tools
- :mod:`agentkit.llm` - Provider clients (OpenAI-compatible, Anthropic)
- :mod:`agentkit.embeddings` - Embedding models and the embedding manager
- :mod:`agentkit.vector` - Vector databases (in-memory, ChromaDB)
- :mod:`agentkit.knowledge` - Document processing, ingestion, retrieval and RAG
- :mod:`agentkit.platform` - Explicit wiring of all components from configuration
"""

__version__ = "0.1.0"
