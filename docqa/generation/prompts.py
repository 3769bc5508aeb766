"""
Prompt templates for document and general-knowledge answering.

Keeping templates in a separate module makes them easy to iterate on
without touching retrieval or streaming logic.
"""

# ---------------------------------------------------------------------------
# Literal refusal sentence
# ---------------------------------------------------------------------------

# The model is told to answer with exactly this sentence when the context
# does not contain the answer; the stream controller also sends it when a
# document-mode answer ends up empty.
FALLBACK_ANSWER = "I don't know based on the provided documents."

# ---------------------------------------------------------------------------
# Document mode
# ---------------------------------------------------------------------------

DOCS_PROMPT = """\
You are a helpful assistant. Answer the question below strictly based on the given document context.

Document Context:
{context}

Question: {question}

If the answer is not clearly stated, respond exactly with:
"{fallback}"
"""

# ---------------------------------------------------------------------------
# General-knowledge mode (chitchat or low retrieval confidence)
# ---------------------------------------------------------------------------

GENERAL_PROMPT = """\
No relevant document context was found.

Please answer using general knowledge:
{question}
"""


def build_docs_prompt(question: str, context: str) -> str:
    return DOCS_PROMPT.format(context=context, question=question, fallback=FALLBACK_ANSWER)


def build_general_prompt(question: str) -> str:
    return GENERAL_PROMPT.format(question=question)
