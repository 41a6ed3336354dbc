"""Prompt templates for query planning and document generation."""

QUERY_PLANNING_SYSTEM = (
    "You are a research planner. You write precise web search queries that together "
    "give broad, balanced coverage of a technical topic."
)

QUERY_PLANNING_USER = """Generate web search queries for researching the topic below.

Topic: {topic}

Group the queries under these perspectives, with a header line for each:
Implementation:
History:
Current state:
Key actors:
Challenges:

Write 2-3 queries per perspective, one query per line, with no numbering or commentary."""

FOLLOW_UP_SYSTEM = (
    "You are a research analyst reviewing gathered material and spotting what is still "
    "unanswered."
)

FOLLOW_UP_USER = """Topic: {topic}

Research gathered so far:
{summary}

List the most important questions this research leaves unanswered across these dimensions:
Technical:
Security:
Operational:
Cost:

Phrase each question as a web search query, one per line, under the matching header."""

OUTLINE_SYSTEM = (
    "You are a technical writer. You plan long-form articles grounded strictly in the "
    "research you are given and say plainly when source material is missing."
)

OUTLINE_USER = """Create a detailed outline for an article about: {topic}

Use numbered top-level sections ("1. Title") with bullet notes ("- note") underneath.
If the research below contains no usable sources, say so in the outline.

{corpus}"""

SECTION_SYSTEM = (
    "You are a technical writer expanding one section of an article into clear, factual "
    "prose. Stay consistent with the outline and the supplied sources."
)

SECTION_USER = """Article topic: {topic}

Full outline:
{outline}

Write the body of this section only (no heading): {heading}
Section notes:
{notes}

Relevant source excerpts:
{excerpts}"""

POLISH_SYSTEM = (
    "You are an editor. Normalize style, terminology and formatting across the article "
    "without removing content or changing section order."
)

POLISH_USER = """Polish the following article about {topic}. Return the full article in Markdown.

{article}"""
