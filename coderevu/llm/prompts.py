"""
Review prompt template.

The wording and the seven requested sections are what the review comment
format relies on; keep the text unchanged.
"""

from typing import List, Optional


REVIEW_PROMPT = """You are an expert code reviewer. Analyze the following pull request and provide a detailed, constructive code review.

PR Title: {title}
PR Description: {description}

Context from Codebase:
{context}

Code Changes:
```diff
{diff}
```

Please provide:
1. **Walkthrough**: A file-by-file explanation of the changes.
2. **Sequence Diagram**: A Mermaid JS sequence diagram visualizing the flow of the changes (if applicable). Use ```mermaid ... ``` block. **IMPORTANT**: Ensure the Mermaid syntax is valid. Do not use special characters (like quotes, braces, parentheses) inside Note text or labels as it breaks rendering. Keep the diagram simple.
3. **Summary**: Brief overview.
4. **Strengths**: What's done well.
5. **Issues**: Bugs, security concerns, code smells.
6. **Suggestions**: Specific code improvements.
7. **Rating**: Rate the code quality out of 5 where 5 is highest and 1 is lowest

Format your response in markdown."""


def build_review_prompt(
    title: str, description: Optional[str], context: List[str], diff: str
) -> str:
    """Fill the review prompt with PR metadata, retrieved snippets and the diff."""
    return REVIEW_PROMPT.format(
        title=title,
        description=description or "No description provided",
        context="\n\n".join(context),
        diff=diff,
    )
