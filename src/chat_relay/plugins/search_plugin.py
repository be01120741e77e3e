from typing import Annotated

from ..tool_registry import ToolError

MAX_RESULTS_LIMIT = 10


class SearchPlugin:
    """Plugin providing a simulated web search."""

    def web_search(
        self,
        query: Annotated[str, "Search query"],
        max_results: Annotated[int, "Maximum number of results"] = 3,
    ) -> dict:
        """Search the web for information"""
        if not isinstance(query, str) or not query.strip():
            raise ToolError("'query' must be a non-empty string")
        if isinstance(max_results, bool) or not isinstance(max_results, int) or max_results < 0:
            raise ToolError("'max_results' must be a non-negative integer")

        count = min(max_results, MAX_RESULTS_LIMIT)
        results = [
            {
                "title": f'Result {i + 1} for "{query}"',
                "snippet": (
                    f"This is a simulated search result about {query}. "
                    "In production, this would connect to a real search API."
                ),
                "url": f"https://example.com/result{i + 1}",
            }
            for i in range(count)
        ]
        return {"query": query, "results": results, "total_results": count}

    def hook_provide_tools(self):
        """Return tools this plugin provides for auto-registration."""
        return [self.web_search]
