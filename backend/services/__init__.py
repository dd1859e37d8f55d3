"""
MoonTV Advisor Services - external calls and the session gate.

- web_search: Tavily / Serper / SerpAPI adapters
- douban: Douban catalog adapter (detail, popular listing, search)
- tmdb: TMDB detail adapter
- llm_client: OpenAI-compatible and Claude chat protocols
- auth: JWT session check and chat permission
"""
