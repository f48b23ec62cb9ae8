"""
Space Resolution

This package turns a space name (for example "@example") into the single
action the web layer should take for it.

Key Components:
- model.py: Zones, authority records, registry states, actions and errors
- records.py: Record lookup through the records gateway, DNS wire decoding
- authority.py: Selection of the first actionable authority record
- registry.py: Covenant lookup through the spaces daemon for spaces without a zone
- search.py: Web search fallback using the caller's search engine template
- cache.py: Optional Redis cache of resolved actions
- resolver.py: The orchestrator composing all of the above
- __main__.py: CLI interface for resolution

Resolution Order:
1. An A record or a :path: / :pkar: TXT entry redirects, first record wins
2. A space without a zone is classified by its registry covenant
   - transfer and bid get an informational page
   - anything else, including registry failures, goes to the explorer
3. A zone with no authority records is echoed back
4. A zone with records but no directive falls back to web search
"""
