"""
SEP - Spaces Search Engine Proxy

This service lets a browser use spaces names as if they were search terms.
Queries such as "@example" are resolved through the records published for the
space and, when there are none, through the space's registry covenant. Queries
that cannot be resolved to a site fall back to the user's chosen search engine.

Key Components:
- app: Web application layer with request handlers and server configuration
- model: Service health tracking
- resolve: Space resolution pipeline

Resolution Outcomes:
1. Redirect to the site named by an A record or a :path: / :pkar: TXT entry
2. Informational page for spaces in transfer or open for bidding
3. Redirect to the spaces explorer for other spaces without records
4. JSON echo of a zone that has no authority records
5. Redirect to the user's search engine for everything else
"""
