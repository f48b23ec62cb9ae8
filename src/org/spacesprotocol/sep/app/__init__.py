"""
SEP Application Layer

This package implements the web application layer for the SEP service, handling HTTP
requests and responses using the aiohttp framework.

Key Components:
- cli.py: Entry point for running the application
- server.py: Web server configuration, middleware and startup/cleanup context
- config.py: Configuration management using Pydantic settings
- handlers/: Request handlers for the search and internal endpoints
- tasks.py: Background tasks for health monitoring and public address discovery
- metrics.py: Metrics abstraction over StatsD/Telegraf

The application uses two middleware layers:
- Statsd middleware for metrics collection
- Sentry middleware for error reporting

It provides the following endpoints:
- Search endpoints (/, /set_search_cookie, /del_search_cookie)
- Internal endpoints (/internal/alive, /internal/ready, /internal/api/resolve)
"""
