"""Webhook-driven bridge turning GitHub issue commands into pull requests.

This package implements the event-to-artifact pipeline:
- GitHub webhook signature verification and event parsing
- Command extraction from issue and comment bodies
- AI project generation with defensive reply parsing
- Branch creation and sequential file commits
- Pull request creation and progress comments on the originating issue
"""
