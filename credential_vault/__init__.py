"""
Credential vault and OAuth lifecycle manager.

Stores tenant credentials for third-party services encrypted at rest, runs
the OAuth2 authorization-code flow for each supported provider, hands out
valid access tokens, and mirrors credentials into the workflow engine.
"""

__version__ = "0.1.0"
