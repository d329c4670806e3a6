"""oauthbridge -- OAuth2 client bridge with a resumable authorization flow.

A calling layer hands an options payload to
:class:`~oauthbridge.plugin.OAuth2ClientPlugin`. The plugin builds an
authorization request, suspends while the user authorizes in a browser, and
continues when the redirect is delivered back -- in the same process or in a
new one, since pending calls are persisted. The outcome is an access token
(optionally an id token and a protected resource) or a rejection message.

Typical workflow::

    oauthbridge authorize --options google.json   # prints correlation id + URL
    oauthbridge resume <id> "myapp:/#access_token=..."

Modules:
    plugin: Host-facing entry point.
    flow: Authorization flow controller and session lifecycle.
    models: Pydantic models shared across the entire package.
    options: Call option extraction with platform overrides.
    config: XDG-aware settings and call option files.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
    app: Typer application and CLI entry point.
"""

__version__ = "0.1.0"
